"""
Access Control
==============

The acting user of a client session. Authentication happens elsewhere;
this module only defends role-gated operations.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from caseflow.config import UserRole
from caseflow.core.exceptions import PermissionDeniedException


@dataclass(frozen=True)
class Actor:
    """The signed-in user on whose behalf operations run."""
    user_id: Optional[int]
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def system(cls) -> "Actor":
        """Actor used by background jobs."""
        return cls(user_id=None, role=UserRole.ADMIN)


def require_role(actor: Actor, roles: Iterable[UserRole], action: str) -> None:
    """Raise PermissionDeniedException unless the actor holds one of ``roles``."""
    if actor.role not in tuple(roles):
        raise PermissionDeniedException(action, actor.role.value)
