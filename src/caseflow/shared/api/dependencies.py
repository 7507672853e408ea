"""
Shared API Dependencies
=======================

FastAPI dependencies resolving the application container and the
calling actor. Authentication happens upstream; the role and user id
arrive as ``X-User-Role`` / ``X-User-Id`` headers.
"""

from typing import Optional

from fastapi import Header, Request

from caseflow.config import UserRole
from caseflow.core import Actor, ValidationException


def get_container(request: Request):
    """Container built by the application lifespan."""
    return request.app.state.container


def get_actor(
    x_user_role: Optional[str] = Header(default=None),
    x_user_id: Optional[int] = Header(default=None)
) -> Actor:
    """Caller identity; a request without a role gets the least privileged one."""
    if x_user_role is None:
        return Actor(user_id=x_user_id, role=UserRole.STUDENT)
    try:
        role = UserRole(x_user_role.strip().lower())
    except ValueError:
        allowed = ", ".join(r.value for r in UserRole)
        raise ValidationException("Invalid user role", errors=[f"X-User-Role must be one of: {allowed}"])
    return Actor(user_id=x_user_id, role=role)
