"""
Tickets Domain Entities
=======================

Ticket snapshot as returned by the backing API, and the outcome types of
best-effort bulk operations.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class Ticket:
    """Support ticket fields the assignment engine reads."""

    id: int
    subject: str
    status: str
    priority: str
    category_id: Optional[int] = None
    assigned_to: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def is_assigned(self) -> bool:
        return self.assigned_to is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "status": self.status,
            "priority": self.priority,
            "category_id": self.category_id,
            "assigned_to": self.assigned_to,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class BulkFailure:
    """One item of a bulk operation that did not apply."""
    id: int
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "error": self.error}


@dataclass(frozen=True)
class BulkResult:
    """
    Aggregate of a best-effort bulk operation.

    Each item succeeds or fails on its own; a failure never undoes
    another item's success. ``results`` holds the value returned for
    each succeeded id.
    """
    succeeded: Tuple[int, ...] = ()
    failures: Tuple[BulkFailure, ...] = ()
    results: Mapping[int, Any] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count

    @property
    def all_succeeded(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "failures": [f.to_dict() for f in self.failures],
        }
