"""
Specialization Domain Entities
==============================

Pure Python domain entities for workload-aware assignment.

Entities are frozen: every change produces a new instance through
``with_changes`` so registry snapshots can be swapped whole.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from caseflow.config import PRIORITY_TIERS, PriorityTier
from caseflow.specializations.domain.value_objects import AssignmentScorer


@dataclass(frozen=True)
class SpecializationRecord:
    """
    Association of one staff member with one ticket category.

    Only ``is_available`` and ``current_workload`` (against
    ``max_workload``) are stored state. ``utilization_rate``,
    ``can_take_ticket`` and ``assignment_score`` are derived on every read.
    A workload above capacity is a valid overload state.
    """

    id: int
    counselor_id: int
    category_id: int
    priority_tier: str
    max_workload: int
    current_workload: int
    is_available: bool
    expertise_rating: Optional[int] = None

    # Display fields from the backing API relationships
    counselor_name: Optional[str] = None
    counselor_email: Optional[str] = None
    counselor_role: Optional[str] = None
    category_name: Optional[str] = None
    notes: Optional[str] = None
    assigned_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate stored inputs."""
        if self.max_workload < 0:
            raise ValueError("max_workload cannot be negative")
        if self.current_workload < 0:
            raise ValueError("current_workload cannot be negative")
        # Unknown tiers are kept as-is and weighted as such by the scorer
        if self.priority_tier in PRIORITY_TIERS:
            object.__setattr__(self, "priority_tier", PriorityTier(self.priority_tier))

    @property
    def utilization_rate(self) -> int:
        return AssignmentScorer.utilization_rate(self)

    @property
    def can_take_ticket(self) -> bool:
        return AssignmentScorer.can_take_ticket(self)

    @property
    def assignment_score(self) -> int:
        return AssignmentScorer.score(self)

    @property
    def is_overloaded(self) -> bool:
        return self.current_workload >= self.max_workload

    def with_changes(self, **changes: Any) -> "SpecializationRecord":
        """Copy with some stored fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "counselor_id": self.counselor_id,
            "category_id": self.category_id,
            "priority_tier": str(getattr(self.priority_tier, "value", self.priority_tier)),
            "max_workload": self.max_workload,
            "current_workload": self.current_workload,
            "is_available": self.is_available,
            "expertise_rating": self.expertise_rating,
            "counselor_name": self.counselor_name,
            "counselor_email": self.counselor_email,
            "category_name": self.category_name,
            "notes": self.notes,
            "assigned_at": self.assigned_at.isoformat() if self.assigned_at else None,
            "utilization_rate": self.utilization_rate,
            "can_take_ticket": self.can_take_ticket,
            "assignment_score": self.assignment_score,
        }


@dataclass(frozen=True)
class StaffMember:
    """Counselor or advisor who can hold specializations."""

    id: int
    name: str
    email: str
    role: str
    status: str = "active"
    specializations: Tuple[SpecializationRecord, ...] = field(default_factory=tuple)

    @property
    def total_workload(self) -> int:
        return sum(s.current_workload for s in self.specializations)

    @property
    def total_capacity(self) -> int:
        return sum(s.max_workload for s in self.specializations)
