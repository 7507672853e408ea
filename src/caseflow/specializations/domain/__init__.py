"""
Specializations Domain Layer
============================

Contains:
- Entities: SpecializationRecord, StaffMember
- Value Objects: WorkloadSnapshot
- Domain Services: AssignmentScorer, WorkloadAggregator (stateless)

No infrastructure dependencies.
"""

from caseflow.specializations.domain.entities import SpecializationRecord, StaffMember
from caseflow.specializations.domain.value_objects import (
    AssignmentScorer,
    WorkloadAggregator,
    WorkloadSnapshot,
    round_half_up,
)

__all__ = [
    # Entities
    "SpecializationRecord",
    "StaffMember",
    # Value Objects & Services
    "AssignmentScorer",
    "WorkloadAggregator",
    "WorkloadSnapshot",
    "round_half_up",
]
