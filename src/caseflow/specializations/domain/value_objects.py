"""
Specialization Value Objects
============================

Immutable value objects and stateless calculators for assignment routing.

All derived quantities (utilization, assignability, score) are computed
from a record's stored inputs on every call; nothing here keeps state.
"""

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence

from caseflow.config import DEFAULT_EXPERTISE_RATING, PriorityTier

if TYPE_CHECKING:
    from caseflow.specializations.domain.entities import SpecializationRecord


PRIORITY_WEIGHTS: Dict[str, float] = {
    PriorityTier.PRIMARY: 1.0,
    PriorityTier.SECONDARY: 0.8,
    PriorityTier.BACKUP: 0.6,
}
UNKNOWN_TIER_WEIGHT = 0.5
MAX_EXPERTISE_RATING = 5
OVERLOAD_THRESHOLD = 100


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for positive values (2.5 -> 3, not 2)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


class AssignmentScorer:
    """
    Pure functions scoring how suitable a specialization record is for
    receiving the next ticket. Score range is 0..100.

    score = round(availability * priority_weight * expertise_weight * 100)
    where availability = (100 - utilization) / 100.

    A record with ``max_workload == 0`` has utilization 0 (no division),
    and can never take a ticket because ``current_workload < 0`` is
    impossible, so it always scores 0. That is intentional.
    """

    @staticmethod
    def utilization_rate(record: "SpecializationRecord") -> int:
        """Percentage of capacity occupied, rounded; 0 when capacity is 0."""
        if record.max_workload <= 0:
            return 0
        return int(round_half_up(record.current_workload / record.max_workload * 100))

    @staticmethod
    def can_take_ticket(record: "SpecializationRecord") -> bool:
        return record.is_available and record.current_workload < record.max_workload

    @staticmethod
    def priority_weight(priority_tier: Optional[str]) -> float:
        return PRIORITY_WEIGHTS.get(priority_tier, UNKNOWN_TIER_WEIGHT)

    @staticmethod
    def expertise_weight(expertise_rating: Optional[int]) -> float:
        rating = expertise_rating or DEFAULT_EXPERTISE_RATING
        return rating / MAX_EXPERTISE_RATING

    @staticmethod
    def score(record: "SpecializationRecord") -> int:
        if not AssignmentScorer.can_take_ticket(record):
            return 0

        utilization = AssignmentScorer.utilization_rate(record)
        availability_score = (100 - utilization) / 100
        raw = (
            availability_score
            * AssignmentScorer.priority_weight(record.priority_tier)
            * AssignmentScorer.expertise_weight(record.expertise_rating)
            * 100
        )
        return int(min(100, max(0, round_half_up(raw))))

    @staticmethod
    def rank(
        records: Iterable["SpecializationRecord"],
        category_id: Optional[int] = None
    ) -> List["SpecializationRecord"]:
        """
        Assignable records ordered best first: score descending, then
        utilization ascending, then id for a stable order.
        """
        candidates = [
            r for r in records
            if AssignmentScorer.can_take_ticket(r)
            and (category_id is None or r.category_id == category_id)
        ]
        return sorted(
            candidates,
            key=lambda r: (-AssignmentScorer.score(r), AssignmentScorer.utilization_rate(r), r.id)
        )


@dataclass(frozen=True)
class WorkloadSnapshot:
    """
    Aggregate workload over a set of records. Always recomputed in full,
    never adjusted incrementally.
    """
    total_capacity: int
    current_load: int
    record_count: int
    average_utilization: float
    overloaded_count: int
    assignable_count: int

    def to_dict(self) -> dict:
        return {
            "total_capacity": self.total_capacity,
            "current_load": self.current_load,
            "record_count": self.record_count,
            "average_utilization": self.average_utilization,
            "overloaded_count": self.overloaded_count,
            "assignable_count": self.assignable_count,
        }


class WorkloadAggregator:
    """Pure, deterministic aggregation of specialization records."""

    @staticmethod
    def aggregate(records: Sequence["SpecializationRecord"]) -> WorkloadSnapshot:
        utilizations = [AssignmentScorer.utilization_rate(r) for r in records]
        count = len(records)
        average = round_half_up(sum(utilizations) / count, 1) if count else 0.0

        return WorkloadSnapshot(
            total_capacity=sum(r.max_workload for r in records),
            current_load=sum(r.current_workload for r in records),
            record_count=count,
            average_utilization=average,
            overloaded_count=sum(1 for u in utilizations if u >= OVERLOAD_THRESHOLD),
            assignable_count=sum(1 for r in records if AssignmentScorer.can_take_ticket(r)),
        )

    @staticmethod
    def for_counselor(
        records: Sequence["SpecializationRecord"],
        counselor_id: int
    ) -> WorkloadSnapshot:
        return WorkloadAggregator.aggregate([r for r in records if r.counselor_id == counselor_id])

    @staticmethod
    def by_category(records: Sequence["SpecializationRecord"]) -> Dict[int, WorkloadSnapshot]:
        grouped: Dict[int, List["SpecializationRecord"]] = {}
        for record in records:
            grouped.setdefault(record.category_id, []).append(record)
        return {
            category_id: WorkloadAggregator.aggregate(group)
            for category_id, group in sorted(grouped.items())
        }
