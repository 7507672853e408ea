"""
Registry views: search, filter, sort and paginate a record snapshot.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Sequence, Tuple

from caseflow.config import PRIORITY_TIERS, SortDirection, SortKey
from caseflow.specializations.application.dto import SpecializationFilters
from caseflow.specializations.domain import SpecializationRecord


@dataclass(frozen=True)
class RecordPage:
    items: Tuple[SpecializationRecord, ...]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


def _tier_rank(record: SpecializationRecord) -> int:
    try:
        return PRIORITY_TIERS.index(record.priority_tier)
    except ValueError:
        return len(PRIORITY_TIERS)


SORT_KEYS: Dict[SortKey, Callable[[SpecializationRecord], Any]] = {
    SortKey.COUNSELOR_NAME: lambda r: (r.counselor_name or "").lower(),
    SortKey.CATEGORY_NAME: lambda r: (r.category_name or "").lower(),
    SortKey.PRIORITY_TIER: _tier_rank,
    SortKey.WORKLOAD: lambda r: r.current_workload,
    SortKey.UTILIZATION: lambda r: r.utilization_rate,
    SortKey.SCORE: lambda r: r.assignment_score,
}


def matches(record: SpecializationRecord, filters: SpecializationFilters) -> bool:
    if filters.category_id is not None and record.category_id != filters.category_id:
        return False
    if filters.counselor_id is not None and record.counselor_id != filters.counselor_id:
        return False
    if filters.is_available is not None and record.is_available != filters.is_available:
        return False
    if filters.priority_tier is not None and record.priority_tier != filters.priority_tier:
        return False
    if filters.search:
        needle = filters.search.lower()
        haystack = (record.counselor_name, record.counselor_email, record.category_name, record.notes)
        return any(needle in value.lower() for value in haystack if value)
    return True


def visible_records(
    records: Sequence[SpecializationRecord],
    filters: SpecializationFilters
) -> RecordPage:
    filtered = [r for r in records if matches(r, filters)]
    # Two stable passes: ties keep ascending id in both directions
    by_id = sorted(filtered, key=lambda r: r.id)
    ordered = sorted(
        by_id,
        key=SORT_KEYS[filters.sort_by],
        reverse=filters.sort_direction == SortDirection.DESC,
    )
    start = (filters.page - 1) * filters.per_page
    return RecordPage(
        items=tuple(ordered[start:start + filters.per_page]),
        total=len(ordered),
        page=filters.page,
        per_page=filters.per_page,
    )
