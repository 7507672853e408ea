"""
Registry State
==============

Immutable snapshot of everything the specialization registry owns, plus
the pure snapshot-to-snapshot transforms used to change it.

A transform never touches the snapshot it receives; the registry swaps
the whole snapshot in one assignment, so an interleaved reader sees
either the old or the new state and never a half-applied one.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from caseflow.specializations.application.dto import SpecializationFilters, WorkloadStats
from caseflow.specializations.domain import SpecializationRecord, StaffMember


@dataclass(frozen=True)
class RegistryState:
    records: Tuple[SpecializationRecord, ...] = ()
    staff: Tuple[StaffMember, ...] = ()
    workload_stats: Optional[WorkloadStats] = None
    filters: SpecializationFilters = field(default_factory=SpecializationFilters)
    current_id: Optional[int] = None
    selected: FrozenSet[int] = frozenset()
    errors: Mapping[str, str] = field(default_factory=dict)
    loading: FrozenSet[str] = frozenset()
    last_fetch: Optional[datetime] = None
    is_stale: bool = False

    @property
    def current(self) -> Optional[SpecializationRecord]:
        if self.current_id is None:
            return None
        return find_record(self, self.current_id)

    def ids(self) -> FrozenSet[int]:
        return frozenset(r.id for r in self.records)


def find_record(state: RegistryState, record_id: int) -> Optional[SpecializationRecord]:
    for record in state.records:
        if record.id == record_id:
            return record
    return None


# ========== Transforms ==========

def with_records(
    state: RegistryState,
    records: Iterable[SpecializationRecord],
    fetched_at: datetime,
    is_stale: bool,
    filters: Optional[SpecializationFilters] = None
) -> RegistryState:
    """
    Replace the record list after a fetch; selection is pruned to surviving ids.

    ``filters`` are the ones the records were fetched with and are committed
    together with them.
    """
    records = tuple(records)
    surviving = {r.id for r in records}
    current_id = state.current_id if state.current_id in surviving else None
    return replace(
        state,
        records=records,
        filters=state.filters if filters is None else filters,
        selected=frozenset(i for i in state.selected if i in surviving),
        current_id=current_id,
        last_fetch=fetched_at,
        is_stale=is_stale,
    )


def insert_head(state: RegistryState, record: SpecializationRecord) -> RegistryState:
    """New record first; it also becomes the current record."""
    others = tuple(r for r in state.records if r.id != record.id)
    return replace(state, records=(record,) + others, current_id=record.id)


def replace_records(state: RegistryState, updated: Iterable[SpecializationRecord]) -> RegistryState:
    """Replace by id; records absent from the snapshot are ignored."""
    by_id = {r.id: r for r in updated}
    if not by_id:
        return state
    return replace(state, records=tuple(by_id.get(r.id, r) for r in state.records))


def remove_record(state: RegistryState, record_id: int) -> RegistryState:
    return replace(
        state,
        records=tuple(r for r in state.records if r.id != record_id),
        selected=state.selected - {record_id},
        current_id=None if state.current_id == record_id else state.current_id,
    )


def apply_availability(state: RegistryState, availability: Mapping[int, bool]) -> RegistryState:
    """
    Set ``is_available`` for the given ids in one pass.

    Records whose flag is unchanged are kept as the same instance.
    """
    records = tuple(
        r.with_changes(is_available=availability[r.id])
        if r.id in availability and r.is_available != availability[r.id]
        else r
        for r in state.records
    )
    return replace(state, records=records)


def with_error(state: RegistryState, operation: str, message: Optional[str]) -> RegistryState:
    errors: Dict[str, str] = dict(state.errors)
    if message is None:
        errors.pop(operation, None)
    else:
        errors[operation] = message
    return replace(state, errors=errors)


def with_loading(state: RegistryState, operation: str, active: bool) -> RegistryState:
    loading = state.loading | {operation} if active else state.loading - {operation}
    return replace(state, loading=loading)
