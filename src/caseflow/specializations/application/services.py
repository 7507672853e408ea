"""
Specializations Application Services
====================================

SpecializationRegistry owns the in-memory snapshot of specialization
records and the staff/workload data around it.

Following SOLID principles:
- Single Responsibility: reads go through the shared CachedReader,
  bulk fan-out through BulkAssignmentCoordinator
- Dependency Inversion: backing calls go through ISpecializationGateway

State is replaced, never edited: every change is a pure transform from
``caseflow.specializations.application.state`` applied to the snapshot
current at commit time. A fetch that completes late still overwrites a
newer one (last completed write wins).
"""

import asyncio
import csv
import io
import json
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from caseflow.config import CacheNamespace, UserRole
from caseflow.core import (
    Actor,
    ApplicationException,
    BackingApiException,
    DomainException,
    ResourceNotFoundException,
    StaleDataException,
    ValidationException,
    parse_model,
    require_role,
)
from caseflow.shared.infrastructure.cache import CachedReader, CacheRead, cache_key
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.shared.infrastructure.notifications import Notifier
from caseflow.specializations.application.dto import (
    AvailabilityUpdate,
    CreateSpecializationRequest,
    ExportResult,
    OperationResult,
    SpecializationFilters,
    UpdateSpecializationRequest,
    WorkloadStats,
)
from caseflow.specializations.application.state import (
    RegistryState,
    find_record,
    insert_head,
    remove_record,
    replace_records,
    with_error,
    with_loading,
    with_records,
)
from caseflow.specializations.application.views import RecordPage, visible_records
from caseflow.specializations.domain import (
    AssignmentScorer,
    SpecializationRecord,
    StaffMember,
    WorkloadAggregator,
    WorkloadSnapshot,
)
from caseflow.tickets.application.services import BulkAssignmentCoordinator
from caseflow.tickets.domain import BulkResult

logger = get_logger(__name__)

ACTIVE_TICKETS_MESSAGE = (
    "Cannot remove counselor from category with active tickets. "
    "Please reassign tickets first."
)
REGISTRY_NAMESPACES = (CacheNamespace.SPECIALIZATIONS, CacheNamespace.WORKLOAD, CacheNamespace.STAFF)
EXPORT_FORMATS = ("csv", "json")

FiltersInput = Union[SpecializationFilters, Mapping[str, Any], None]


# ========== Gateway Interfaces (Dependency Inversion) ==========

class ISpecializationGateway(ABC):
    """Interface for specialization data access on the backing API."""

    @abstractmethod
    async def list_specializations(self, params: Dict[str, Any]) -> List[SpecializationRecord]:
        """List records matching backing-API filter params."""

    @abstractmethod
    async def create_specialization(self, request: CreateSpecializationRequest) -> SpecializationRecord:
        """Create a record."""

    @abstractmethod
    async def update_specialization(
        self,
        specialization_id: int,
        request: UpdateSpecializationRequest
    ) -> SpecializationRecord:
        """Update a record and return its new state."""

    @abstractmethod
    async def delete_specialization(self, specialization_id: int) -> None:
        """Delete a record."""

    @abstractmethod
    async def update_availability(self, updates: Sequence[AvailabilityUpdate]) -> int:
        """Apply availability toggles in one call; returns the updated count."""

    @abstractmethod
    async def list_staff(self) -> List[StaffMember]:
        """Active counselors and advisors."""

    @abstractmethod
    async def get_workload_stats(self) -> WorkloadStats:
        """Server-computed workload statistics."""

    @abstractmethod
    async def reset_workloads(self) -> None:
        """Reset every current_workload counter."""


# ========== Application Services ==========

class SpecializationRegistry:
    """
    Constructor-injected state container for specialization records.

    Reads come back as ``CacheRead`` and the snapshot remembers whether it
    was served stale. Mutations write through the gateway, commit the
    result by replacing records by id, and invalidate only the
    specializations, workload and staff cache namespaces.
    """

    def __init__(
        self,
        gateway: ISpecializationGateway,
        reader: CachedReader,
        notifier: Notifier,
        bulk: BulkAssignmentCoordinator,
        actor: Optional[Actor] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        self._gateway = gateway
        self._reader = reader
        self._notifier = notifier
        self._bulk = bulk
        self._actor = actor or Actor.system()
        self._clock = clock
        self._state = RegistryState()

    # ========== State ==========

    @property
    def state(self) -> RegistryState:
        return self._state

    @property
    def records(self) -> Tuple[SpecializationRecord, ...]:
        return self._state.records

    @property
    def filters(self) -> SpecializationFilters:
        return self._state.filters

    @property
    def errors(self) -> Dict[str, str]:
        return dict(self._state.errors)

    @property
    def is_stale(self) -> bool:
        return self._state.is_stale

    @property
    def last_fetch(self) -> Optional[datetime]:
        return self._state.last_fetch

    @property
    def current(self) -> Optional[SpecializationRecord]:
        return self._state.current

    def is_loading(self, operation: Optional[str] = None) -> bool:
        if operation is None:
            return bool(self._state.loading)
        return operation in self._state.loading

    def apply(self, transform: Callable[..., RegistryState], *args: Any) -> RegistryState:
        """Swap in ``transform(current_snapshot, *args)``."""
        self._state = transform(self._state, *args)
        return self._state

    def report_failure(self, operation: str, exc: ApplicationException, title: str) -> None:
        """Record the error slot for ``operation`` and notify the user."""
        self.apply(with_error, operation, exc.message)
        self._notifier.failure(exc, title=title)
        logger.warning(
            "Registry operation failed",
            extra={"operation": operation, "error": exc.message, "error_type": exc.__class__.__name__}
        )

    def clear_error(self, operation: Optional[str] = None) -> None:
        if operation is None:
            self._state = replace(self._state, errors={})
        else:
            self.apply(with_error, operation, None)

    @contextmanager
    def _operation(self, name: str, title: str) -> Iterator[None]:
        self.apply(with_loading, name, True)
        try:
            yield
        except ApplicationException as exc:
            self.report_failure(name, exc, title)
            raise
        else:
            self.apply(with_error, name, None)
        finally:
            self.apply(with_loading, name, False)

    # ========== Fetching ==========

    async def fetch_specializations(
        self,
        filters: FiltersInput = None,
        force_refresh: bool = False
    ) -> CacheRead:
        """
        Load records matching ``filters`` (or the current filters).

        Args:
            filters: New filters; replaces the current ones when given
            force_refresh: Skip the cache and hit the backing API

        Returns:
            CacheRead; ``is_stale`` is also recorded on the snapshot
        """
        with self._operation("fetch", "Failed to load specializations"):
            if filters is None:
                parsed = self._state.filters
            else:
                parsed = parse_model(SpecializationFilters, filters)
            params = parsed.query_params()
            key = cache_key(CacheNamespace.SPECIALIZATIONS, "list", params=params)

            async def fetch() -> Tuple[SpecializationRecord, ...]:
                return tuple(await self._gateway.list_specializations(params))

            read = await self._reader.read(key, fetch, force_refresh=force_refresh)

        # Filters and records land in the same snapshot
        self.apply(with_records, read.data, self._clock(), read.is_stale, parsed)
        if read.is_stale:
            self._notifier.warning("Showing cached specializations; the server could not be reached")
        logger.info(
            "Specializations loaded",
            extra={"count": len(read.data), "source": read.source.value, "is_stale": read.is_stale}
        )
        return read

    async def fetch_available_staff(self, force_refresh: bool = False) -> CacheRead:
        with self._operation("staff", "Failed to load staff"):
            key = cache_key(CacheNamespace.STAFF, "available")

            async def fetch() -> Tuple[StaffMember, ...]:
                return tuple(await self._gateway.list_staff())

            read = await self._reader.read(key, fetch, force_refresh=force_refresh)

        # Nest each member's records from the snapshot current at commit time
        staff = tuple(
            replace(member, specializations=tuple(self.by_counselor(member.id)))
            for member in read.data
        )
        self._state = replace(self._state, staff=staff)
        return read

    @property
    def staff(self) -> Tuple[StaffMember, ...]:
        return self._state.staff

    @property
    def workload_stats(self) -> Optional[WorkloadStats]:
        return self._state.workload_stats

    async def fetch_workload_stats(self, force_refresh: bool = False) -> CacheRead:
        with self._operation("workload", "Failed to load workload statistics"):
            key = cache_key(CacheNamespace.WORKLOAD, "stats")
            read = await self._reader.read(key, self._gateway.get_workload_stats, force_refresh=force_refresh)

        self._state = replace(self._state, workload_stats=read.data)
        return read

    async def refresh_all(self) -> OperationResult:
        """
        Force-refresh records, staff and workload stats concurrently.

        Every refresh runs to completion; one failing does not cancel the
        others. Individual failures are already reported per operation.
        """
        outcomes = await asyncio.gather(
            self.fetch_specializations(force_refresh=True),
            self.fetch_available_staff(force_refresh=True),
            self.fetch_workload_stats(force_refresh=True),
            return_exceptions=True,
        )
        failed = 0
        for outcome in outcomes:
            if isinstance(outcome, ApplicationException):
                failed += 1
            elif isinstance(outcome, BaseException):
                raise outcome

        if failed:
            return OperationResult(success=False, message=f"{failed} of 3 refreshes failed")
        return OperationResult(message="Data refreshed", updated_count=len(self._state.records))

    # ========== Mutations ==========

    async def create_specialization(
        self,
        request: Union[CreateSpecializationRequest, Mapping[str, Any]],
        actor: Optional[Actor] = None
    ) -> SpecializationRecord:
        with self._operation("create", "Failed to assign counselor to category"):
            require_role(actor or self._actor, [UserRole.ADMIN], "assign counselors to categories")
            request = parse_model(CreateSpecializationRequest, request)
            record = await self._gateway.create_specialization(request)

        self.apply(insert_head, record)
        self.invalidate_cache()
        self._notifier.success("Counselor assigned to category successfully")
        logger.info("Specialization created", extra={"specialization_id": record.id})
        return record

    async def update_specialization(
        self,
        specialization_id: int,
        request: Union[UpdateSpecializationRequest, Mapping[str, Any]],
        actor: Optional[Actor] = None
    ) -> SpecializationRecord:
        with self._operation("update", "Failed to update specialization"):
            require_role(actor or self._actor, [UserRole.ADMIN], "update specializations")
            request = parse_model(UpdateSpecializationRequest, request)
            if not request.changes():
                raise ValidationException("No changes provided")
            self.require(specialization_id)
            record = await self._gateway.update_specialization(specialization_id, request)

        self.apply(replace_records, [record])
        self.invalidate_cache()
        self._notifier.success("Specialization updated successfully")
        logger.info("Specialization updated", extra={"specialization_id": specialization_id})
        return record

    async def delete_specialization(self, specialization_id: int, actor: Optional[Actor] = None) -> None:
        with self._operation("delete", "Failed to remove counselor from category"):
            require_role(actor or self._actor, [UserRole.ADMIN], "remove counselors from categories")
            self.require(specialization_id)
            try:
                await self._gateway.delete_specialization(specialization_id)
            except BackingApiException as e:
                if "active tickets" in e.message.lower():
                    raise DomainException(
                        ACTIVE_TICKETS_MESSAGE, {"specialization_id": specialization_id}
                    ) from e
                raise

        self.apply(remove_record, specialization_id)
        self.invalidate_cache()
        self._notifier.success("Counselor removed from category successfully")
        logger.info("Specialization deleted", extra={"specialization_id": specialization_id})

    async def bulk_update_specializations(
        self,
        specialization_ids: Iterable[int],
        request: Union[UpdateSpecializationRequest, Mapping[str, Any]],
        actor: Optional[Actor] = None
    ) -> BulkResult:
        """Best-effort update of many records; successes are kept even if others fail."""
        with self._operation("bulk", "Failed to update specializations"):
            require_role(actor or self._actor, [UserRole.ADMIN], "update specializations")
            request = parse_model(UpdateSpecializationRequest, request)
            if not request.changes():
                raise ValidationException("No changes provided")
            result = await self._bulk.bulk_apply(
                specialization_ids,
                lambda specialization_id: self._gateway.update_specialization(specialization_id, request)
            )

        self.apply(replace_records, result.results.values())
        if result.success_count:
            self.invalidate_cache()
            self._notifier.success(f"Successfully updated {result.success_count} specializations")
        if result.failure_count:
            self.apply(with_error, "bulk", f"Failed to update {result.failure_count} specializations")
            self._notifier.error(f"Failed to update {result.failure_count} specializations")
        return result

    async def reset_workloads(self, actor: Optional[Actor] = None) -> OperationResult:
        with self._operation("reset", "Failed to reset workload counters"):
            require_role(actor or self._actor, [UserRole.ADMIN], "reset workloads")
            await self._gateway.reset_workloads()

        self.invalidate_cache()
        self._notifier.success("Workload counters reset successfully")
        refreshed = await self.refresh_all()
        return OperationResult(
            success=refreshed.success,
            message="Workload counters reset" if refreshed.success else "Workload counters reset; refresh incomplete",
            updated_count=len(self._state.records),
        )

    # ========== Lookups ==========

    def get(self, specialization_id: int) -> Optional[SpecializationRecord]:
        return find_record(self._state, specialization_id)

    def require(self, specialization_id: int) -> SpecializationRecord:
        record = self.get(specialization_id)
        if record is None:
            raise ResourceNotFoundException("Specialization", str(specialization_id))
        return record

    def by_category(self, category_id: int) -> List[SpecializationRecord]:
        return [r for r in self._state.records if r.category_id == category_id]

    def by_counselor(self, counselor_id: int) -> List[SpecializationRecord]:
        return [r for r in self._state.records if r.counselor_id == counselor_id]

    def available(self) -> List[SpecializationRecord]:
        return [r for r in self._state.records if r.is_available]

    def overloaded(self) -> List[SpecializationRecord]:
        return [r for r in self._state.records if r.is_overloaded]

    def workload_snapshot(self) -> WorkloadSnapshot:
        return WorkloadAggregator.aggregate(self._state.records)

    def counselor_workload(self, counselor_id: int) -> WorkloadSnapshot:
        return WorkloadAggregator.for_counselor(self._state.records, counselor_id)

    def best_candidates(
        self,
        category_id: int,
        limit: int = 5,
        allow_stale: bool = False
    ) -> List[SpecializationRecord]:
        """
        Assignable records for ``category_id``, best first.

        Raises:
            StaleDataException: If the snapshot was served stale and
                ``allow_stale`` is False
        """
        if self._state.is_stale and not allow_stale:
            raise StaleDataException(CacheNamespace.SPECIALIZATIONS)
        return AssignmentScorer.rank(self._state.records, category_id=category_id)[:limit]

    # ========== Filters & View ==========

    def set_filters(self, **changes: Any) -> SpecializationFilters:
        """Merge ``changes`` into the current filters; page resets unless given."""
        merged = self._state.filters.model_dump()
        if "page" not in changes:
            merged["page"] = 1
        merged.update(changes)
        filters = parse_model(SpecializationFilters, merged)
        self._state = replace(self._state, filters=filters)
        return filters

    def clear_filters(self) -> SpecializationFilters:
        self._state = replace(self._state, filters=SpecializationFilters())
        return self._state.filters

    def visible(self) -> RecordPage:
        return visible_records(self._state.records, self._state.filters)

    # ========== Selection ==========

    def set_current(self, specialization_id: Optional[int]) -> Optional[SpecializationRecord]:
        if specialization_id is not None:
            self.require(specialization_id)
        self._state = replace(self._state, current_id=specialization_id)
        return self.current

    def select(self, *specialization_ids: int) -> None:
        for specialization_id in specialization_ids:
            self.require(specialization_id)
        self._state = replace(self._state, selected=self._state.selected | set(specialization_ids))

    def deselect(self, *specialization_ids: int) -> None:
        self._state = replace(self._state, selected=self._state.selected - set(specialization_ids))

    def clear_selection(self) -> None:
        self._state = replace(self._state, selected=frozenset())

    def selected(self) -> List[SpecializationRecord]:
        return [r for r in self._state.records if r.id in self._state.selected]

    # ========== Export ==========

    def export_specializations(self, format: str = "csv", actor: Optional[Actor] = None) -> ExportResult:
        require_role(actor or self._actor, [UserRole.ADMIN], "export specializations")
        if format not in EXPORT_FORMATS:
            raise ValidationException(
                "Unsupported export format",
                errors=[f"format must be one of: {', '.join(EXPORT_FORMATS)}"]
            )

        rows = [_export_row(r) for r in self._state.records]
        exported_at = self._clock()
        if format == "json":
            content = json.dumps(rows, indent=2)
        else:
            content = _to_csv(rows)

        logger.info("Specializations exported", extra={"format": format, "count": len(rows)})
        return ExportResult(
            filename=f"counselor-specializations-export-{exported_at.date().isoformat()}.{format}",
            format=format,
            content=content,
            count=len(rows),
            exported_at=exported_at,
        )

    # ========== Cache Control ==========

    def invalidate_cache(self) -> int:
        """Drop cached specializations, workload and staff entries only."""
        return sum(self._reader.cache.invalidate(namespace) for namespace in REGISTRY_NAMESPACES)

    def clear_cache(self, actor: Optional[Actor] = None) -> int:
        """Drop every cache entry, in every namespace. Admin only."""
        require_role(actor or self._actor, [UserRole.ADMIN], "clear the cache")
        removed = self._reader.cache.invalidate()
        self._notifier.success("Cache cleared")
        return removed


def _export_row(record: SpecializationRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "counselor_name": record.counselor_name or "Unknown",
        "counselor_email": record.counselor_email or "Unknown",
        "counselor_role": record.counselor_role or "Unknown",
        "category_name": record.category_name or "Unknown",
        "priority_level": str(getattr(record.priority_tier, "value", record.priority_tier)),
        "max_workload": record.max_workload,
        "current_workload": record.current_workload,
        "utilization_rate": f"{record.utilization_rate}%",
        "is_available": "Yes" if record.is_available else "No",
        "expertise_rating": record.expertise_rating,
        "assignment_score": record.assignment_score,
        "can_take_ticket": "Yes" if record.can_take_ticket else "No",
        "assigned_at": record.assigned_at.isoformat() if record.assigned_at else "",
        "notes": record.notes or "",
    }


def _to_csv(rows: List[Dict[str, Any]]) -> str:
    if not rows:
        return ""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(rows[0]), lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue().rstrip("\n")
