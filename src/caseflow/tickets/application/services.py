"""
Tickets Application Services
============================

Best-effort bulk mutation orchestration and cached ticket listing.

Bulk operations attempt every item independently and concurrently
(bounded by ``bulk_max_concurrency``); the aggregate result is built only
after every attempt has settled. There is no rollback.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from caseflow.config import CacheNamespace, TicketPriority, TicketStatus, UserRole
from caseflow.core import (
    Actor,
    ApplicationException,
    ValidationException,
    require_role,
)
from caseflow.shared.infrastructure.cache import CachedReader, CacheRead, cache_key
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.shared.infrastructure.notifications import Notifier
from caseflow.tickets.application.dto import TicketListFilters
from caseflow.tickets.domain import BulkFailure, BulkResult, Ticket

logger = get_logger(__name__)

Mutation = Callable[[int], Awaitable[Any]]

_PAST_TENSE = {"assign": "assigned", "unassign": "unassigned", "update": "updated"}


# ========== Gateway Interfaces (Dependency Inversion) ==========

class ITicketGateway(ABC):
    """Interface for ticket data access on the backing API."""

    @abstractmethod
    async def list_tickets(self, params: Dict[str, Any]) -> List[Ticket]:
        """List tickets matching ``params``."""

    @abstractmethod
    async def assign_ticket(
        self,
        ticket_id: int,
        assignee_id: Optional[int],
        reason: Optional[str] = None
    ) -> Ticket:
        """Assign a ticket, or unassign it when ``assignee_id`` is None."""

    @abstractmethod
    async def update_ticket(self, ticket_id: int, changes: Dict[str, Any]) -> Ticket:
        """Update ticket fields."""


def unique_ids(ids: Iterable[int]) -> Tuple[int, ...]:
    """Drop duplicate ids, keeping first occurrences in order."""
    return tuple(dict.fromkeys(ids))


def error_message(exc: Exception) -> str:
    if isinstance(exc, ApplicationException):
        return exc.message
    return str(exc) or exc.__class__.__name__


def _coerce(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationException(f"Invalid {field}", errors=[f"{field} must be one of: {allowed}"])


# ========== Application Services ==========

class BulkAssignmentCoordinator:
    """
    Runs one mutation per target id and collects the outcome.

    A single item's failure never aborts, short-circuits or rolls back the
    others. Callers get ``BulkResult`` rather than an exception for item
    failures; only invalid input or a permission check raises.
    """

    def __init__(
        self,
        gateway: ITicketGateway,
        reader: CachedReader,
        notifier: Notifier,
        max_concurrency: int = 5,
        actor: Optional[Actor] = None
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._gateway = gateway
        self._reader = reader
        self._notifier = notifier
        self._max_concurrency = max_concurrency
        self._actor = actor or Actor.system()

    async def bulk_apply(self, target_ids: Iterable[int], mutation: Mutation) -> BulkResult:
        """
        Apply ``mutation`` to every id and settle all attempts.

        Args:
            target_ids: Ids to mutate; duplicates are attempted once
            mutation: Coroutine function called with each id

        Returns:
            BulkResult with succeeded ids, per-item failures and results

        Raises:
            ValidationException: If no ids were given
        """
        ids = unique_ids(target_ids)
        if not ids:
            raise ValidationException("No items selected", errors=["Select at least one item"])

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def attempt(target_id: int) -> Any:
            async with semaphore:
                return await mutation(target_id)

        outcomes = await asyncio.gather(*(attempt(i) for i in ids), return_exceptions=True)

        succeeded: List[int] = []
        failures: List[BulkFailure] = []
        results: Dict[int, Any] = {}
        for target_id, outcome in zip(ids, outcomes):
            if isinstance(outcome, Exception):
                failures.append(BulkFailure(id=target_id, error=error_message(outcome)))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                succeeded.append(target_id)
                results[target_id] = outcome

        result = BulkResult(succeeded=tuple(succeeded), failures=tuple(failures), results=results)
        logger.info(
            "Bulk operation settled",
            extra={"total": result.total, "success_count": result.success_count,
                   "failure_count": result.failure_count}
        )
        return result

    async def bulk_assign(
        self,
        ticket_ids: Iterable[int],
        assignee_id: int,
        reason: Optional[str] = None,
        actor: Optional[Actor] = None
    ) -> BulkResult:
        require_role(actor or self._actor, [UserRole.ADMIN], "assign tickets")
        if assignee_id is None or assignee_id < 1:
            raise ValidationException("Invalid assignee", errors=["assignee_id is required"])

        reason = reason or "Manually assigned by admin"
        result = await self.bulk_apply(
            ticket_ids,
            lambda ticket_id: self._gateway.assign_ticket(ticket_id, assignee_id, reason)
        )
        return self._finish("assign", result)

    async def bulk_unassign(
        self,
        ticket_ids: Iterable[int],
        reason: Optional[str] = None,
        actor: Optional[Actor] = None
    ) -> BulkResult:
        require_role(actor or self._actor, [UserRole.ADMIN], "unassign tickets")

        reason = reason or "Unassigned by admin"
        result = await self.bulk_apply(
            ticket_ids,
            lambda ticket_id: self._gateway.assign_ticket(ticket_id, None, reason)
        )
        return self._finish("unassign", result)

    async def bulk_update_status(
        self,
        ticket_ids: Iterable[int],
        status: TicketStatus,
        actor: Optional[Actor] = None
    ) -> BulkResult:
        require_role(actor or self._actor, [UserRole.ADMIN, UserRole.COUNSELOR], "update ticket status")
        status = _coerce(TicketStatus, status, "status")

        result = await self.bulk_apply(
            ticket_ids,
            lambda ticket_id: self._gateway.update_ticket(ticket_id, {"status": status.value})
        )
        return self._finish("update", result)

    async def bulk_update_priority(
        self,
        ticket_ids: Iterable[int],
        priority: TicketPriority,
        actor: Optional[Actor] = None
    ) -> BulkResult:
        require_role(actor or self._actor, [UserRole.ADMIN, UserRole.COUNSELOR], "update ticket priority")
        priority = _coerce(TicketPriority, priority, "priority")

        result = await self.bulk_apply(
            ticket_ids,
            lambda ticket_id: self._gateway.update_ticket(ticket_id, {"priority": priority.value})
        )
        return self._finish("update", result)

    def _finish(self, verb: str, result: BulkResult) -> BulkResult:
        if result.success_count:
            self._reader.cache.invalidate(CacheNamespace.TICKETS)
            self._notifier.success(f"Successfully {_PAST_TENSE[verb]} {result.success_count} tickets")
        if result.failure_count:
            self._notifier.error(f"Failed to {verb} {result.failure_count} tickets")
        return result


class TicketService:
    """Cached ticket listing."""

    def __init__(self, gateway: ITicketGateway, reader: CachedReader):
        self._gateway = gateway
        self._reader = reader

    async def list_tickets(
        self,
        filters: Optional[TicketListFilters] = None,
        force_refresh: bool = False
    ) -> CacheRead:
        filters = filters or TicketListFilters()
        params = filters.query_params()
        key = cache_key(CacheNamespace.TICKETS, "list", params=params)

        async def fetch() -> Tuple[Ticket, ...]:
            return tuple(await self._gateway.list_tickets(params))

        return await self._reader.read(key, fetch, force_refresh=force_refresh)
