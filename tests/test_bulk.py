import asyncio

import pytest

from caseflow.config import TicketStatus
from caseflow.core import (
    BackingApiException,
    PermissionDeniedException,
    TransientFetchException,
    ValidationException,
)
from caseflow.tickets.application import (
    BulkAssignmentCoordinator,
    TicketListFilters,
    TicketService,
    unique_ids,
)
from caseflow.tickets.domain import BulkResult

from conftest import COUNSELOR, STUDENT


async def test_n_minus_m_applied(bulk, ticket_gateway, sink):
    ticket_gateway.failing_ids = {
        2: BackingApiException("Ticket is closed", status_code=422),
        4: TransientFetchException("Could not reach server"),
    }

    result = await bulk.bulk_assign([1, 2, 3, 4, 5], assignee_id=7)

    assert result.success_count == 3
    assert result.failure_count == 2
    assert sorted(f.id for f in result.failures) == [2, 4]
    assert [t.id for t in ticket_gateway.tickets.values() if t.assigned_to == 7] == [1, 3, 5]
    assert "Successfully assigned 3 tickets" in sink.messages("success")
    assert "Failed to assign 2 tickets" in sink.messages("error")


async def test_unexpected_item_error_is_collected(bulk, ticket_gateway):
    ticket_gateway.failing_ids = {3: RuntimeError("boom")}

    result = await bulk.bulk_update_status([1, 3], TicketStatus.CLOSED)

    assert result.succeeded == (1,)
    assert result.failures[0].error == "boom"


async def test_all_attempts_settle_before_result(ticket_gateway, reader, notifier):
    coordinator = BulkAssignmentCoordinator(ticket_gateway, reader, notifier, max_concurrency=5)
    finished = []

    async def mutation(ticket_id):
        await asyncio.sleep(0.01 * (5 - ticket_id))
        if ticket_id == 1:
            raise BackingApiException("rejected")
        finished.append(ticket_id)
        return ticket_id

    result = await coordinator.bulk_apply([1, 2, 3, 4], mutation)

    assert sorted(finished) == [2, 3, 4]
    assert result.total == 4
    assert result.results == {2: 2, 3: 3, 4: 4}


async def test_concurrency_is_bounded(bulk):
    active = 0
    peak = 0

    async def mutation(ticket_id):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0)
        active -= 1

    await bulk.bulk_apply(range(1, 9), mutation)

    assert peak <= 2


async def test_duplicates_attempted_once(bulk):
    calls = []

    async def mutation(ticket_id):
        calls.append(ticket_id)

    result = await bulk.bulk_apply([3, 1, 3, 1], mutation)

    assert calls == [3, 1]
    assert result.succeeded == (3, 1)
    assert unique_ids([2, 2, 1]) == (2, 1)


async def test_empty_selection_rejected(bulk):
    with pytest.raises(ValidationException):
        await bulk.bulk_assign([], assignee_id=7)


async def test_assign_is_admin_only(bulk, ticket_gateway):
    with pytest.raises(PermissionDeniedException):
        await bulk.bulk_assign([1], assignee_id=7, actor=COUNSELOR)
    assert ticket_gateway.tickets[1].assigned_to is None


async def test_counselor_may_change_status(bulk, ticket_gateway):
    result = await bulk.bulk_update_status([1, 2], "In Progress", actor=COUNSELOR)

    assert result.all_succeeded
    assert ticket_gateway.tickets[2].status == "In Progress"


async def test_student_may_not_change_priority(bulk):
    with pytest.raises(PermissionDeniedException):
        await bulk.bulk_update_priority([1], "High", actor=STUDENT)


async def test_invalid_status_rejected(bulk):
    with pytest.raises(ValidationException):
        await bulk.bulk_update_status([1], "Snoozed")


async def test_unassign(bulk, ticket_gateway, sink):
    await bulk.bulk_assign([1], assignee_id=7)
    result = await bulk.bulk_unassign([1])

    assert result.success_count == 1
    assert ticket_gateway.tickets[1].assigned_to is None
    assert "Successfully unassigned 1 tickets" in sink.messages("success")


async def test_success_invalidates_only_tickets(bulk, cache):
    cache.set("tickets:list:{}", 1)
    cache.set("specializations:list:{}", 2)

    await bulk.bulk_update_priority([1], "Urgent")

    assert cache.keys() == ["specializations:list:{}"]


async def test_total_failure_keeps_ticket_cache(bulk, ticket_gateway, cache):
    cache.set("tickets:list:{}", 1)
    ticket_gateway.failing_ids = {1: BackingApiException("no")}

    result = await bulk.bulk_update_priority([1], "Urgent")

    assert result.success_count == 0
    assert "tickets:list:{}" in cache


def test_result_to_dict():
    result = BulkResult(succeeded=(1,), failures=())
    assert result.to_dict() == {"success_count": 1, "failure_count": 0, "failures": []}


async def test_ticket_listing_is_cached(ticket_gateway, reader):
    service = TicketService(ticket_gateway, reader)

    first = await service.list_tickets(TicketListFilters(status=TicketStatus.OPEN))
    second = await service.list_tickets(TicketListFilters(status=TicketStatus.OPEN))

    assert len(first.data) == 5
    assert second.data == first.data
    assert ticket_gateway.list_calls == 1
