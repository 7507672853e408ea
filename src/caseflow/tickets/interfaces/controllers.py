"""
Ticket Controllers (API Routes)
===============================

Best-effort bulk ticket operations. Each route answers 200 with the
per-item outcome; partial failure is reported in the body, not as an
error status.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from caseflow.config import TicketPriority, TicketStatus
from caseflow.core import Actor
from caseflow.shared.api.dependencies import get_actor, get_container
from caseflow.tickets.application import (
    BulkAssignRequest,
    BulkPriorityRequest,
    BulkResultResponse,
    BulkStatusRequest,
    BulkUnassignRequest,
    TicketListFilters,
)

router = APIRouter(prefix="/assignment/tickets", tags=["Tickets"])


# ========== Route Handlers ==========

@router.get("", summary="List tickets (cached)")
async def list_tickets(
    status: Optional[TicketStatus] = None,
    priority: Optional[TicketPriority] = None,
    category_id: Optional[int] = Query(default=None, ge=1),
    assigned_to: Optional[int] = Query(default=None, ge=1),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    force_refresh: bool = False,
    container=Depends(get_container)
):
    filters = TicketListFilters(
        status=status, priority=priority, category_id=category_id,
        assigned_to=assigned_to, page=page, per_page=per_page,
    )
    read = await container.tickets.list_tickets(filters, force_refresh=force_refresh)
    return {
        "tickets": [ticket.to_dict() for ticket in read.data],
        "is_stale": read.is_stale,
        "source": read.source.value,
    }


@router.post(
    "/bulk-assign",
    response_model=BulkResultResponse,
    summary="Assign tickets to a staff member",
    description="Admin only. Every ticket is attempted; failures are listed per id."
)
async def bulk_assign(
    body: BulkAssignRequest,
    actor: Actor = Depends(get_actor),
    container=Depends(get_container)
):
    result = await container.bulk.bulk_assign(body.ticket_ids, body.assignee_id, body.reason, actor=actor)
    return result.to_dict()


@router.post("/bulk-unassign", response_model=BulkResultResponse, summary="Unassign tickets")
async def bulk_unassign(
    body: BulkUnassignRequest,
    actor: Actor = Depends(get_actor),
    container=Depends(get_container)
):
    result = await container.bulk.bulk_unassign(body.ticket_ids, body.reason, actor=actor)
    return result.to_dict()


@router.post("/bulk-status", response_model=BulkResultResponse, summary="Change ticket status")
async def bulk_status(
    body: BulkStatusRequest,
    actor: Actor = Depends(get_actor),
    container=Depends(get_container)
):
    result = await container.bulk.bulk_update_status(body.ticket_ids, body.status, actor=actor)
    return result.to_dict()


@router.post("/bulk-priority", response_model=BulkResultResponse, summary="Change ticket priority")
async def bulk_priority(
    body: BulkPriorityRequest,
    actor: Actor = Depends(get_actor),
    container=Depends(get_container)
):
    result = await container.bulk.bulk_update_priority(body.ticket_ids, body.priority, actor=actor)
    return result.to_dict()
