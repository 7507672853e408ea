"""
Tickets Application DTOs
========================

Request/response models for ticket bulk operations and ticket listing.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from caseflow.config import TicketPriority, TicketStatus


# ========== Request DTOs ==========

class BulkAssignRequest(BaseModel):
    ticket_ids: List[int] = Field(..., min_length=1, description="Tickets to assign")
    assignee_id: int = Field(..., ge=1, description="Staff user receiving the tickets")
    reason: Optional[str] = Field(default=None, max_length=500)


class BulkUnassignRequest(BaseModel):
    ticket_ids: List[int] = Field(..., min_length=1)
    reason: Optional[str] = Field(default=None, max_length=500)


class BulkStatusRequest(BaseModel):
    ticket_ids: List[int] = Field(..., min_length=1)
    status: TicketStatus


class BulkPriorityRequest(BaseModel):
    ticket_ids: List[int] = Field(..., min_length=1)
    priority: TicketPriority


class TicketListFilters(BaseModel):
    """Filters passed through to the backing ticket list."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    category_id: Optional[int] = Field(default=None, ge=1)
    assigned_to: Optional[int] = Field(default=None, ge=1)
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=20, ge=1, le=100)

    def query_params(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# ========== Response DTOs ==========

class BulkFailureResponse(BaseModel):
    id: int
    error: str


class BulkResultResponse(BaseModel):
    success_count: int
    failure_count: int
    failures: List[BulkFailureResponse] = Field(default_factory=list)
