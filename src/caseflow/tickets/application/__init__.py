"""
Tickets Application Layer
=========================

Contains:
- Services: BulkAssignmentCoordinator (best-effort bulk mutations),
  TicketService (cached listing)
- DTOs: bulk request/response models

Depends on the domain layer and the gateway interface only.
"""

from caseflow.tickets.application.dto import (
    BulkAssignRequest,
    BulkFailureResponse,
    BulkPriorityRequest,
    BulkResultResponse,
    BulkStatusRequest,
    BulkUnassignRequest,
    TicketListFilters,
)
from caseflow.tickets.application.services import (
    BulkAssignmentCoordinator,
    ITicketGateway,
    TicketService,
    unique_ids,
)

__all__ = [
    # DTOs
    "BulkAssignRequest",
    "BulkUnassignRequest",
    "BulkStatusRequest",
    "BulkPriorityRequest",
    "BulkResultResponse",
    "BulkFailureResponse",
    "TicketListFilters",
    # Services
    "BulkAssignmentCoordinator",
    "TicketService",
    "unique_ids",
    # Gateway Interfaces
    "ITicketGateway",
]
