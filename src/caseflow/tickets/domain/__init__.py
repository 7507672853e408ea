"""
Tickets Domain Layer
====================

Contains:
- Entities: Ticket
- Value Objects: BulkResult, BulkFailure
"""

from caseflow.tickets.domain.entities import BulkFailure, BulkResult, Ticket

__all__ = [
    "Ticket",
    "BulkFailure",
    "BulkResult",
]
