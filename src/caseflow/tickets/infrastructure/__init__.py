"""
Tickets Infrastructure Layer
============================

Backing API adapter implementing ITicketGateway.
"""

from caseflow.tickets.infrastructure.external import HttpTicketGateway, ticket_from_payload

__all__ = [
    "HttpTicketGateway",
    "ticket_from_payload",
]
