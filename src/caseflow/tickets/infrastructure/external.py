"""
Tickets Backing API Adapter
===========================

Implements ITicketGateway over the shared ApiClient and maps response
payloads into Ticket entities.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from caseflow.core import BackingApiException
from caseflow.shared.infrastructure.http import ApiClient, parsing_payload
from caseflow.tickets.application.services import ITicketGateway
from caseflow.tickets.domain import Ticket


def ticket_from_payload(payload: Dict[str, Any]) -> Ticket:
    with parsing_payload("ticket"):
        created_at = payload.get("created_at")
        return Ticket(
            id=int(payload["id"]),
            subject=payload.get("subject") or "",
            status=payload.get("status") or "Open",
            priority=payload.get("priority") or "Medium",
            category_id=payload.get("category_id"),
            assigned_to=payload.get("assigned_to"),
            created_at=datetime.fromisoformat(created_at.replace("Z", "+00:00")) if created_at else None,
        )


def _ticket_in(data: Any) -> Dict[str, Any]:
    if isinstance(data, dict) and isinstance(data.get("ticket"), dict):
        return data["ticket"]
    if isinstance(data, dict) and "id" in data:
        return data
    raise BackingApiException("Response did not contain a ticket")


class HttpTicketGateway(ITicketGateway):
    """Ticket endpoints of the backing API."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def list_tickets(self, params: Dict[str, Any]) -> List[Ticket]:
        data = await self._client.get("/tickets", params=params)
        with parsing_payload("ticket list"):
            items = data.get("tickets", []) if isinstance(data, dict) else (data or [])
            return [ticket_from_payload(item) for item in items]

    async def assign_ticket(
        self,
        ticket_id: int,
        assignee_id: Optional[int],
        reason: Optional[str] = None
    ) -> Ticket:
        data = await self._client.post(
            f"/tickets/{ticket_id}/assign",
            json={"assigned_to": assignee_id, "reason": reason}
        )
        return ticket_from_payload(_ticket_in(data))

    async def update_ticket(self, ticket_id: int, changes: Dict[str, Any]) -> Ticket:
        data = await self._client.put(f"/tickets/{ticket_id}", json=changes)
        return ticket_from_payload(_ticket_in(data))
