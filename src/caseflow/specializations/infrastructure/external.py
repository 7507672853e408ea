"""
Specializations Backing API Adapter
===================================

Implements ISpecializationGateway over the shared ApiClient.

The backing API calls the tier ``priority_level`` and the counselor
``user_id``; both are renamed here so nothing above this layer sees the
wire names.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from caseflow.config import STAFF_ROLES
from caseflow.core import BackingApiException
from caseflow.shared.infrastructure.http import ApiClient, parsing_payload
from caseflow.specializations.application.dto import (
    AvailabilityUpdate,
    CreateSpecializationRequest,
    UpdateSpecializationRequest,
    WorkloadStats,
)
from caseflow.specializations.application.services import ISpecializationGateway
from caseflow.specializations.domain import SpecializationRecord, StaffMember

BASE_PATH = "/admin/counselor-specializations"


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def record_from_payload(payload: Dict[str, Any]) -> SpecializationRecord:
    """
    Map one backing specialization object onto a SpecializationRecord.

    Raises:
        BackingApiException: The payload lacks or mistypes a required field
    """
    with parsing_payload("specialization"):
        user = payload.get("user") or {}
        category = payload.get("category") or {}
        return SpecializationRecord(
            id=int(payload["id"]),
            counselor_id=int(payload.get("user_id") or user.get("id")),
            category_id=int(payload.get("category_id") or category.get("id")),
            priority_tier=payload.get("priority_level") or payload.get("priority_tier"),
            max_workload=int(payload.get("max_workload") or 0),
            current_workload=int(payload.get("current_workload") or 0),
            is_available=bool(payload.get("is_available")),
            expertise_rating=payload.get("expertise_rating"),
            counselor_name=user.get("name"),
            counselor_email=user.get("email"),
            counselor_role=user.get("role"),
            category_name=category.get("name"),
            notes=payload.get("notes"),
            assigned_at=_parse_datetime(payload.get("assigned_at")),
        )


def _specialization_in(data: Any) -> Dict[str, Any]:
    if isinstance(data, dict) and isinstance(data.get("specialization"), dict):
        return data["specialization"]
    raise BackingApiException("Response did not contain a specialization")


class HttpSpecializationGateway(ISpecializationGateway):
    """Counselor specialization endpoints of the backing API."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def list_specializations(self, params: Dict[str, Any]) -> List[SpecializationRecord]:
        query = {k: str(v).lower() if isinstance(v, bool) else v for k, v in params.items()}
        data = await self._client.get(BASE_PATH, params=query)
        with parsing_payload("specialization list"):
            items = (data or {}).get("specializations", [])
            return [record_from_payload(item) for item in items]

    async def create_specialization(self, request: CreateSpecializationRequest) -> SpecializationRecord:
        data = await self._client.post(BASE_PATH, json=request.to_payload())
        return record_from_payload(_specialization_in(data))

    async def update_specialization(
        self,
        specialization_id: int,
        request: UpdateSpecializationRequest
    ) -> SpecializationRecord:
        data = await self._client.put(f"{BASE_PATH}/{specialization_id}", json=request.to_payload())
        return record_from_payload(_specialization_in(data))

    async def delete_specialization(self, specialization_id: int) -> None:
        await self._client.delete(f"{BASE_PATH}/{specialization_id}")

    async def update_availability(self, updates: Sequence[AvailabilityUpdate]) -> int:
        data = await self._client.post(
            f"{BASE_PATH}/update-availability",
            json={"specializations": [u.model_dump() for u in updates]}
        )
        if isinstance(data, dict) and "updated_count" in data:
            return int(data["updated_count"])
        return len(updates)

    async def list_staff(self) -> List[StaffMember]:
        data = await self._client.get(
            "/admin/users",
            params={"role": ",".join(role.value for role in STAFF_ROLES), "status": "active", "per_page": 100}
        )
        with parsing_payload("staff"):
            users = (data or {}).get("users", [])
            return [
                StaffMember(
                    id=int(user["id"]),
                    name=user.get("name") or "",
                    email=user.get("email") or "",
                    role=user.get("role") or "",
                    status=user.get("status") or "active",
                )
                for user in users
            ]

    async def get_workload_stats(self) -> WorkloadStats:
        data = await self._client.get(f"{BASE_PATH}/workload-stats")
        with parsing_payload("workload stats"):
            return WorkloadStats.model_validate(data or {})

    async def reset_workloads(self) -> None:
        await self._client.post(f"{BASE_PATH}/reset-workloads")
