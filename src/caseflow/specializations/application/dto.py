"""
Specializations Application DTOs
================================

Pydantic models for registry inputs and API responses.

Every recognised filter key lives on ``SpecializationFilters`` with its
default; unknown keys are rejected at construction.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from caseflow.config import (
    DEFAULT_EXPERTISE_RATING,
    MAX_WORKLOAD_LIMIT,
    PriorityTier,
    SortDirection,
    SortKey,
)


# ========== Filters ==========

class SpecializationFilters(BaseModel):
    """Typed registry view configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    search: str = Field(default="", description="Matches counselor/category name and notes")
    category_id: Optional[int] = Field(default=None, ge=1)
    counselor_id: Optional[int] = Field(default=None, ge=1)
    is_available: Optional[bool] = None
    priority_tier: Optional[PriorityTier] = None
    sort_by: SortKey = SortKey.COUNSELOR_NAME
    sort_direction: SortDirection = SortDirection.ASC
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=50, ge=1, le=200)

    @field_validator("search")
    @classmethod
    def strip_search(cls, v: str) -> str:
        return v.strip()

    def query_params(self) -> Dict[str, Any]:
        """Filters understood by the backing list endpoint."""
        params: Dict[str, Any] = {}
        if self.category_id is not None:
            params["category_id"] = self.category_id
        if self.counselor_id is not None:
            params["user_id"] = self.counselor_id
        if self.is_available is not None:
            params["is_available"] = self.is_available
        return params


# ========== Request DTOs ==========

class CreateSpecializationRequest(BaseModel):
    """Assign a counselor to a category."""

    model_config = ConfigDict(extra="forbid")

    counselor_id: int = Field(..., ge=1, description="Staff user id")
    category_id: int = Field(..., ge=1, description="Ticket category id")
    priority_tier: PriorityTier = Field(default=PriorityTier.PRIMARY)
    max_workload: int = Field(default=10, ge=1, le=MAX_WORKLOAD_LIMIT)
    expertise_rating: int = Field(default=DEFAULT_EXPERTISE_RATING, ge=1, le=5)
    notes: Optional[str] = Field(default=None, max_length=1000)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "user_id": self.counselor_id,
            "category_id": self.category_id,
            "priority_level": self.priority_tier.value,
            "max_workload": self.max_workload,
            "expertise_rating": self.expertise_rating,
            "notes": self.notes,
        }


class UpdateSpecializationRequest(BaseModel):
    """Partial update; only provided fields are sent."""

    model_config = ConfigDict(extra="forbid")

    priority_tier: Optional[PriorityTier] = None
    max_workload: Optional[int] = Field(default=None, ge=1, le=MAX_WORKLOAD_LIMIT)
    current_workload: Optional[int] = Field(default=None, ge=0)
    is_available: Optional[bool] = None
    expertise_rating: Optional[int] = Field(default=None, ge=1, le=5)
    notes: Optional[str] = Field(default=None, max_length=1000)

    def changes(self) -> Dict[str, Any]:
        """Provided fields keyed by record attribute name."""
        return self.model_dump(exclude_unset=True)

    def to_payload(self) -> Dict[str, Any]:
        payload = self.model_dump(mode="json", exclude_unset=True)
        if "priority_tier" in payload:
            payload["priority_level"] = payload.pop("priority_tier")
        return payload


class AvailabilityUpdate(BaseModel):
    """One availability toggle."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int = Field(..., ge=1, description="Specialization id")
    is_available: bool


# ========== Response DTOs ==========

class CategoryWorkload(BaseModel):
    category_name: str
    total_counselors: int = 0
    available_counselors: int = 0
    total_capacity: int = 0
    current_utilization: int = 0
    utilization_rate: float = 0


class CounselorWorkload(BaseModel):
    counselor_name: str
    total_capacity: int = 0
    current_workload: int = 0
    utilization_rate: float = 0
    categories: List[Dict[str, Any]] = Field(default_factory=list)


class WorkloadOverview(BaseModel):
    total_counselors: int = 0
    assigned_counselors: int = 0
    available_counselors: int = 0
    total_capacity: int = 0
    current_utilization: int = 0


class WorkloadStats(BaseModel):
    """Server-computed workload statistics."""

    model_config = ConfigDict(frozen=True)

    overview: WorkloadOverview = Field(default_factory=WorkloadOverview)
    by_category: List[CategoryWorkload] = Field(default_factory=list)
    counselor_workloads: List[CounselorWorkload] = Field(default_factory=list)


class OperationResult(BaseModel):
    """Outcome of a single registry mutation."""

    success: bool = True
    message: str
    updated_count: int = 0


class ExportResult(BaseModel):
    """Rendered specializations export."""

    filename: str
    format: str
    content: str
    count: int
    exported_at: datetime
