"""
Assignment Controllers (API Routes)
===================================

FastAPI routes for specializations, availability and cache control.

Controllers are thin - they delegate to the registry and coordinators.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from caseflow.config import PriorityTier, SortDirection, SortKey, UserRole
from caseflow.core import Actor, parse_model, require_role
from caseflow.shared.api.dependencies import get_actor, get_container
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.specializations.application import (
    OperationResult,
    SpecializationFilters,
    visible_records,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/assignment", tags=["Assignment"])


# ========== Request Bodies ==========

class AvailabilityRequest(BaseModel):
    # Items are validated by the coordinator so every problem is reported at once
    updates: List[Dict[str, Any]] = Field(..., description="[{id, is_available}, ...]")


class InvalidateRequest(BaseModel):
    pattern: Optional[str] = Field(
        default=None,
        description="Key, namespace or glob; omitted drops the specialization namespaces"
    )


# ========== Route Handlers ==========

@router.get("/specializations", summary="List specializations with scores")
async def list_specializations(
    category_id: Optional[int] = Query(default=None, ge=1),
    counselor_id: Optional[int] = Query(default=None, ge=1),
    is_available: Optional[bool] = None,
    priority_tier: Optional[PriorityTier] = None,
    search: str = "",
    sort_by: SortKey = SortKey.COUNSELOR_NAME,
    sort_direction: SortDirection = SortDirection.ASC,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=50, ge=1, le=200),
    force_refresh: bool = False,
    container=Depends(get_container)
):
    filters = parse_model(SpecializationFilters, {
        "category_id": category_id,
        "counselor_id": counselor_id,
        "is_available": is_available,
        "priority_tier": priority_tier,
        "search": search,
        "sort_by": sort_by,
        "sort_direction": sort_direction,
        "page": page,
        "per_page": per_page,
    })
    read = await container.registry.fetch_specializations(filters, force_refresh=force_refresh)
    # Page this request's own records; the shared registry view may
    # already hold a later request's snapshot
    view = visible_records(read.data, filters)
    return {
        "items": [record.to_dict() for record in view.items],
        "total": view.total,
        "page": view.page,
        "per_page": view.per_page,
        "pages": view.pages,
        "is_stale": read.is_stale,
        "source": read.source.value,
    }


@router.get("/specializations/workload", summary="Workload aggregate over the loaded snapshot")
async def get_workload(container=Depends(get_container)):
    snapshot = container.registry.workload_snapshot()
    return {**snapshot.to_dict(), "is_stale": container.registry.is_stale}


@router.get("/specializations/candidates/{category_id}", summary="Best assignees for a category")
async def get_candidates(
    category_id: int,
    limit: int = Query(default=5, ge=1, le=50),
    allow_stale: bool = False,
    container=Depends(get_container)
):
    candidates = container.registry.best_candidates(category_id, limit=limit, allow_stale=allow_stale)
    return {
        "category_id": category_id,
        "candidates": [record.to_dict() for record in candidates],
        "total_available": len(candidates),
    }


@router.post(
    "/specializations/availability",
    response_model=OperationResult,
    summary="Toggle availability for one or more specializations"
)
async def set_availability(
    body: AvailabilityRequest,
    actor: Actor = Depends(get_actor),
    container=Depends(get_container)
):
    return await container.availability.set_availability(body.updates, actor=actor)


@router.post(
    "/specializations/reset-workloads",
    response_model=OperationResult,
    summary="Reset all workload counters (admin)"
)
async def reset_workloads(actor: Actor = Depends(get_actor), container=Depends(get_container)):
    return await container.registry.reset_workloads(actor=actor)


@router.post("/cache/invalidate", summary="Invalidate cache entries")
async def invalidate_cache(
    body: InvalidateRequest,
    actor: Actor = Depends(get_actor),
    container=Depends(get_container)
):
    require_role(actor, [UserRole.ADMIN, UserRole.COUNSELOR], "invalidate the cache")
    if body.pattern:
        removed = container.cache.invalidate(body.pattern)
    else:
        removed = container.registry.invalidate_cache()
    logger.info("Cache invalidated via API", extra={"pattern": body.pattern, "removed": removed})
    return {"removed": removed}


@router.delete("/cache", summary="Clear the whole cache (admin)")
async def clear_cache(actor: Actor = Depends(get_actor), container=Depends(get_container)):
    return {"removed": container.registry.clear_cache(actor=actor)}


@router.get("/cache/stats", summary="Cache size and staleness")
async def cache_stats(container=Depends(get_container)):
    return container.cache.stats()
