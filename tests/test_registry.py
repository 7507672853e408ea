import asyncio
import json

import pytest

from caseflow.config import SortDirection, SortKey
from caseflow.core import (
    BackingApiException,
    DomainException,
    PermissionDeniedException,
    ResourceNotFoundException,
    StaleDataException,
    TransientFetchException,
    ValidationException,
)
from caseflow.shared.infrastructure.cache import CacheSource
from caseflow.specializations.application import SpecializationRegistry
from caseflow.specializations.domain import StaffMember

from conftest import ADMIN, COUNSELOR, STUDENT, FakeSpecializationGateway


# ========== Fetching ==========

async def test_fetch_populates_snapshot(registry):
    read = await registry.fetch_specializations()

    assert read.source is CacheSource.NETWORK
    assert [r.id for r in registry.records] == [1, 2, 3, 4]
    assert registry.is_stale is False
    assert registry.last_fetch is not None
    assert not registry.is_loading()


async def test_second_fetch_uses_cache(registry, spec_gateway):
    await registry.fetch_specializations()
    read = await registry.fetch_specializations()

    assert read.source is CacheSource.CACHE
    assert spec_gateway.count("list_specializations") == 1


async def test_different_filters_use_different_keys(registry, spec_gateway):
    await registry.fetch_specializations()
    await registry.fetch_specializations({"category_id": 200})

    assert spec_gateway.count("list_specializations") == 2
    assert {r.category_id for r in registry.records} == {200}
    assert registry.filters.category_id == 200


async def test_stale_fallback_marks_snapshot_and_warns(registry, spec_gateway, clock, sink):
    await registry.fetch_specializations()
    clock.advance(121)
    spec_gateway.failures["list_specializations"] = TransientFetchException("Could not reach server")

    read = await registry.fetch_specializations()

    assert read.is_stale is True
    assert registry.is_stale is True
    assert len(registry.records) == 4
    assert sink.messages("warning")


async def test_fetch_failure_without_cache_records_error(registry, spec_gateway, sink):
    spec_gateway.failures["list_specializations"] = TransientFetchException("Could not reach server")

    with pytest.raises(TransientFetchException):
        await registry.fetch_specializations()

    assert "fetch" in registry.errors
    assert registry.records == ()
    assert sink.notifications[-1].retryable is True
    assert not registry.is_loading("fetch")


async def test_invalid_filters_rejected(registry, spec_gateway):
    with pytest.raises(ValidationException):
        await registry.fetch_specializations({"per_page": 0})
    with pytest.raises(ValidationException):
        await registry.fetch_specializations({"color": "blue"})
    assert spec_gateway.count("list_specializations") == 0


class HeldListGateway(FakeSpecializationGateway):
    """Holds list calls for one category until ``release`` is set."""

    def __init__(self, records, held_category: int):
        super().__init__(records)
        self.held_category = held_category
        self.release = asyncio.Event()

    async def list_specializations(self, params):
        if params.get("category_id") == self.held_category:
            await self.release.wait()
        return await super().list_specializations(params)


async def test_overlapping_fetches_commit_filters_with_their_records(records, reader, notifier, bulk):
    gateway = HeldListGateway(records, held_category=100)
    registry = SpecializationRegistry(gateway, reader, notifier, bulk, actor=ADMIN)

    slow = asyncio.create_task(registry.fetch_specializations({"category_id": 100}))
    await asyncio.sleep(0)
    fast = await registry.fetch_specializations({"category_id": 200})

    # The slow request has not committed anything yet
    assert registry.filters.category_id == 200
    assert [r.id for r in registry.visible().items] == [3, 4]

    gateway.release.set()
    slow_read = await slow

    assert [r.id for r in slow_read.data] == [1, 2]
    assert [r.id for r in fast.data] == [3, 4]
    # Last completed fetch wins, with its own filters
    assert registry.filters.category_id == 100
    assert [r.id for r in registry.visible().items] == [1, 2]


async def test_staff_nests_records(loaded_registry, spec_gateway):
    spec_gateway.staff = [StaffMember(id=10, name="Ada Mensah", email="ada@example.edu", role="counselor")]

    await loaded_registry.fetch_available_staff()

    member = loaded_registry.staff[0]
    assert [s.id for s in member.specializations] == [1, 3]
    assert member.total_capacity == 20
    assert member.total_workload == 10


async def test_refresh_all_settles_every_fetch(loaded_registry, spec_gateway):
    spec_gateway.failures["list_staff"] = TransientFetchException("Could not reach server")

    result = await loaded_registry.refresh_all()

    assert result.success is False
    assert result.message == "1 of 3 refreshes failed"
    assert spec_gateway.count("get_workload_stats") == 1
    assert spec_gateway.count("list_specializations") == 2
    assert "staff" in loaded_registry.errors


# ========== Mutations ==========

async def test_create_inserts_at_head_and_invalidates(loaded_registry, cache, sink):
    cache.set("help:faqs:{}", "faqs")

    record = await loaded_registry.create_specialization({"counselor_id": 12, "category_id": 100})

    assert loaded_registry.records[0] is record
    assert loaded_registry.current is record
    assert record.expertise_rating == 3
    assert not any(key.startswith("specializations") for key in cache.keys())
    assert "help:faqs:{}" in cache
    assert "Counselor assigned to category successfully" in sink.messages("success")


async def test_create_validates_before_any_call(loaded_registry, spec_gateway):
    with pytest.raises(ValidationException) as exc_info:
        await loaded_registry.create_specialization({"counselor_id": 12, "category_id": 100, "max_workload": 51})

    assert any("max_workload" in e for e in exc_info.value.errors)
    assert spec_gateway.count("create_specialization") == 0
    assert "create" in loaded_registry.errors


async def test_create_requires_admin(loaded_registry, spec_gateway, sink):
    with pytest.raises(PermissionDeniedException):
        await loaded_registry.create_specialization(
            {"counselor_id": 12, "category_id": 100}, actor=COUNSELOR
        )

    assert spec_gateway.count("create_specialization") == 0
    assert sink.messages("error")[-1] == PermissionDeniedException.DENIAL_MESSAGE


async def test_update_replaces_by_id(loaded_registry):
    loaded_registry.set_current(2)

    record = await loaded_registry.update_specialization(2, {"current_workload": 1})

    assert loaded_registry.get(2) is record
    assert loaded_registry.current.current_workload == 1
    assert [r.id for r in loaded_registry.records] == [1, 2, 3, 4]


async def test_update_without_changes_rejected(loaded_registry, spec_gateway):
    with pytest.raises(ValidationException):
        await loaded_registry.update_specialization(2, {})
    assert spec_gateway.count("update_specialization") == 0


async def test_update_unknown_id(loaded_registry):
    with pytest.raises(ResourceNotFoundException):
        await loaded_registry.update_specialization(42, {"notes": "x"})


async def test_delete_removes_from_selection_and_current(loaded_registry):
    loaded_registry.select(3, 4)
    loaded_registry.set_current(3)

    await loaded_registry.delete_specialization(3)

    assert loaded_registry.get(3) is None
    assert [r.id for r in loaded_registry.selected()] == [4]
    assert loaded_registry.current is None


async def test_delete_with_active_tickets_message(loaded_registry, spec_gateway):
    spec_gateway.failures["delete_specialization"] = BackingApiException(
        "Counselor has active tickets in this category", status_code=422
    )

    with pytest.raises(DomainException) as exc_info:
        await loaded_registry.delete_specialization(1)

    assert exc_info.value.message.startswith("Cannot remove counselor from category with active tickets")
    assert loaded_registry.get(1) is not None


async def test_bulk_update_keeps_successes(loaded_registry, spec_gateway, sink):
    spec_gateway.failing_ids[3] = BackingApiException("Locked", status_code=409)

    result = await loaded_registry.bulk_update_specializations([1, 2, 3], {"expertise_rating": 4})

    assert result.success_count == 2
    assert [f.id for f in result.failures] == [3]
    assert loaded_registry.get(1).expertise_rating == 4
    assert loaded_registry.get(2).expertise_rating == 4
    assert loaded_registry.get(3).expertise_rating == 5
    assert "Successfully updated 2 specializations" in sink.messages("success")
    assert "Failed to update 1 specializations" in sink.messages("error")
    assert loaded_registry.errors["bulk"] == "Failed to update 1 specializations"


async def test_reset_workloads_refreshes(loaded_registry, spec_gateway):
    result = await loaded_registry.reset_workloads()

    assert result.success is True
    assert spec_gateway.count("reset_workloads") == 1
    assert all(r.current_workload == 0 for r in loaded_registry.records)


async def test_reset_workloads_admin_only(loaded_registry, spec_gateway):
    with pytest.raises(PermissionDeniedException):
        await loaded_registry.reset_workloads(actor=STUDENT)
    assert spec_gateway.count("reset_workloads") == 0


# ========== Lookups ==========

async def test_lookups(loaded_registry):
    assert [r.id for r in loaded_registry.by_category(200)] == [3, 4]
    assert [r.id for r in loaded_registry.by_counselor(10)] == [1, 3]
    assert [r.id for r in loaded_registry.available()] == [1, 2, 3]
    assert [r.id for r in loaded_registry.overloaded()] == [3]
    assert loaded_registry.counselor_workload(10).current_load == 10
    assert loaded_registry.workload_snapshot().record_count == 4


async def test_best_candidates(loaded_registry):
    assert [r.id for r in loaded_registry.best_candidates(100)] == [1, 2]
    assert loaded_registry.best_candidates(200) == []


async def test_best_candidates_refuses_stale_snapshot(loaded_registry, spec_gateway, clock):
    clock.advance(121)
    spec_gateway.failures["list_specializations"] = TransientFetchException("down")
    await loaded_registry.fetch_specializations()

    with pytest.raises(StaleDataException):
        loaded_registry.best_candidates(100)
    assert [r.id for r in loaded_registry.best_candidates(100, allow_stale=True)] == [1, 2]


# ========== Filters & View ==========

async def test_search_is_case_insensitive(loaded_registry):
    loaded_registry.set_filters(search="  FINANCIAL ")

    assert [r.id for r in loaded_registry.visible().items] == [3, 4]


async def test_search_matches_notes(loaded_registry):
    loaded_registry.set_filters(search="part-time")
    assert [r.id for r in loaded_registry.visible().items] == [4]


async def test_sort_and_paginate(loaded_registry):
    loaded_registry.set_filters(sort_by=SortKey.SCORE, sort_direction=SortDirection.DESC, per_page=2)

    page = loaded_registry.visible()

    assert [r.id for r in page.items] == [1, 2]
    assert page.total == 4
    assert page.pages == 2
    assert page.has_next


async def test_descending_sort_keeps_ascending_id_for_ties(loaded_registry):
    loaded_registry.set_filters(sort_by=SortKey.SCORE, sort_direction=SortDirection.DESC)
    assert [r.id for r in loaded_registry.visible().items] == [1, 2, 3, 4]

    loaded_registry.set_filters(sort_by=SortKey.COUNSELOR_NAME, sort_direction=SortDirection.DESC)
    assert [r.id for r in loaded_registry.visible().items] == [4, 2, 1, 3]


async def test_set_filters_resets_page(loaded_registry):
    loaded_registry.set_filters(page=3)
    filters = loaded_registry.set_filters(is_available=True)

    assert filters.page == 1
    assert [r.id for r in loaded_registry.visible().items] == [1, 3, 2]


async def test_clear_filters(loaded_registry):
    loaded_registry.set_filters(category_id=100)
    assert loaded_registry.clear_filters().category_id is None


async def test_select_requires_existing_ids(loaded_registry):
    with pytest.raises(ResourceNotFoundException):
        loaded_registry.select(1, 42)

    loaded_registry.select(1, 2)
    loaded_registry.deselect(2)
    assert [r.id for r in loaded_registry.selected()] == [1]
    loaded_registry.clear_selection()
    assert loaded_registry.selected() == []


# ========== Export ==========

async def test_export_csv(loaded_registry):
    result = loaded_registry.export_specializations("csv")

    lines = result.content.split("\n")
    assert result.count == 4
    assert result.filename.startswith("counselor-specializations-export-")
    assert result.filename.endswith(".csv")
    assert lines[0].startswith("id,counselor_name,counselor_email")
    assert "80%" in lines[2]
    assert len(lines) == 5


async def test_export_json(loaded_registry):
    result = loaded_registry.export_specializations("json")

    rows = json.loads(result.content)
    assert rows[3]["is_available"] == "No"
    assert rows[0]["can_take_ticket"] == "Yes"


async def test_export_rejects_unknown_format(loaded_registry):
    with pytest.raises(ValidationException):
        loaded_registry.export_specializations("xlsx")


async def test_export_admin_only(loaded_registry):
    with pytest.raises(PermissionDeniedException):
        loaded_registry.export_specializations("csv", actor=COUNSELOR)


# ========== Cache Control ==========

async def test_invalidate_cache_is_scoped(loaded_registry, cache):
    cache.set("workload:stats", 1)
    cache.set("staff:available", 2)
    cache.set("tickets:list", 3)

    assert loaded_registry.invalidate_cache() == 3
    assert cache.keys() == ["tickets:list"]


async def test_clear_cache_admin_only(loaded_registry, cache):
    with pytest.raises(PermissionDeniedException):
        loaded_registry.clear_cache(actor=COUNSELOR)

    assert loaded_registry.clear_cache() == 1
    assert len(cache) == 0
