"""Shared fakes and fixtures."""

from dataclasses import replace
from typing import Any, Dict, List, Optional

import pytest

from caseflow.catalog.application import CatalogService, ICatalogGateway
from caseflow.catalog.domain import FAQ, FAQPage, HelpCategory
from caseflow.config import Settings, UserRole
from caseflow.container import Container
from caseflow.core import Actor, BackingApiException, TransientFetchException
from caseflow.shared.infrastructure.cache import CachedReader, CachePolicy, RequestCoalescer, StaleCache
from caseflow.shared.infrastructure.notifications import INotificationSink, Notifier
from caseflow.specializations.application import (
    AvailabilityCoordinator,
    ISpecializationGateway,
    SpecializationRegistry,
    WorkloadStats,
)
from caseflow.specializations.domain import SpecializationRecord, StaffMember
from caseflow.tickets.application import BulkAssignmentCoordinator, ITicketGateway
from caseflow.tickets.domain import Ticket

ADMIN = Actor(user_id=1, role=UserRole.ADMIN)
COUNSELOR = Actor(user_id=10, role=UserRole.COUNSELOR)
STUDENT = Actor(user_id=99, role=UserRole.STUDENT)


def make_record(**overrides: Any) -> SpecializationRecord:
    fields = dict(
        id=1,
        counselor_id=10,
        category_id=100,
        priority_tier="primary",
        max_workload=10,
        current_workload=0,
        is_available=True,
        expertise_rating=5,
        counselor_name="Ada Mensah",
        counselor_email="ada@example.edu",
        category_name="Admissions",
    )
    fields.update(overrides)
    return SpecializationRecord(**fields)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink(INotificationSink):
    def __init__(self):
        self.notifications = []

    def notify(self, notification) -> None:
        self.notifications.append(notification)

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [n.message for n in self.notifications if level is None or n.level == level]


class FakeSpecializationGateway(ISpecializationGateway):
    """In-memory backing store; ``failures`` maps a method name to the exception it raises."""

    def __init__(self, records: Optional[List[SpecializationRecord]] = None):
        self.records: Dict[int, SpecializationRecord] = {r.id: r for r in records or []}
        self.staff: List[StaffMember] = []
        self.stats = WorkloadStats()
        self.failures: Dict[str, Exception] = {}
        self.failing_ids: Dict[int, Exception] = {}
        self.calls: List[tuple] = []
        self._next_id = 1000

    def _call(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def list_specializations(self, params):
        self._call("list_specializations", params)
        records = list(self.records.values())
        if "category_id" in params:
            records = [r for r in records if r.category_id == params["category_id"]]
        return records

    async def create_specialization(self, request):
        self._call("create_specialization", request)
        self._next_id += 1
        record = make_record(
            id=self._next_id,
            counselor_id=request.counselor_id,
            category_id=request.category_id,
            priority_tier=request.priority_tier.value,
            max_workload=request.max_workload,
            expertise_rating=request.expertise_rating,
            notes=request.notes,
        )
        self.records[record.id] = record
        return record

    async def update_specialization(self, specialization_id, request):
        self._call("update_specialization", specialization_id, request)
        if specialization_id in self.failing_ids:
            raise self.failing_ids[specialization_id]
        record = self.records[specialization_id].with_changes(**request.changes())
        self.records[specialization_id] = record
        return record

    async def delete_specialization(self, specialization_id):
        self._call("delete_specialization", specialization_id)
        del self.records[specialization_id]

    async def update_availability(self, updates):
        self._call("update_availability", list(updates))
        for update in updates:
            self.records[update.id] = self.records[update.id].with_changes(is_available=update.is_available)
        return len(updates)

    async def list_staff(self):
        self._call("list_staff")
        return list(self.staff)

    async def get_workload_stats(self):
        self._call("get_workload_stats")
        return self.stats

    async def reset_workloads(self):
        self._call("reset_workloads")
        for record_id, record in self.records.items():
            self.records[record_id] = record.with_changes(current_workload=0)


class FakeTicketGateway(ITicketGateway):
    def __init__(self, ticket_ids=(1, 2, 3, 4, 5)):
        self.tickets: Dict[int, Ticket] = {
            i: Ticket(id=i, subject=f"Ticket {i}", status="Open", priority="Medium") for i in ticket_ids
        }
        self.failing_ids: Dict[int, Exception] = {}
        self.list_calls = 0

    def _check(self, ticket_id: int) -> None:
        if ticket_id in self.failing_ids:
            raise self.failing_ids[ticket_id]
        if ticket_id not in self.tickets:
            raise BackingApiException("Ticket not found", status_code=404)

    async def list_tickets(self, params):
        self.list_calls += 1
        return list(self.tickets.values())

    async def assign_ticket(self, ticket_id, assignee_id, reason=None):
        self._check(ticket_id)
        self.tickets[ticket_id] = replace(self.tickets[ticket_id], assigned_to=assignee_id)
        return self.tickets[ticket_id]

    async def update_ticket(self, ticket_id, changes):
        self._check(ticket_id)
        self.tickets[ticket_id] = replace(self.tickets[ticket_id], **changes)
        return self.tickets[ticket_id]


class FakeCatalogGateway(ICatalogGateway):
    def __init__(self):
        self.category_calls: List[bool] = []
        self.faq_calls: List[Dict[str, Any]] = []
        self.down = False

    async def list_categories(self, include_inactive):
        self.category_calls.append(include_inactive)
        if self.down:
            raise TransientFetchException("Could not reach server")
        categories = [
            HelpCategory(id=1, name="Admissions", slug="admissions"),
            HelpCategory(id=2, name="Archived", slug="archived", is_active=False),
        ]
        return tuple(c for c in categories if include_inactive or c.is_active)

    async def list_faqs(self, params):
        self.faq_calls.append(params)
        faq = FAQ(id=1, category_id=1, question="How do I apply?", answer="Online.", is_featured=True)
        return FAQPage(faqs=(faq,), featured=(faq,), page=1, last_page=1, per_page=15, total=1)


# ========== Fixtures ==========

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def notifier(sink):
    return Notifier(sink)


@pytest.fixture
def policy():
    return CachePolicy(
        namespaces={
            "specializations": 120,
            "workload": 120,
            "staff": 300,
            "tickets": 60,
            "help:categories": 1800,
            "help:faqs": 900,
        },
        default_ttl=600,
    )


@pytest.fixture
def cache(policy, clock):
    return StaleCache(policy, clock=clock)


@pytest.fixture
def reader(cache, clock):
    return CachedReader(cache, RequestCoalescer(2.0, clock=clock))


@pytest.fixture
def records():
    return [
        make_record(id=1, counselor_id=10, category_id=100, current_workload=0),
        make_record(
            id=2, counselor_id=11, category_id=100, priority_tier="backup",
            max_workload=5, current_workload=4, expertise_rating=3,
            counselor_name="Bo Lindqvist", counselor_email="bo@example.edu",
        ),
        make_record(
            id=3, counselor_id=10, category_id=200, priority_tier="secondary",
            max_workload=10, current_workload=10, category_name="Financial Aid",
        ),
        make_record(
            id=4, counselor_id=12, category_id=200, is_available=False,
            counselor_name="Chen Wei", counselor_email="chen@example.edu",
            category_name="Financial Aid", notes="Part-time",
        ),
    ]


@pytest.fixture
def spec_gateway(records):
    return FakeSpecializationGateway(records)


@pytest.fixture
def ticket_gateway():
    return FakeTicketGateway()


@pytest.fixture
def catalog_gateway():
    return FakeCatalogGateway()


@pytest.fixture
def bulk(ticket_gateway, reader, notifier):
    return BulkAssignmentCoordinator(ticket_gateway, reader, notifier, max_concurrency=2, actor=ADMIN)


@pytest.fixture
def registry(spec_gateway, reader, notifier, bulk):
    return SpecializationRegistry(spec_gateway, reader, notifier, bulk, actor=ADMIN)


@pytest.fixture
async def loaded_registry(registry):
    await registry.fetch_specializations()
    return registry


@pytest.fixture
def availability(registry, spec_gateway, notifier):
    return AvailabilityCoordinator(registry, spec_gateway, notifier, actor=ADMIN)


@pytest.fixture
def catalog(catalog_gateway, reader):
    return CatalogService(catalog_gateway, reader, actor=STUDENT)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        cache_policy_path=tmp_path / "cache_policy.yaml",
        cache_cleanup_interval_seconds=0,
        notification_webhook_url=None,
    )


@pytest.fixture
def container(settings, spec_gateway, ticket_gateway, catalog_gateway, sink, clock):
    return Container.build(
        settings,
        specialization_gateway=spec_gateway,
        ticket_gateway=ticket_gateway,
        catalog_gateway=catalog_gateway,
        sink=sink,
        clock=clock,
    )
