"""
Application Container
=====================

Explicit, constructor-injected wiring of every service. One Container
holds one cache, one registry and one set of coordinators; nothing is a
module-level singleton, so tests and the admin API each build their own.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from caseflow.catalog.application import CatalogService, ICatalogGateway
from caseflow.catalog.infrastructure import HttpCatalogGateway
from caseflow.config import Settings, get_settings
from caseflow.core import Actor
from caseflow.shared.infrastructure.cache import CachedReader, CachePolicy, RequestCoalescer, StaleCache
from caseflow.shared.infrastructure.http import ApiClient
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.shared.infrastructure.notifications import (
    INotificationSink,
    LoggingNotificationSink,
    Notifier,
    WebhookNotificationSink,
)
from caseflow.shared.infrastructure.policy import CachePolicyManager
from caseflow.shared.infrastructure.scheduler import CacheCleanupScheduler
from caseflow.specializations.application import (
    AvailabilityCoordinator,
    ISpecializationGateway,
    SpecializationRegistry,
)
from caseflow.specializations.infrastructure import HttpSpecializationGateway
from caseflow.tickets.application import BulkAssignmentCoordinator, ITicketGateway, TicketService
from caseflow.tickets.infrastructure import HttpTicketGateway

logger = get_logger(__name__)


@dataclass
class Container:
    settings: Settings
    cache: StaleCache
    reader: CachedReader
    notifier: Notifier
    sink: INotificationSink
    registry: SpecializationRegistry
    availability: AvailabilityCoordinator
    bulk: BulkAssignmentCoordinator
    tickets: TicketService
    catalog: CatalogService
    scheduler: CacheCleanupScheduler
    policy_manager: CachePolicyManager
    api_client: Optional[ApiClient] = None

    @classmethod
    def build(
        cls,
        settings: Optional[Settings] = None,
        *,
        specialization_gateway: Optional[ISpecializationGateway] = None,
        ticket_gateway: Optional[ITicketGateway] = None,
        catalog_gateway: Optional[ICatalogGateway] = None,
        sink: Optional[INotificationSink] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        actor: Optional[Actor] = None
    ) -> "Container":
        """
        Wire the application. Gateways default to the HTTP adapters over a
        shared ApiClient; pass fakes to run without a backing API.
        """
        settings = settings or get_settings()
        actor = actor or Actor.system()

        cache = StaleCache(CachePolicy.from_settings(settings), clock=clock)
        reader = CachedReader(cache, RequestCoalescer(settings.coalesce_window_seconds, clock=clock))

        if sink is None:
            if settings.notification_webhook_url:
                sink = WebhookNotificationSink(
                    settings.notification_webhook_url,
                    timeout=settings.notification_timeout_seconds,
                )
            else:
                sink = LoggingNotificationSink()
        notifier = Notifier(sink)

        api_client = None
        if None in (specialization_gateway, ticket_gateway, catalog_gateway):
            api_client = ApiClient.from_settings(settings, transport=transport)
        specialization_gateway = specialization_gateway or HttpSpecializationGateway(api_client)
        ticket_gateway = ticket_gateway or HttpTicketGateway(api_client)
        catalog_gateway = catalog_gateway or HttpCatalogGateway(api_client)

        bulk = BulkAssignmentCoordinator(
            ticket_gateway, reader, notifier,
            max_concurrency=settings.bulk_max_concurrency,
            actor=actor,
        )
        registry = SpecializationRegistry(specialization_gateway, reader, notifier, bulk, actor=actor)

        return cls(
            settings=settings,
            cache=cache,
            reader=reader,
            notifier=notifier,
            sink=sink,
            registry=registry,
            availability=AvailabilityCoordinator(registry, specialization_gateway, notifier, actor=actor),
            bulk=bulk,
            tickets=TicketService(ticket_gateway, reader),
            catalog=CatalogService(catalog_gateway, reader, actor=actor),
            scheduler=CacheCleanupScheduler(cache, settings.cache_cleanup_interval_seconds),
            policy_manager=CachePolicyManager(cache, cache.policy),
            api_client=api_client,
        )

    async def start(self) -> None:
        """Load the TTL policy file, start watching it and start the cleanup sweep."""
        self.policy_manager.load(self.settings.cache_policy_path)
        self.policy_manager.start_watching()
        await self.scheduler.start()
        logger.info("Container started", extra={"cache_namespaces": self.cache.policy.namespaces})

    async def stop(self) -> None:
        await self.scheduler.stop()
        self.policy_manager.stop_watching()
        if isinstance(self.sink, WebhookNotificationSink):
            await self.sink.close()
        if self.api_client is not None:
            await self.api_client.close()
        logger.info("Container stopped")
