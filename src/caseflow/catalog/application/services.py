"""
Catalog Application Services
============================

Help categories and FAQs change rarely, so they sit behind the longest
cache TTLs. Invalidation here touches only the ``help`` namespace.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from caseflow.config import CacheNamespace
from caseflow.core import Actor, parse_model
from caseflow.shared.infrastructure.cache import CachedReader, CacheRead, cache_key
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.catalog.application.dto import FAQFilters
from caseflow.catalog.domain import FAQPage, HelpCategory

logger = get_logger(__name__)


# ========== Gateway Interfaces (Dependency Inversion) ==========

class ICatalogGateway(ABC):
    """Interface for help catalog access on the backing API."""

    @abstractmethod
    async def list_categories(self, include_inactive: bool) -> Tuple[HelpCategory, ...]:
        """Help categories, active only unless ``include_inactive``."""

    @abstractmethod
    async def list_faqs(self, params: Dict[str, Any]) -> FAQPage:
        """One page of FAQs."""


# ========== Application Services ==========

class CatalogService:
    """Cached reads of the help catalog."""

    def __init__(self, gateway: ICatalogGateway, reader: CachedReader, actor: Optional[Actor] = None):
        self._gateway = gateway
        self._reader = reader
        self._actor = actor or Actor.system()

    async def get_categories(
        self,
        include_inactive: bool = False,
        force_refresh: bool = False,
        actor: Optional[Actor] = None
    ) -> CacheRead:
        # Non-admins silently get the active list
        include_inactive = include_inactive and (actor or self._actor).is_admin
        key = cache_key(CacheNamespace.HELP_CATEGORIES, params={"include_inactive": include_inactive})
        return await self._reader.read(
            key,
            lambda: self._gateway.list_categories(include_inactive),
            force_refresh=force_refresh
        )

    async def get_faqs(
        self,
        filters: Union[FAQFilters, Mapping[str, Any], None] = None,
        force_refresh: bool = False,
        actor: Optional[Actor] = None
    ) -> CacheRead:
        filters = parse_model(FAQFilters, filters or {})
        params = filters.query_params(allow_drafts=(actor or self._actor).is_admin)
        key = cache_key(CacheNamespace.HELP_FAQS, params=params)
        return await self._reader.read(
            key,
            lambda: self._gateway.list_faqs(params),
            force_refresh=force_refresh
        )

    def invalidate(self) -> int:
        removed = self._reader.cache.invalidate(CacheNamespace.HELP)
        logger.info("Help catalog cache invalidated", extra={"removed": removed})
        return removed
