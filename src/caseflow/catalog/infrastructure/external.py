"""
Catalog Backing API Adapter
===========================
"""

from typing import Any, Dict, Tuple

from caseflow.shared.infrastructure.http import ApiClient, parsing_payload
from caseflow.catalog.application.services import ICatalogGateway
from caseflow.catalog.domain import FAQ, FAQPage, HelpCategory


def category_from_payload(payload: Dict[str, Any]) -> HelpCategory:
    with parsing_payload("help category"):
        return HelpCategory(
            id=int(payload["id"]),
            name=payload.get("name") or "",
            slug=payload.get("slug") or "",
            sort_order=int(payload.get("sort_order") or 0),
            is_active=bool(payload.get("is_active", True)),
            description=payload.get("description"),
            faqs_count=int(payload.get("faqs_count") or 0),
        )


def faq_from_payload(payload: Dict[str, Any]) -> FAQ:
    with parsing_payload("faq"):
        return FAQ(
            id=int(payload["id"]),
            category_id=int(payload["category_id"]),
            question=payload.get("question") or "",
            answer=payload.get("answer") or "",
            slug=payload.get("slug") or "",
            tags=tuple(payload.get("tags") or ()),
            is_published=bool(payload.get("is_published", True)),
            is_featured=bool(payload.get("is_featured", False)),
            helpful_count=int(payload.get("helpful_count") or 0),
            not_helpful_count=int(payload.get("not_helpful_count") or 0),
            view_count=int(payload.get("view_count") or 0),
        )


class HttpCatalogGateway(ICatalogGateway):
    """Help endpoints of the backing API."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def list_categories(self, include_inactive: bool) -> Tuple[HelpCategory, ...]:
        params = {"include_inactive": "true"} if include_inactive else None
        data = await self._client.get("/help/categories", params=params)
        with parsing_payload("help category list"):
            return tuple(category_from_payload(c) for c in (data or {}).get("categories", []))

    async def list_faqs(self, params: Dict[str, Any]) -> FAQPage:
        query = {k: str(v).lower() if isinstance(v, bool) else v for k, v in params.items()}
        data = await self._client.get("/help/faqs", params=query) or {}

        # Some backend versions return a bare list
        if isinstance(data, list):
            data = {"faqs": data}

        with parsing_payload("faq list"):
            faqs = tuple(faq_from_payload(f) for f in data.get("faqs", []))
            featured_payload = data.get("featured_faqs")
            featured = (
                tuple(faq_from_payload(f) for f in featured_payload)
                if featured_payload is not None
                else tuple(f for f in faqs if f.is_featured)
            )
            pagination = data.get("pagination") or {}
            return FAQPage(
                faqs=faqs,
                featured=featured,
                page=int(pagination.get("current_page", 1)),
                last_page=int(pagination.get("last_page", 1)),
                per_page=int(pagination.get("per_page", len(faqs))),
                total=int(pagination.get("total", len(faqs))),
            )
