"""
Catalog Infrastructure Layer
============================

Backing API adapter implementing ICatalogGateway.
"""

from caseflow.catalog.infrastructure.external import (
    HttpCatalogGateway,
    category_from_payload,
    faq_from_payload,
)

__all__ = [
    "HttpCatalogGateway",
    "category_from_payload",
    "faq_from_payload",
]
