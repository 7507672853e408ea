"""
Catalog Application Layer
=========================

Contains:
- Services: CatalogService (cached category and FAQ reads)
- DTOs: FAQFilters
"""

from caseflow.catalog.application.dto import FAQFilters, FAQSort
from caseflow.catalog.application.services import CatalogService, ICatalogGateway

__all__ = [
    "FAQFilters",
    "FAQSort",
    "CatalogService",
    "ICatalogGateway",
]
