"""
Catalog Domain Layer
====================

Contains:
- Entities: HelpCategory, FAQ, FAQPage
"""

from caseflow.catalog.domain.entities import FAQ, FAQPage, HelpCategory

__all__ = [
    "HelpCategory",
    "FAQ",
    "FAQPage",
]
