"""
Catalog Domain Entities
=======================

Near-static help content: categories and FAQs.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class HelpCategory:
    id: int
    name: str
    slug: str
    sort_order: int = 0
    is_active: bool = True
    description: Optional[str] = None
    faqs_count: int = 0


@dataclass(frozen=True)
class FAQ:
    id: int
    category_id: int
    question: str
    answer: str
    slug: str = ""
    tags: Tuple[str, ...] = field(default_factory=tuple)
    is_published: bool = True
    is_featured: bool = False
    helpful_count: int = 0
    not_helpful_count: int = 0
    view_count: int = 0

    @property
    def helpfulness_rate(self) -> float:
        """Share of helpful votes as a percentage; 0 with no votes."""
        votes = self.helpful_count + self.not_helpful_count
        if votes == 0:
            return 0.0
        return round(self.helpful_count / votes * 100, 1)


@dataclass(frozen=True)
class FAQPage:
    faqs: Tuple[FAQ, ...]
    featured: Tuple[FAQ, ...]
    page: int
    last_page: int
    per_page: int
    total: int
