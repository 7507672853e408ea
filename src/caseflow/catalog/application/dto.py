"""
Catalog Application DTOs
========================
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class FAQSort(str, Enum):
    FEATURED = "featured"
    HELPFUL = "helpful"
    VIEWS = "views"
    NEWEST = "newest"


class FAQFilters(BaseModel):
    """FAQ listing filters. ``include_drafts`` is honored for admins only."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    category: Optional[str] = Field(default=None, description="Category slug")
    search: Optional[str] = None
    featured: Optional[bool] = None
    sort_by: FAQSort = FAQSort.FEATURED
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=15, ge=1, le=100)
    include_drafts: bool = False

    def query_params(self, allow_drafts: bool) -> Dict[str, Any]:
        params = self.model_dump(mode="json", exclude_none=True, exclude={"include_drafts"})
        if not params.get("search"):
            params.pop("search", None)
        if self.include_drafts and allow_drafts:
            params["include_drafts"] = True
        return params
