"""
Pagination utilities for consistent pagination across list endpoints.
"""
import math
from typing import Optional

from fastapi import Query
from pydantic import BaseModel

from config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


class PageParams(BaseModel):
    """1-based page number plus page size."""
    page: int
    size: int
    search: Optional[str] = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size

    @classmethod
    def from_query(
        cls,
        page: Optional[int] = Query(1, ge=1, description="Page number, starting at 1"),
        size: Optional[int] = Query(None, ge=1, le=MAX_PAGE_SIZE, description=f"Items per page (max {MAX_PAGE_SIZE})"),
        search: Optional[str] = Query(None, description="Case-insensitive substring filter"),
    ) -> "PageParams":
        """
        Create page params from FastAPI query parameters.

        Args:
            page: Page number (defaults to 1)
            size: Items per page (defaults to DEFAULT_PAGE_SIZE, max MAX_PAGE_SIZE)
            search: Optional substring filter, blank values are ignored
        """
        return cls(
            page=page or 1,
            size=size or DEFAULT_PAGE_SIZE,
            search=(search or "").strip() or None,
        )


def page_count(count: int, size: int) -> int:
    return math.ceil(count / size) if size else 0
