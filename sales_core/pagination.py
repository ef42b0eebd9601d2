"""
Pagination parameters and the paginated result envelope shared by every
list query.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from .config import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from .errors import InvalidPaginationError

T = TypeVar("T")


@dataclass(frozen=True)
class PaginationParams:
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    def validate(self, max_page_size: int = MAX_PAGE_SIZE) -> "PaginationParams":
        """Raise InvalidPaginationError unless page >= 1 and 1 <= page_size <= max_page_size."""
        if self.page < 1 or self.page_size < 1 or self.page_size > max_page_size:
            raise InvalidPaginationError(self.page, self.page_size, max_page_size)
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


def total_pages(total_items: int, page_size: int) -> int:
    """ceil(total_items / page_size); 0 when there are no items."""
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    return math.ceil(total_items / page_size)


@dataclass
class PaginatedResult(Generic[T]):
    items: List[T] = field(default_factory=list)
    total_items: int = 0
    current_page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE
    total_pages: int = 0

    @classmethod
    def build(cls, items: List[T], total_items: int, params: PaginationParams) -> "PaginatedResult[T]":
        return cls(
            items=items,
            total_items=total_items,
            current_page=params.page,
            page_size=params.page_size,
            total_pages=total_pages(total_items, params.page_size),
        )

    def as_dict(self, item_serializer: Optional[Callable[[T], Any]] = None) -> Dict[str, Any]:
        """Envelope with camelCase keys as consumed by the presentation layer."""
        items = [item_serializer(i) for i in self.items] if item_serializer else list(self.items)
        return {
            "items": items,
            "totalItems": self.total_items,
            "currentPage": self.current_page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
        }
