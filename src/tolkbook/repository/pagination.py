import math
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Paginator(Generic[T]):
    """
    Read-only window over an ordered collection.

    Built fresh by BaseRepository.paginate(); holds the items of one page
    plus the totals needed to navigate the rest.
    """

    items: list[T] = field(default_factory=list)
    total: int = 0
    per_page: int = 15
    current_page: int = 1

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def has_more_pages(self) -> bool:
        return self.current_page < self.last_page

    @property
    def first_item(self) -> int | None:
        """1-based position of the first item on this page."""
        if not self.items:
            return None
        return (self.current_page - 1) * self.per_page + 1

    @property
    def last_item(self) -> int | None:
        if not self.items:
            return None
        return self.first_item + len(self.items) - 1

    def to_dict(self) -> dict:
        return {
            "data": list(self.items),
            "total": self.total,
            "per_page": self.per_page,
            "current_page": self.current_page,
            "last_page": self.last_page,
            "from": self.first_item,
            "to": self.last_item,
        }
