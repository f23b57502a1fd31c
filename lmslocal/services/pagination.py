import math
from typing import Any, List, Optional, Sequence

from lmslocal.core.config import settings
from lmslocal.schemas.standings_schemas import PageSlice


def paginate(
    sorted_players: Sequence[Any],
    page: int = 1,
    page_size: Optional[int] = None,
    threshold: Optional[int] = None,
) -> PageSlice:
    """
    Returns one 1-based page of an already sorted list.

    Short lists (fewer than `threshold` entries) are never split: page 1 holds
    everything. Pages outside [1, total_pages] raise ValueError.
    """
    page_size = page_size or settings.STANDINGS_PAGE_SIZE
    threshold = threshold or settings.STANDINGS_PAGINATION_THRESHOLD
    if page_size < 1:
        raise ValueError("page_size must be at least 1.")

    total = len(sorted_players)
    if total < threshold:
        if page != 1:
            raise ValueError(f"Page {page} out of range (1-1).")
        return PageSlice(items=list(sorted_players), page=1, page_size=page_size,
                         total=total, total_pages=1, paginated=False)

    total_pages = math.ceil(total / page_size)
    if page < 1 or page > total_pages:
        raise ValueError(f"Page {page} out of range (1-{total_pages}).")

    start = (page - 1) * page_size
    return PageSlice(
        items=list(sorted_players[start:start + page_size]),
        page=page,
        page_size=page_size,
        total=total,
        total_pages=total_pages,
        paginated=True,
    )


class Paginator:
    """Holds the page a view is on. Replacing the data always goes back to page 1."""

    def __init__(self, items: Sequence[Any] = (), page_size: Optional[int] = None,
                 threshold: Optional[int] = None):
        self.page_size = page_size
        self.threshold = threshold
        self._items: List[Any] = list(items)
        self._page = 1

    @property
    def page(self) -> int:
        return self._page

    def set_items(self, items: Sequence[Any]) -> None:
        self._items = list(items)
        self._page = 1

    def go_to(self, page: int) -> PageSlice:
        current = paginate(self._items, page, self.page_size, self.threshold)
        self._page = current.page
        return current

    def current(self) -> PageSlice:
        return paginate(self._items, self._page, self.page_size, self.threshold)
