"""Page arithmetic for paginated queries.

::

    page = await Query("posts").paginate(db, page=request.query.get_int("page", 1), limit=20)
    for post in page.items: ...
    for number in page.links(window=2):
        ...  # None marks a gap ("...")
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True, slots=True)
class Paginator:
    """Total, page size, and requested page, with derived page counts.

    ``pages`` is ``ceil(total / limit)``; the requested page is clamped
    into ``1..pages`` (0 when there is nothing to show) and ``offset`` is
    ``limit * (page - 1)``.
    """

    total: int
    limit: int = 10
    page: int = 1
    items: Sequence[Any] = field(default=())

    def __post_init__(self) -> None:
        total = max(self.total, 0)
        limit = max(self.limit, 0)
        pages = math.ceil(total / limit) if limit else 0
        object.__setattr__(self, "total", total)
        object.__setattr__(self, "limit", limit)
        object.__setattr__(self, "page", max(min(pages, max(self.page, 1)), 0))

    @property
    def pages(self) -> int:
        if not self.limit:
            return 0
        return math.ceil(self.total / self.limit)

    @property
    def offset(self) -> int:
        return max(self.limit * (self.page - 1), 0)

    @property
    def has_links(self) -> bool:
        return self.pages > 1

    @property
    def has_items(self) -> bool:
        return bool(self.items)

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    def with_items(self, items: Sequence[Any]) -> Paginator:
        return replace(self, items=tuple(items))

    def slice(self, data: Sequence[Any]) -> Paginator:
        """Paginate an in-memory sequence: keep only this page of *data*."""
        return self.with_items(data[self.offset : self.offset + self.limit])

    def links(self, window: int = 2) -> list[int | None]:
        """Page numbers around the current page, with the first and last.

        ``None`` marks a gap between the edges and the window::

            Paginator(total=100, limit=10, page=5).links(1)
            # [1, None, 4, 5, 6, None, 10]
        """
        if self.pages <= 1:
            return []
        start = max(1, self.page - window)
        end = min(self.pages, self.page + window)
        numbers: list[int | None] = []
        if start > 1:
            numbers.append(1)
            if start > 2:
                numbers.append(None)
        numbers.extend(range(start, end + 1))
        if end < self.pages:
            if end < self.pages - 1:
                numbers.append(None)
            numbers.append(self.pages)
        return numbers
