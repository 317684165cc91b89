"""Page window computation for paginated queries."""

import math
from dataclasses import dataclass

from stashbase.domain.entities.record import PageMeta


@dataclass(frozen=True)
class PageWindow:
    """The slice of a result set covered by one page."""

    skip: int
    limit: int
    meta: PageMeta


def paginate(total_count: int, page: int = 1, page_size: int = 30) -> PageWindow:
    """Derive the skip/limit window and page metadata for one page.

    ``total_pages`` is ``ceil(total_count / page_size)``; a page past the
    end yields a window that selects nothing.

    Raises:
        ValueError: If page or page_size is smaller than 1.
    """
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    if page < 1:
        raise ValueError("page must be at least 1")
    if total_count < 0:
        raise ValueError("total_count cannot be negative")

    total_pages = math.ceil(total_count / page_size)
    return PageWindow(
        skip=(page - 1) * page_size,
        limit=page_size,
        meta=PageMeta(page=page, page_size=page_size, total_pages=total_pages),
    )
