"""
Keyset pagination shared by every collection scan.

A page source is any callable ``fetch_page(after, limit)`` returning at most
``limit`` records ordered by their cursor, starting strictly after ``after``
(``None`` for the first page).
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, Optional

Record = Dict[str, Any]
PageFetcher = Callable[[Optional[Any], int], List[Record]]


def record_id(record: Record) -> Any:
    return record["id"]


def iter_pages(
    fetch_page: PageFetcher,
    page_size: int,
    cursor_of: Callable[[Record], Any] = record_id,
) -> Iterator[List[Record]]:
    """Yield non-empty pages until the source returns an empty or short page."""

    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")
    after: Optional[Any] = None
    while True:
        page = list(fetch_page(after, page_size))
        if not page:
            return
        if len(page) > page_size:
            raise ValueError(f"page source returned {len(page)} records for a page of {page_size}")
        yield page
        if len(page) < page_size:
            return
        after = cursor_of(page[-1])


def iter_records(
    fetch_page: PageFetcher,
    page_size: int,
    cursor_of: Callable[[Record], Any] = record_id,
) -> Iterator[Record]:
    for page in iter_pages(fetch_page, page_size, cursor_of):
        yield from page
