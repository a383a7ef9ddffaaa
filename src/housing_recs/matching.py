"""
Per-nationality candidate listings.

Every listing is scanned once; its tags are compared against each
nationality's top tags by name and, through the tag catalog, by id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Set, Tuple

from .paging import iter_pages, iter_records
from .tag_catalog import TagCatalog, normalize_label

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListingPreview:
    """Listing fields copied into a student's recommendations."""

    id: str
    title: str = ""
    price: float = 0
    rating: float = 0
    reviews_count: int = 0
    photo_path: str = ""


@dataclass(frozen=True)
class TagMatcher:
    top_names: FrozenSet[str]
    top_ids: FrozenSet[str]

    @classmethod
    def for_tags(cls, top_names: Iterable[str], catalog: TagCatalog) -> "TagMatcher":
        names = frozenset(top_names)
        return cls(top_names=names, top_ids=frozenset(catalog.resolve_ids(names)))

    def matches(self, tag_names: Set[str], tag_ids: Set[str]) -> bool:
        # either representation is enough; listings are not tagged consistently
        return not self.top_names.isdisjoint(tag_names) or not self.top_ids.isdisjoint(tag_ids)


@dataclass
class CandidateScan:
    candidates: Dict[str, List[ListingPreview]] = field(default_factory=dict)
    listings_scanned: int = 0
    listings_tagged: int = 0


def _number(value: Any, default: float = 0) -> float:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def listing_tag_sets(tag_rows: Iterable[Dict[str, Any]]) -> Tuple[Set[str], Set[str]]:
    names: Set[str] = set()
    ids: Set[str] = set()
    for row in tag_rows:
        name = normalize_label(row.get("name"))
        if name:
            names.add(name)
        tag_id = row.get("tag_id")
        if tag_id is not None and str(tag_id).strip():
            ids.add(str(tag_id))
    return names, ids


def build_preview(listing: Dict[str, Any]) -> ListingPreview:
    return ListingPreview(
        id=str(listing["id"]),
        title=listing.get("title") or "",
        price=_number(listing.get("price")),
        rating=_number(listing.get("rating")),
        reviews_count=int(_number(listing.get("reviews_count"))),
        photo_path=listing.get("thumbnail") or listing.get("photo_path") or "",
    )


def rank_candidates(previews: Iterable[ListingPreview], limit: int) -> List[ListingPreview]:
    """Highest rating first; equal ratings keep scan order."""
    return sorted(previews, key=lambda p: p.rating, reverse=True)[:limit]


def collect_candidates(
    top_tags: Mapping[str, FrozenSet[str]],
    catalog: TagCatalog,
    store,
    posts_per_nationality: int = 3,
    page_size: int = 300,
) -> CandidateScan:
    matchers = {nat: TagMatcher.for_tags(names, catalog) for nat, names in top_tags.items()}
    scan = CandidateScan(candidates={nat: [] for nat in top_tags})

    for page in iter_pages(store.fetch_listings_page, page_size):
        for listing in page:
            scan.listings_scanned += 1
            listing_id = listing["id"]
            tag_rows = iter_records(partial(store.fetch_listing_tags_page, listing_id), page_size)
            tag_names, tag_ids = listing_tag_sets(tag_rows)
            if not tag_names and not tag_ids:
                LOGGER.debug("Listing %s has no tags, skipping", listing_id)
                continue
            scan.listings_tagged += 1

            preview = build_preview(listing)
            for nat, matcher in matchers.items():
                if matcher.matches(tag_names, tag_ids):
                    scan.candidates[nat].append(preview)

    for nat, previews in scan.candidates.items():
        scan.candidates[nat] = rank_candidates(previews, posts_per_nationality)

    LOGGER.info(
        "Candidates ready: %d listings scanned, %d tagged, %d nationalities with candidates",
        scan.listings_scanned,
        scan.listings_tagged,
        sum(1 for previews in scan.candidates.values() if previews),
    )
    return scan
