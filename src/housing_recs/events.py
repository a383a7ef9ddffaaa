"""
Top housing categories per nationality, derived from click events.

Events come from the analytics table as raw rows; filtering, normalization,
counting and per-nationality ranking happen here with pandas so the same
logic runs against any event source. Large event logs can be ranked in the
database instead (see load_ranked_top_tags).
"""

from __future__ import annotations

import json
import logging
from datetime import date, timedelta
from functools import partial
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

import pandas as pd

from .config import CATEGORY_PARAM, CLICK_EVENT_NAME, NATIONALITY_PARAM
from .paging import iter_records
from .tag_catalog import normalize_label

LOGGER = logging.getLogger(__name__)

EVENT_COLUMNS = ["event_name", "nationality", "category"]
RANKED_COLUMNS = ["nationality", "category", "clicks", "rank"]

NationalityTagSet = Dict[str, FrozenSet[str]]


def _string_value(value: Any) -> Optional[str]:
    # GA4 exports wrap values as {"string_value": ..., "int_value": ...}
    if isinstance(value, dict):
        value = value.get("string_value")
    return value if isinstance(value, str) else None


def extract_param(params: Any, key: str) -> Optional[str]:
    """Read a string attribute from a flat dict or a GA4-style key/value list."""
    if isinstance(params, str):
        try:
            params = json.loads(params)
        except ValueError:
            return None
    if isinstance(params, dict):
        return _string_value(params.get(key))
    if isinstance(params, list):
        for entry in params:
            if isinstance(entry, dict) and entry.get("key") == key:
                return _string_value(entry.get("value"))
    return None


def events_frame(events: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    rows = []
    for event in events:
        params = event.get("event_params")
        rows.append(
            {
                "event_name": event.get("event_name"),
                "nationality": extract_param(params, NATIONALITY_PARAM),
                "category": extract_param(params, CATEGORY_PARAM),
            }
        )
    return pd.DataFrame(rows, columns=EVENT_COLUMNS)


def rank_top_tags(frame: pd.DataFrame, top_n: int) -> pd.DataFrame:
    """Count clicks per (nationality, category) and keep the top ``top_n`` per nationality.

    Ties on click count are broken by category name so the result does not
    depend on input order.
    """
    empty = pd.DataFrame(columns=RANKED_COLUMNS)
    if frame.empty or top_n < 1:
        return empty
    clicks = frame[frame["event_name"] == CLICK_EVENT_NAME]
    norm = pd.DataFrame(
        {
            "nationality": clicks["nationality"].map(normalize_label, na_action="ignore"),
            "category": clicks["category"].map(normalize_label, na_action="ignore"),
        }
    ).dropna()
    if norm.empty:
        return empty

    counts = norm.groupby(["nationality", "category"]).size().reset_index(name="clicks")
    counts = counts.sort_values(
        by=["nationality", "clicks", "category"],
        ascending=[True, False, True],
    )
    counts["rank"] = counts.groupby("nationality").cumcount() + 1
    ranked = counts[counts["rank"] <= top_n]
    return ranked.reset_index(drop=True)[RANKED_COLUMNS]


def top_tags_by_nationality(ranked: pd.DataFrame) -> NationalityTagSet:
    result: NationalityTagSet = {}
    if ranked.empty:
        return result
    for nationality, group in ranked.groupby("nationality", sort=True):
        result[str(nationality)] = frozenset(group["category"])
    return result


def _window(days: int, today: Optional[date]) -> Tuple[date, date]:
    date_to = today or date.today()
    return date_to - timedelta(days=days), date_to


def load_top_tags_by_nationality(
    store,
    days: int,
    top_n: int,
    today: Optional[date] = None,
    page_size: int = 300,
) -> NationalityTagSet:
    date_from, date_to = _window(days, today)
    fetch = partial(store.fetch_click_events_page, date_from, date_to)

    frame = events_frame(iter_records(fetch, page_size))
    ranked = rank_top_tags(frame, top_n)
    top_tags = top_tags_by_nationality(ranked)
    LOGGER.info(
        "Top tags computed: %d nationalities from %d events between %s and %s",
        len(top_tags),
        len(frame),
        date_from.isoformat(),
        date_to.isoformat(),
    )
    return top_tags


def load_ranked_top_tags(
    store,
    days: int,
    top_n: int,
    today: Optional[date] = None,
    page_size: int = 300,
) -> NationalityTagSet:
    """Top tags ranked by the database; one row per nationality, tags best first.

    Rows are normalized and capped again so a drifting SQL function cannot
    widen the tag sets.
    """
    date_from, date_to = _window(days, today)
    fetch = partial(store.fetch_ranked_tags_page, date_from, date_to, top_n)

    top_tags: NationalityTagSet = {}
    for row in iter_records(fetch, page_size, cursor_of=lambda r: r["nationality"]):
        nationality = normalize_label(row.get("nationality"))
        if nationality is None:
            continue
        names: List[str] = []
        for tag in row.get("tags") or []:
            name = normalize_label(tag)
            if name and name not in names:
                names.append(name)
        if names:
            top_tags[nationality] = frozenset(names[:top_n])
    LOGGER.info(
        "Top tags ranked in the database: %d nationalities between %s and %s",
        len(top_tags),
        date_from.isoformat(),
        date_to.isoformat(),
    )
    return top_tags
