import itertools
from datetime import date
from typing import Any, Dict, List, Optional

import pytest

from housing_recs.config import JobConfig
from housing_recs.events import events_frame, rank_top_tags


class InMemoryStore:
    """Store double with the same keyset-paged methods as SupabaseService."""

    def __init__(self, events=None, tags=None, listings=None, listing_tags=None,
                 students=None, profiles=None):
        self.events: List[Dict[str, Any]] = list(events or [])
        self.tags: List[Dict[str, Any]] = list(tags or [])
        self.listings: List[Dict[str, Any]] = list(listings or [])
        # listing id -> tag rows
        self.listing_tags: Dict[Any, List[Dict[str, Any]]] = dict(listing_tags or {})
        self.students: List[Dict[str, Any]] = list(students or [])
        self.profiles: List[Dict[str, Any]] = list(profiles or [])
        self.recommendations: Dict[tuple, Dict[str, Any]] = {}
        self.upsert_calls: List[List[Dict[str, Any]]] = []
        self.page_calls: List[tuple] = []
        self._clock = itertools.count(1)

    @staticmethod
    def _page(rows, after, limit):
        ordered = sorted(rows, key=lambda r: r["id"])
        if after is not None:
            ordered = [r for r in ordered if r["id"] > after]
        return [dict(r) for r in ordered[:limit]]

    def fetch_click_events_page(self, date_from: date, date_to: date, after: Optional[Any], limit: int):
        self.page_calls.append(("events", after, limit))
        rows = [
            e for e in self.events
            if date_from.isoformat() <= e.get("event_date", date_to.isoformat()) <= date_to.isoformat()
        ]
        return self._page(rows, after, limit)

    def fetch_ranked_tags_page(self, date_from: date, date_to: date, top_n: int, after: Optional[str], limit: int):
        self.page_calls.append(("ranked_tags", after, limit))
        events = [
            e for e in self.events
            if date_from.isoformat() <= e.get("event_date", date_to.isoformat()) <= date_to.isoformat()
        ]
        ranked = rank_top_tags(events_frame(events), top_n)
        rows = [
            {"nationality": nat, "tags": list(group.sort_values("rank")["category"])}
            for nat, group in ranked.groupby("nationality", sort=True)
        ]
        if after is not None:
            rows = [r for r in rows if r["nationality"] > after]
        return rows[:limit]

    def fetch_tags_page(self, after, limit):
        self.page_calls.append(("tags", after, limit))
        return self._page(self.tags, after, limit)

    def fetch_listings_page(self, after, limit):
        self.page_calls.append(("listings", after, limit))
        return self._page(self.listings, after, limit)

    def fetch_listing_tags_page(self, listing_id, after, limit):
        return self._page(self.listing_tags.get(listing_id, []), after, limit)

    def fetch_students_page(self, after, limit):
        self.page_calls.append(("students", after, limit))
        return self._page(self.students, after, limit)

    def find_profile_by_user(self, user_id):
        for profile in self.profiles:
            if str(profile.get("user_id")) == str(user_id):
                return dict(profile)
        return None

    def upsert_recommendations(self, rows):
        self.upsert_calls.append([dict(r) for r in rows])
        stamp = next(self._clock)
        for row in rows:
            key = (row["profile_id"], row["housing_post_id"])
            merged = dict(self.recommendations.get(key, {}))
            merged.update(row)
            merged["updated_at"] = stamp
            self.recommendations[key] = merged
        return len(rows)


def click(nationality, category, event_date="2026-10-10", event_id=None, name="housing_post_click"):
    return {
        "id": event_id,
        "event_name": name,
        "event_date": event_date,
        "event_params": {"user_nationality": nationality, "housing_category": category},
    }


def numbered(rows):
    """Assign sequential ids to event rows that have none."""
    for index, row in enumerate(rows, start=1):
        if row.get("id") is None:
            row["id"] = index
    return rows


@pytest.fixture
def today():
    return date(2026, 10, 18)


@pytest.fixture
def scenario_store():
    """30-day window, DE clicks studio > shared > loft, three tagged listings."""
    events = (
        [click("DE", "studio") for _ in range(10)]
        + [click(" de ", "Shared") for _ in range(7)]
        + [click("De", "loft") for _ in range(3)]
    )
    return InMemoryStore(
        events=numbered(events),
        tags=[
            {"id": "t1", "name": "Studio"},
            {"id": "t2", "name": "loft"},
            {"id": "t3", "name": "shared"},
            {"id": "t4", "name": "gym"},
        ],
        listings=[
            {"id": "l1", "title": "Studio near campus", "price": 650, "rating": 4.5, "reviews_count": 12, "thumbnail": "l1.jpg"},
            {"id": "l2", "title": "Loft", "price": 900, "rating": 4.9, "reviews_count": 3, "photo_path": "l2.jpg"},
            {"id": "l3", "title": "Shared flat", "price": 400, "rating": 3.0},
        ],
        listing_tags={
            "l1": [{"id": 1, "tag_id": "t1", "name": "studio"}],
            "l2": [{"id": 2, "tag_id": "t2", "name": "loft"}],
            "l3": [{"id": 3, "tag_id": "t3", "name": "shared"}, {"id": 4, "tag_id": "t4", "name": "gym"}],
        },
        students=[
            {"id": "s1", "nationality": "DE"},
            {"id": "s2", "user_id": "u2", "nationality": " de"},
            {"id": "s3", "nationality": "FR"},
            {"id": "s4", "nationality": None},
            {"id": "s5", "nationality": "DE"},
        ],
        profiles=[
            {"id": 101, "user_id": "s1"},
            {"id": 102, "user_id": "u2"},
            {"id": 103, "user_id": "s3"},
        ],
    )


@pytest.fixture
def scenario_config():
    return JobConfig(days_window=30, top_tags_per_nationality=2, posts_per_nationality=3, page_size=2)
