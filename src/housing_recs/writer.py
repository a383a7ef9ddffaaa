from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import DEFAULT_SOURCE
from .matching import ListingPreview
from .paging import iter_pages
from .tag_catalog import normalize_label

LOGGER = logging.getLogger(__name__)


@dataclass
class WriteStats:
    students_scanned: int = 0
    skipped_incomplete: int = 0
    skipped_no_candidates: int = 0
    skipped_no_profile: int = 0
    students_written: int = 0
    upserts: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def student_identity(record: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    """(student id, normalized nationality), or None when either is missing."""
    student_id = record.get("user_id") or record.get("id")
    nationality = normalize_label(record.get("nationality"))
    if not student_id or not nationality:
        return None
    return str(student_id), nationality


def recommendation_payload(profile_id: Any, preview: ListingPreview, source: str = DEFAULT_SOURCE) -> Dict[str, Any]:
    # updated_at is left to the database (default + update trigger)
    return {
        "profile_id": profile_id,
        "housing_post_id": preview.id,
        "housing": preview.id,
        "title": preview.title,
        "price": preview.price,
        "rating": preview.rating,
        "reviews_count": preview.reviews_count,
        "photo_path": preview.photo_path,
        "source": source,
    }


class RecommendationWriter:
    """Upserts each nationality's candidates into every matching student's profile."""

    def __init__(self, store, source: str = DEFAULT_SOURCE, page_size: int = 300):
        self.store = store
        self.source = source
        self.page_size = page_size

    def write(self, candidates: Mapping[str, Sequence[ListingPreview]]) -> WriteStats:
        stats = WriteStats()
        for page in iter_pages(self.store.fetch_students_page, self.page_size):
            for record in page:
                stats.students_scanned += 1
                self._write_student(record, candidates, stats)
        LOGGER.info(
            "Recommendations written: %d upserts for %d of %d students",
            stats.upserts,
            stats.students_written,
            stats.students_scanned,
        )
        return stats

    def _write_student(
        self,
        record: Dict[str, Any],
        candidates: Mapping[str, Sequence[ListingPreview]],
        stats: WriteStats,
    ) -> None:
        identity = student_identity(record)
        if identity is None:
            stats.skipped_incomplete += 1
            LOGGER.debug("Student row %s has no id or nationality, skipping", record.get("id"))
            return
        student_id, nationality = identity

        previews = candidates.get(nationality)
        if not previews:
            stats.skipped_no_candidates += 1
            return

        profile = self.store.find_profile_by_user(student_id)
        if profile is None:
            stats.skipped_no_profile += 1
            LOGGER.debug("No profile for student %s, skipping", student_id)
            return

        rows: List[Dict[str, Any]] = [
            recommendation_payload(profile["id"], preview, self.source) for preview in previews
        ]
        self.store.upsert_recommendations(rows)
        stats.students_written += 1
        stats.upserts += len(rows)
