from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv


CLICK_EVENT_NAME = "housing_post_click"
NATIONALITY_PARAM = "user_nationality"
CATEGORY_PARAM = "housing_category"

DEFAULT_SOURCE = "nationality_job"

# PostgREST max_rows; the server cuts longer pages without an error
MAX_PAGE_SIZE = 1000

TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class TableNames:
    """Supabase tables read and written by the job."""

    events: str = "analytics_events"
    tags: str = "housing_tags"
    listings: str = "housing_posts"
    listing_tags: str = "housing_post_tags"
    students: str = "student_users"
    profiles: str = "student_user_profiles"
    recommendations: str = "recommended_housing_posts"


@dataclass
class SupabaseSettings:
    url: Optional[str] = None
    service_role_key: Optional[str] = None

    def require(self) -> "SupabaseSettings":
        if not self.url or not self.service_role_key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in environment")
        return self


@dataclass
class JobConfig:
    """Knobs for one run of the nationality recommendation job."""

    days_window: int = 30
    top_tags_per_nationality: int = 5
    posts_per_nationality: int = 3
    page_size: int = 300
    max_page_size: int = MAX_PAGE_SIZE
    source: str = DEFAULT_SOURCE
    dry_run: bool = False
    server_ranking: bool = False
    tables: TableNames = field(default_factory=TableNames)
    supabase: SupabaseSettings = field(default_factory=SupabaseSettings)

    def __post_init__(self) -> None:
        for name in ("days_window", "top_tags_per_nationality", "posts_per_nationality", "page_size", "max_page_size"):
            value = getattr(self, name)
            if value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value}")
        if self.page_size > self.max_page_size:
            raise ValueError(f"page_size must not exceed {self.max_page_size}, got {self.page_size}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "JobConfig":
        if environ is None:
            load_dotenv()
            environ = os.environ
        max_page_size = _env_int(environ, "MAX_PAGE_SIZE", MAX_PAGE_SIZE)
        return cls(
            days_window=_env_int(environ, "DAYS_WINDOW", 30),
            top_tags_per_nationality=_env_int(environ, "TOP_TAGS_PER_NAT", 5),
            posts_per_nationality=_env_int(environ, "POSTS_PER_NAT", 3),
            page_size=_env_int(environ, "PAGE_SIZE", min(300, max_page_size), maximum=max_page_size),
            max_page_size=max_page_size,
            source=environ.get("RECOMMENDATION_SOURCE") or DEFAULT_SOURCE,
            server_ranking=(environ.get("SERVER_RANKING") or "").strip().lower() in TRUE_VALUES,
            tables=TableNames(events=environ.get("EVENTS_TABLE") or TableNames.events),
            supabase=SupabaseSettings(
                url=environ.get("SUPABASE_URL"),
                service_role_key=environ.get("SUPABASE_SERVICE_ROLE_KEY"),
            ),
        )


def _env_int(environ: Mapping[str, str], name: str, default: int, maximum: Optional[int] = None) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be a positive integer, got {value}")
    if maximum is not None and value > maximum:
        raise ValueError(f"{name} must not exceed {maximum}, got {value}")
    return value
