from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict, dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .config import JobConfig
from .events import load_ranked_top_tags, load_top_tags_by_nationality
from .matching import collect_candidates
from .tag_catalog import load_tag_catalog
from .writer import RecommendationWriter, WriteStats

LOGGER = logging.getLogger(__name__)


@dataclass
class RunSummary:
    nationalities: int = 0
    catalog_tags: int = 0
    listings_scanned: int = 0
    listings_tagged: int = 0
    candidates: Dict[str, List[str]] = field(default_factory=dict)
    writes: Optional[WriteStats] = None
    finished_early: bool = False
    dry_run: bool = False

    @property
    def upserts(self) -> int:
        return self.writes.upserts if self.writes else 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["upserts"] = self.upserts
        return data


def run_pipeline(config: JobConfig, store, today: Optional[date] = None) -> RunSummary:
    LOGGER.info(
        "Start | events=%s serverRanking=%s windowDays=%d topTags=%d postsPerNat=%d pageSize=%d dryRun=%s",
        config.tables.events,
        config.server_ranking,
        config.days_window,
        config.top_tags_per_nationality,
        config.posts_per_nationality,
        config.page_size,
        config.dry_run,
    )
    summary = RunSummary(dry_run=config.dry_run)

    load_top_tags = load_ranked_top_tags if config.server_ranking else load_top_tags_by_nationality
    top_tags = load_top_tags(
        store,
        days=config.days_window,
        top_n=config.top_tags_per_nationality,
        today=today,
        page_size=config.page_size,
    )
    summary.nationalities = len(top_tags)
    if not top_tags:
        LOGGER.info("No tags found. Finishing.")
        summary.finished_early = True
        return summary

    catalog = load_tag_catalog(store, page_size=config.page_size)
    summary.catalog_tags = len(catalog)

    scan = collect_candidates(
        top_tags,
        catalog,
        store,
        posts_per_nationality=config.posts_per_nationality,
        page_size=config.page_size,
    )
    summary.listings_scanned = scan.listings_scanned
    summary.listings_tagged = scan.listings_tagged
    summary.candidates = {nat: [p.id for p in previews] for nat, previews in scan.candidates.items()}

    if config.dry_run:
        LOGGER.info("Dry run: skipping writes for %d nationalities", len(scan.candidates))
        return summary

    writer = RecommendationWriter(store, source=config.source, page_size=config.page_size)
    summary.writes = writer.write(scan.candidates)
    LOGGER.info("Done. total upserts=%d", summary.upserts)
    return summary


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Write per-nationality housing recommendations into student profiles."
    )
    parser.add_argument("--days", type=int, default=None, help="Trailing window of click events (DAYS_WINDOW).")
    parser.add_argument("--top-tags", type=int, default=None, help="Top tags kept per nationality (TOP_TAGS_PER_NAT).")
    parser.add_argument("--posts", type=int, default=None, help="Listings recommended per nationality (POSTS_PER_NAT).")
    parser.add_argument("--page-size", type=int, default=None, help="Rows requested per page (PAGE_SIZE).")
    parser.add_argument("--dry-run", action="store_true", help="Compute candidates without writing recommendations.")
    parser.add_argument("--server-ranking", action="store_true", help="Rank tags in the database (SERVER_RANKING).")
    parser.add_argument("--summary-path", type=str, default="", help="Optional JSON file for the run summary.")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level.")
    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> JobConfig:
    config = JobConfig.from_env()
    overrides = {
        "days_window": args.days,
        "top_tags_per_nationality": args.top_tags,
        "posts_per_nationality": args.posts,
        "page_size": args.page_size,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    if args.server_ranking:
        overrides["server_ranking"] = True
    return replace(config, dry_run=args.dry_run, **overrides)


def main(argv: Optional[Sequence[str]] = None, store=None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        config = _build_config(args)
        if store is None:
            from .supabase_service import get_supabase_service

            store = get_supabase_service(config)
        summary = run_pipeline(config, store)
        if args.summary_path:
            Path(args.summary_path).write_text(json.dumps(summary.to_dict(), indent=2))
    except Exception:
        LOGGER.exception("Recommendation job failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
