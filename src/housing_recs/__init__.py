"""
Nationality-based housing recommendations for students.

The package provides utilities for:
    * ranking the housing categories each nationality clicks most,
    * loading the housing tag catalog as a name <-> id lookup,
    * matching listings against those categories by tag name or tag id,
    * upserting the best-rated matches into every student's profile.

Storage goes through Supabase; every stage takes its store as an argument so
the job can run against substitute stores.
"""

from __future__ import annotations

from typing import Any

__all__ = ["run_pipeline"]


def run_pipeline(*args: Any, **kwargs: Any):
    """Lazy wrapper so importing housing_recs doesn't pull pandas immediately."""

    from .pipeline import run_pipeline as _run_pipeline

    return _run_pipeline(*args, **kwargs)
