"""Listing-time filter: publish-date lower bound and draft policy."""

from __future__ import annotations

from datetime import UTC, date, datetime

from errors import InvalidFilter
from models import ArticleMetadata, PullFilter


def parse_since(raw: str | None) -> date | None:
    """Parse a ``--since`` value (YYYY-MM-DD). Empty or None means no bound."""
    if raw is None or not raw.strip():
        return None
    try:
        return datetime.strptime(raw.strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise InvalidFilter(f"Expected YYYY-MM-DD, got: {raw}") from exc


def passes_filter(item: ArticleMetadata, pull_filter: PullFilter) -> bool:
    """Return True if the listed item should be kept for this run.

    - Dated items strictly before ``since`` are dropped; the bound is
      inclusive and compared by UTC calendar date, not time of day.
    - Undated items always pass the date check.
    - Drafts are dropped unless ``include_drafts`` is set.
    """
    if pull_filter.since is not None and item.published_at is not None:
        if _utc_date(item.published_at) < pull_filter.since:
            return False

    if item.is_draft and not pull_filter.include_drafts:
        return False

    return True


def apply_filter(items: list[ArticleMetadata], pull_filter: PullFilter) -> list[ArticleMetadata]:
    """Filter one listing page, preserving order."""
    return [item for item in items if passes_filter(item, pull_filter)]


def _utc_date(value: datetime) -> date:
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(UTC).date()
