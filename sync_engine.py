"""Incremental pull: list -> filter -> dedup -> fetch -> persist -> record.

Processing is strictly sequential. After every successfully persisted
article the state is committed, so at any point the state file names
exactly the articles that are on disk and an aborted run never causes a
re-fetch of work it already finished.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from contracts import ArticleSink, ArticleSource
from filters import apply_filter
from models import ArticleIdentity, ArticleMetadata, PullFilter, SyncState

LOGGER = logging.getLogger(__name__)


class StateStore(Protocol):
    def load(self) -> SyncState:
        ...

    def save(self, state: SyncState) -> None:
        ...


@dataclass(frozen=True, slots=True)
class SyncOptions:
    pull_filter: PullFilter = field(default_factory=PullFilter)
    force: bool = False
    dry_run: bool = False


@dataclass(frozen=True, slots=True)
class SkippedArticle:
    identity: ArticleIdentity
    title: str
    local_path: str | None


@dataclass(slots=True)
class SyncReport:
    """Outcome of one run, in canonical (listing) order."""

    total: int = 0
    pulled: list[str] = field(default_factory=list)
    skipped: list[SkippedArticle] = field(default_factory=list)
    would_write: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def pulled_count(self) -> int:
        return len(self.pulled)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def collect_articles(source: ArticleSource, pull_filter: PullFilter) -> list[ArticleMetadata]:
    """Page through the source listing and return filtered items in listing order.

    A page shorter than ``source.page_size`` is the last one. Each page is
    filtered before the next is requested.
    """
    collected: list[ArticleMetadata] = []
    page = 1

    while True:
        items = source.list_page(page)
        kept = apply_filter(items, pull_filter)
        collected.extend(kept)
        LOGGER.debug("Listing page=%s raw=%s kept=%s", page, len(items), len(kept))

        if len(items) < source.page_size:
            break
        page += 1

    return collected


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SyncEngine:
    """Runs one pull against a source, a sink and a state store."""

    def __init__(
        self,
        source: ArticleSource,
        sink: ArticleSink,
        store: StateStore,
        options: SyncOptions,
    ) -> None:
        self.source = source
        self.sink = sink
        self.store = store
        self.options = options

    def run(self) -> SyncReport:
        dry_run = self.options.dry_run
        state = self.store.load()

        LOGGER.info("Fetching article list from %s...", self.source.platform)
        articles = collect_articles(self.source, self.options.pull_filter)
        LOGGER.info("Found %s articles", len(articles))

        report = SyncReport(total=len(articles), dry_run=dry_run)

        for meta in articles:
            identity = meta.identity

            if not self.options.force and state.is_pulled(identity):
                local_path = state.get_local_path(identity)
                LOGGER.info("Skipping: %s (already at %s)", meta.title, local_path)
                report.skipped.append(SkippedArticle(identity, meta.title, local_path))
                continue

            LOGGER.info("Pulling: %s", meta.title)
            article = self.source.fetch_article(identity.local_id)

            if dry_run:
                relative_path = self.sink.planned_path(article)
                report.would_write.append(relative_path)
                LOGGER.info("Would write: %s", relative_path)
            else:
                relative_path = self.sink.persist(article)
                state.mark_pulled(identity, relative_path, _utcnow())
                self.store.save(state)
                LOGGER.info("Wrote: %s", relative_path)

            report.pulled.append(relative_path)

        if not dry_run:
            self.store.save(state)

        LOGGER.info(
            "Done! Pulled: %s, Skipped: %s, Total: %s%s",
            report.pulled_count,
            report.skipped_count,
            report.total,
            " (dry-run, nothing written)" if dry_run else "",
        )
        return report
