"""Shared typed models for the puller."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass(frozen=True, slots=True)
class ArticleIdentity:
    """Stable key for one remote article: ``"<platform>:<id>"``."""

    platform: str
    local_id: str

    def __str__(self) -> str:
        return f"{self.platform}:{self.local_id}"

    @classmethod
    def parse(cls, raw: str) -> ArticleIdentity:
        # Split on the last colon: custom platform keys ("custom:host") contain one.
        platform, sep, local_id = raw.rpartition(":")
        if not sep or not platform or not local_id:
            raise ValueError(f"Malformed article identity: {raw!r}")
        return cls(platform=platform, local_id=local_id)


@dataclass(frozen=True, slots=True)
class ArticleMetadata:
    """Lightweight listing record, produced only by a source listing call."""

    platform: str
    local_id: str
    title: str
    published_at: datetime | None = None
    url: str | None = None
    is_draft: bool = False

    @property
    def identity(self) -> ArticleIdentity:
        return ArticleIdentity(self.platform, self.local_id)


@dataclass(frozen=True, slots=True)
class FullArticle:
    """Complete article content as fetched from the source."""

    platform: str
    local_id: str
    title: str
    body_markdown: str
    published_at: datetime | None = None
    url: str | None = None
    tags: tuple[str, ...] = ()
    series: str | None = None
    canonical_url: str | None = None
    is_draft: bool = False

    @property
    def identity(self) -> ArticleIdentity:
        return ArticleIdentity(self.platform, self.local_id)


@dataclass(frozen=True, slots=True)
class PullFilter:
    """Listing-time policy: minimum publish date (inclusive) and draft inclusion."""

    since: date | None = None
    include_drafts: bool = True


@dataclass(frozen=True, slots=True)
class SyncRecord:
    local_path: str
    pulled_at: datetime


@dataclass(slots=True)
class SyncState:
    """Mapping of serialized ArticleIdentity to the record of its last pull."""

    pulled: dict[str, SyncRecord] = field(default_factory=dict)

    def is_pulled(self, identity: ArticleIdentity) -> bool:
        return str(identity) in self.pulled

    def get_local_path(self, identity: ArticleIdentity) -> str | None:
        record = self.pulled.get(str(identity))
        return record.local_path if record else None

    def mark_pulled(self, identity: ArticleIdentity, local_path: str, pulled_at: datetime) -> None:
        """Insert or overwrite the record for identity."""
        self.pulled[str(identity)] = SyncRecord(local_path=local_path, pulled_at=pulled_at)
