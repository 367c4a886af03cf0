"""Capability contracts between the sync engine and its collaborators."""

from __future__ import annotations

from typing import Protocol

from models import ArticleMetadata, FullArticle


class ArticleSource(Protocol):
    """A remote platform that can list and fetch the caller's articles.

    ``list_page`` returns at most ``page_size`` items; a shorter page is the
    final one. Failures are raised as ``SyncError`` subclasses
    (``TransportError``, ``ApiError``, ``RateLimited``, ``NotFound``).
    """

    platform: str
    page_size: int

    def list_page(self, page: int) -> list[ArticleMetadata]:
        ...

    def fetch_article(self, local_id: str) -> FullArticle:
        ...


class ArticleSink(Protocol):
    """Stores fetched articles and owns their naming."""

    def persist(self, article: FullArticle) -> str:
        """Store the article and return its sink-relative path."""
        ...

    def planned_path(self, article: FullArticle) -> str:
        """Return the path ``persist`` would use, without any I/O."""
        ...
