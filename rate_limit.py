"""Caller-side retry policy for rate-limited sources.

The sync engine treats ``RateLimited`` as fatal. Callers that prefer to wait
can wrap their source in ``RateLimitRetryingSource``; the server's
``Retry-After`` is always honoured as a minimum, with exponential growth and
jitter on top so repeated retries do not arrive in lockstep.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, TypeVar

from contracts import ArticleSource
from errors import RateLimited
from models import ArticleMetadata, FullArticle

INITIAL_DELAY_SECONDS = 1.0
MAX_JITTER_SECONDS = 1.0
MAX_BACKOFF_SECONDS = 300.0

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(retry_after_seconds: int, attempt: int, jitter: float = 0.0) -> float:
    """Seconds to wait before retry number ``attempt`` (0-based).

    Never shorter than ``retry_after_seconds``; the exponential term alone is
    capped at ``MAX_BACKOFF_SECONDS``.
    """
    exponential = min(MAX_BACKOFF_SECONDS, INITIAL_DELAY_SECONDS * (2 ** min(attempt, 32)))
    floor = max(float(retry_after_seconds), exponential)
    return floor + max(0.0, jitter)


class RateLimitRetryingSource:
    """Wraps an ArticleSource, retrying calls that fail with ``RateLimited``."""

    def __init__(
        self,
        source: ArticleSource,
        max_retries: int,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Callable[[], float] | None = None,
    ) -> None:
        self._source = source
        self._max_retries = max(0, max_retries)
        self._sleep = sleep
        self._jitter = jitter or (lambda: random.uniform(0.0, MAX_JITTER_SECONDS))

    @property
    def platform(self) -> str:
        return self._source.platform

    @property
    def page_size(self) -> int:
        return self._source.page_size

    def list_page(self, page: int) -> list[ArticleMetadata]:
        return self._call(f"list page {page}", lambda: self._source.list_page(page))

    def fetch_article(self, local_id: str) -> FullArticle:
        return self._call(f"fetch {local_id}", lambda: self._source.fetch_article(local_id))

    def _call(self, label: str, func: Callable[[], T]) -> T:
        attempt = 0
        while True:
            try:
                return func()
            except RateLimited as exc:
                if attempt >= self._max_retries:
                    raise
                delay = backoff_delay(exc.retry_after_seconds, attempt, self._jitter())
                attempt += 1
                LOGGER.warning(
                    "Rate limited on %s, sleeping %.1fs (retry %s/%s)",
                    label,
                    delay,
                    attempt,
                    self._max_retries,
                )
                self._sleep(delay)
