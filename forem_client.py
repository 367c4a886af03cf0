"""Forem (dev.to and sibling communities) article source."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from json import JSONDecodeError
from typing import Any

import requests

from errors import ApiError, ConfigError, NotFound, RateLimited, TransportError
from models import ArticleMetadata, FullArticle

PAGE_SIZE = 100
REQUEST_TIMEOUT_SECONDS = 30
DEFAULT_RETRY_AFTER_SECONDS = 60
USER_AGENT = "puller/0.1.0"
FOREM_ACCEPT = "application/vnd.forem.api-v1+json"

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ForemInstance:
    """One Forem community: ``key`` is the platform half of an article identity."""

    key: str
    domain: str
    display_name: str

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}/api"


KNOWN_INSTANCES: dict[str, ForemInstance] = {
    "devto": ForemInstance("devto", "dev.to", "Dev.to"),
    "vibe": ForemInstance("vibe", "vibe.forem.com", "Vibe Forem"),
    "open": ForemInstance("open", "open.forem.com", "Open Forem"),
    "future": ForemInstance("future", "future.forem.com", "Future Forem"),
    "gg": ForemInstance("gg", "gg.forem.com", "GG Forem"),
    "music": ForemInstance("music", "music.forem.com", "Music Forem"),
    "popcorn": ForemInstance("popcorn", "popcorn.forem.com", "Popcorn Forem"),
    "design": ForemInstance("design", "design.forem.com", "Design Forem"),
    "zeroday": ForemInstance("zeroday", "zeroday.forem.com", "Zeroday Forem"),
    "golf": ForemInstance("golf", "golf.forem.com", "Golf Forem"),
    "crypto": ForemInstance("crypto", "crypto.forem.com", "Crypto Forem"),
    "parenting": ForemInstance("parenting", "parenting.forem.com", "Parenting Forem"),
    "core": ForemInstance("core", "core.forem.com", "Core Forem"),
    "maker": ForemInstance("maker", "maker.forem.com", "Maker Forem"),
    "hmpljs": ForemInstance("hmpljs", "hmpljs.forem.com", "HMPL.js Forem"),
    "dumbdev": ForemInstance("dumbdev", "dumb.dev.to", "Dumb Dev"),
}

_ALIASES: dict[str, str] = {"dev.to": "devto", "dev": "devto", "vibeforem": "vibe", "dumb.dev": "dumbdev"}
for _key, _instance in KNOWN_INSTANCES.items():
    _ALIASES[_instance.domain] = _key
    if _instance.domain.endswith(".forem.com"):
        _ALIASES[_instance.domain.removesuffix(".com")] = _key


def parse_instance(raw: str) -> ForemInstance:
    """Resolve a ``--platform`` value such as ``devto``, ``vibe.forem.com`` or ``custom:host``."""
    value = raw.strip().lower()

    if value.startswith("custom:"):
        domain = value.removeprefix("custom:")
        if not domain:
            raise ConfigError("Custom Forem instance requires a domain")
        return ForemInstance(f"custom:{domain}", domain, f"Forem ({domain})")

    key = value if value in KNOWN_INSTANCES else _ALIASES.get(value)
    if key is None:
        raise ConfigError(f"Unknown Forem instance: {raw}")
    return KNOWN_INSTANCES[key]


class ForemSource:
    """Lists and fetches the authenticated user's articles on one Forem instance.

    Unpublished articles are not served by the single-article endpoint, so
    drafts seen while listing are cached and returned from ``fetch_article``.
    """

    page_size = PAGE_SIZE

    def __init__(
        self,
        api_key: str,
        instance: ForemInstance,
        session: requests.Session | None = None,
    ) -> None:
        self.instance = instance
        self._api_key = api_key
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": FOREM_ACCEPT, "User-Agent": USER_AGENT})
        self._draft_cache: dict[str, dict[str, Any]] = {}

    @property
    def platform(self) -> str:
        return self.instance.key

    def list_page(self, page: int) -> list[ArticleMetadata]:
        """Fetch one page of ``/articles/me/all`` (published and unpublished)."""
        url = f"{self.instance.base_url}/articles/me/all"
        payload = self._get_json(url, params={"page": page, "per_page": PAGE_SIZE})
        if not isinstance(payload, list):
            raise ApiError(f"{self.instance.display_name} returned an unexpected listing payload")

        items: list[ArticleMetadata] = []
        for raw in payload:
            if not isinstance(raw, dict) or raw.get("id") is None:
                # A dropped item would shorten the page and end the listing early.
                raise ApiError(f"{self.instance.display_name} returned a listing item without an id")
            local_id = str(raw["id"])
            is_draft = not raw.get("published", True)
            if is_draft:
                self._draft_cache[local_id] = raw
            items.append(
                ArticleMetadata(
                    platform=self.platform,
                    local_id=local_id,
                    title=_as_str(raw.get("title")) or "",
                    published_at=_parse_datetime(raw.get("published_at")),
                    url=_as_str(raw.get("url")),
                    is_draft=is_draft,
                )
            )

        LOGGER.debug(
            "%s listing: page=%s returned=%s", self.instance.display_name, page, len(items)
        )
        return items

    def fetch_article(self, local_id: str) -> FullArticle:
        cached = self._draft_cache.get(local_id)
        if cached is not None:
            LOGGER.debug("Serving draft %s:%s from listing cache", self.platform, local_id)
            return self._to_article(cached)

        url = f"{self.instance.base_url}/articles/{local_id}"
        payload = self._get_json(url, not_found_id=f"{self.platform}:{local_id}")
        if not isinstance(payload, dict):
            raise ApiError(f"{self.instance.display_name} returned an unexpected article payload")
        return self._to_article(payload)

    def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        not_found_id: str | None = None,
    ) -> Any:
        try:
            response = self._session.get(
                url,
                params=params,
                headers={"api-key": self._api_key},
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc

        if response.status_code == 404 and not_found_id is not None:
            raise NotFound(not_found_id)

        if response.status_code == 429:
            raise RateLimited(_retry_after_seconds(response))

        if not response.ok:
            raise ApiError(
                f"{self.instance.display_name} API returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except (JSONDecodeError, ValueError) as exc:
            raise ApiError(f"Invalid JSON from {url}: {exc}", status_code=response.status_code) from exc

    def _to_article(self, raw: dict[str, Any]) -> FullArticle:
        series = raw.get("series")
        if isinstance(series, dict):
            series = series.get("name")

        return FullArticle(
            platform=self.platform,
            local_id=str(raw.get("id")),
            title=_as_str(raw.get("title")) or "",
            body_markdown=raw.get("body_markdown") if isinstance(raw.get("body_markdown"), str) else "",
            published_at=_parse_datetime(raw.get("published_at")),
            url=_as_str(raw.get("url")),
            tags=_parse_tags(raw.get("tags", raw.get("tag_list"))),
            series=_as_str(series),
            canonical_url=_as_str(raw.get("canonical_url")),
            is_draft=not raw.get("published", True),
        )


def _retry_after_seconds(response: requests.Response) -> int:
    raw = response.headers.get("retry-after", "")
    try:
        return max(0, int(raw.strip()))
    except ValueError:
        return DEFAULT_RETRY_AFTER_SECONDS


def _parse_tags(value: Any) -> tuple[str, ...]:
    # /articles/{id} returns a list under "tags"; /articles/me uses "tag_list",
    # which is either a list or a comma-separated string depending on version.
    if isinstance(value, str):
        parts = value.split(",")
    elif isinstance(value, list):
        parts = [item for item in value if isinstance(item, str)]
    else:
        return ()
    return tuple(tag.strip() for tag in parts if tag.strip())


def _parse_datetime(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw:
        return None

    value = raw.replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _as_str(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None
