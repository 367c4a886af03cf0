from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
import requests

from errors import ApiError, ConfigError, NotFound, RateLimited, TransportError
from forem_client import KNOWN_INSTANCES, PAGE_SIZE, ForemSource, parse_instance
from models import PullFilter
from sync_engine import collect_articles


def _mock_resp(payload=None, status_code: int = 200, headers: dict | None = None, text: str = "") -> MagicMock:
    """Return a mock requests.Response."""
    mock = MagicMock()
    mock.status_code = status_code
    mock.ok = 200 <= status_code < 400
    mock.headers = headers or {}
    mock.text = text
    mock.json.return_value = payload
    return mock


def _source(*responses) -> tuple[ForemSource, MagicMock]:
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = list(responses)
    return ForemSource(api_key="secret", instance=KNOWN_INSTANCES["devto"], session=session), session


LIST_ITEM = {
    "id": 123,
    "title": "Test Article",
    "published": True,
    "published_at": "2024-03-15T10:00:00Z",
    "url": "https://dev.to/user/test-article",
    "body_markdown": "Hello",
    "tag_list": ["python"],
}

DRAFT_ITEM = {
    "id": 456,
    "title": "My Draft",
    "published": False,
    "published_at": None,
    "url": "https://dev.to/user/my-draft-temp-slug",
    "body_markdown": "Draft body",
    "tag_list": "rust, cli",
}


def test_list_page_parses_items() -> None:
    source, session = _source(_mock_resp([LIST_ITEM, DRAFT_ITEM]))

    items = source.list_page(1)

    assert [i.local_id for i in items] == ["123", "456"]
    assert items[0].platform == "devto"
    assert items[0].published_at == datetime(2024, 3, 15, 10, 0, tzinfo=UTC)
    assert items[0].is_draft is False
    assert items[1].published_at is None
    assert items[1].is_draft is True

    _, kwargs = session.get.call_args
    assert kwargs["params"] == {"page": 1, "per_page": PAGE_SIZE}
    assert kwargs["headers"] == {"api-key": "secret"}
    assert session.get.call_args.args[0] == "https://dev.to/api/articles/me/all"


def test_session_sends_forem_accept_header() -> None:
    source, session = _source()
    assert session.headers["Accept"] == "application/vnd.forem.api-v1+json"
    assert source.page_size == PAGE_SIZE


def test_fetch_article_maps_full_payload() -> None:
    payload = {
        "id": 123,
        "title": "Test Article",
        "body_markdown": "Hello, world!",
        "published_at": "2024-03-15T10:00:00Z",
        "url": "https://dev.to/user/test-article",
        "tags": ["rust", "cli"],
        "tag_list": "rust, cli",
        "series": {"name": "Rust CLI"},
        "canonical_url": "https://example.com/test-article",
    }
    source, session = _source(_mock_resp(payload))

    article = source.fetch_article("123")

    assert session.get.call_args.args[0] == "https://dev.to/api/articles/123"
    assert article.identity.platform == "devto"
    assert article.body_markdown == "Hello, world!"
    assert article.tags == ("rust", "cli")
    assert article.series == "Rust CLI"
    assert article.canonical_url == "https://example.com/test-article"
    assert article.is_draft is False


def test_draft_fetch_is_served_from_listing_cache() -> None:
    source, session = _source(_mock_resp([DRAFT_ITEM]))
    source.list_page(1)

    article = source.fetch_article("456")

    assert session.get.call_count == 1
    assert article.body_markdown == "Draft body"
    assert article.tags == ("rust", "cli")
    assert article.is_draft is True
    assert article.published_at is None


def test_rate_limited_uses_retry_after_header() -> None:
    source, _ = _source(_mock_resp(status_code=429, headers={"retry-after": "17"}))

    with pytest.raises(RateLimited) as excinfo:
        source.list_page(1)

    assert excinfo.value.retry_after_seconds == 17


def test_rate_limited_defaults_to_sixty_seconds() -> None:
    source, _ = _source(_mock_resp(status_code=429, headers={"retry-after": "soon"}))

    with pytest.raises(RateLimited) as excinfo:
        source.fetch_article("1")

    assert excinfo.value.retry_after_seconds == 60


def test_fetch_404_raises_not_found() -> None:
    source, _ = _source(_mock_resp(status_code=404))

    with pytest.raises(NotFound) as excinfo:
        source.fetch_article("999")

    assert excinfo.value.identity == "devto:999"


def test_listing_404_is_api_error() -> None:
    source, _ = _source(_mock_resp(status_code=404, text="missing"))

    with pytest.raises(ApiError):
        source.list_page(1)


def test_server_error_raises_api_error_with_body() -> None:
    source, _ = _source(_mock_resp(status_code=500, text="oops"))

    with pytest.raises(ApiError, match="500: oops") as excinfo:
        source.list_page(1)

    assert excinfo.value.status_code == 500


def test_request_exception_raises_transport_error() -> None:
    source, _ = _source(requests.ConnectionError("refused"))

    with pytest.raises(TransportError):
        source.list_page(1)


def test_invalid_json_raises_api_error() -> None:
    response = _mock_resp()
    response.json.side_effect = ValueError("no json")
    source, _ = _source(response)

    with pytest.raises(ApiError):
        source.fetch_article("1")


def test_unexpected_listing_shape_raises_api_error() -> None:
    source, _ = _source(_mock_resp({"error": "nope"}))

    with pytest.raises(ApiError):
        source.list_page(1)


@pytest.mark.parametrize("bad_item", [{"title": "no id"}, "not-an-object", {"id": None}])
def test_listing_item_without_id_raises_api_error(bad_item) -> None:
    payload = [dict(LIST_ITEM, id=i) for i in range(PAGE_SIZE - 1)] + [bad_item]
    source, _ = _source(_mock_resp(payload))

    with pytest.raises(ApiError):
        source.list_page(1)


def test_collect_articles_reaches_page_after_full_page() -> None:
    first = [dict(LIST_ITEM, id=i) for i in range(PAGE_SIZE)]
    second = [dict(LIST_ITEM, id=PAGE_SIZE)]
    source, session = _source(_mock_resp(first), _mock_resp(second))

    articles = collect_articles(source, PullFilter())

    assert session.get.call_count == 2
    assert articles[-1].local_id == str(PAGE_SIZE)


def test_collect_articles_fails_instead_of_truncating_on_bad_item() -> None:
    first = [dict(LIST_ITEM, id=i) for i in range(PAGE_SIZE - 1)] + [{"title": "no id"}]
    second = [dict(LIST_ITEM, id=PAGE_SIZE)]
    source, _ = _source(_mock_resp(first), _mock_resp(second))

    with pytest.raises(ApiError):
        collect_articles(source, PullFilter())


@pytest.mark.parametrize("raw,key", [
    ("devto", "devto"),
    ("dev.to", "devto"),
    ("DEV", "devto"),
    ("vibe", "vibe"),
    ("vibeforem", "vibe"),
    ("vibe.forem", "vibe"),
    ("vibe.forem.com", "vibe"),
    ("hmpljs", "hmpljs"),
    ("dumb.dev.to", "dumbdev"),
])
def test_parse_instance_aliases(raw: str, key: str) -> None:
    assert parse_instance(raw).key == key


def test_parse_custom_instance() -> None:
    instance = parse_instance("custom:my-community.forem.com")
    assert instance.key == "custom:my-community.forem.com"
    assert instance.base_url == "https://my-community.forem.com/api"
    assert instance.display_name == "Forem (my-community.forem.com)"


@pytest.mark.parametrize("raw", ["custom:", "unknown"])
def test_parse_instance_rejects_bad_values(raw: str) -> None:
    with pytest.raises(ConfigError):
        parse_instance(raw)
