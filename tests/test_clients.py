import anyio
import httpx
import pytest

from contentbot.services.errors import SearchError
from contentbot.services.image_client import ImageClient
from contentbot.services.markdown import ensure_single_intro, slugify
from contentbot.services.search_client import SearchClient


def search_client(handler, **kwargs):
    return SearchClient(api_key="k", url="https://search.example.com/search", backoff=0,
                        transport=httpx.MockTransport(handler), **kwargs)


def test_search_retries_rate_limit_then_parses():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(429)
        return httpx.Response(200, json={
            "answer": "Brew for 12-24h",
            "results": [
                {"url": "https://example.com/a", "title": "A", "content": "text"},
                {"title": "no url"},
            ],
        })

    out = anyio.run(lambda: search_client(handler).search("cold brew", exclude_domains=["bad.com"]))
    assert len(calls) == 2
    assert out.answer == "Brew for 12-24h"
    assert [s.url for s in out.results] == ["https://example.com/a"]
    assert b'"exclude_domains":["bad.com"]' in calls[0].content.replace(b" ", b"")


def test_search_gives_up_on_connection_errors():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(SearchError):
        anyio.run(lambda: search_client(handler, max_attempts=2).search("x"))


def test_search_requires_key():
    client = SearchClient(api_key="", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    with pytest.raises(SearchError):
        anyio.run(lambda: client.search("x"))


def test_image_client_maps_first_photo():
    def handler(request):
        assert request.headers["Authorization"] == "Client-ID key"
        return httpx.Response(200, json={"results": [{
            "urls": {"regular": "https://images.example.com/1.jpg"},
            "alt_description": "a glass of cold brew",
            "user": {"name": "Ana"},
        }]})

    client = ImageClient(access_key="key", transport=httpx.MockTransport(handler))
    cover = anyio.run(lambda: client.find_cover("cold brew"))
    assert cover.image_url == "https://images.example.com/1.jpg"
    assert cover.attribution == "Photo by Ana on Unsplash"


def test_image_client_without_key_returns_none():
    assert anyio.run(lambda: ImageClient(access_key="").find_cover("x")) is None


def test_slugify():
    assert slugify("Café & Crème: 10 Tips!") == "cafe-creme-10-tips"


def test_intro_goes_under_heading_once():
    content = "# Title\n\n## First"
    once = ensure_single_intro(content, "Intro text.")
    assert once == "# Title\n\nIntro text.\n\n## First"
    assert ensure_single_intro(once, "Intro text.") == once


def test_intro_without_heading_is_prepended():
    assert ensure_single_intro("Body", "Intro") == "Intro\n\nBody"


def test_search_non_json_body_is_a_search_error():
    client = search_client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(SearchError):
        anyio.run(lambda: client.search("x"))
