"""Tests for the shared HTTP fetcher."""

import httpx
import pytest
import respx

from multifeed.config import BROWSER_USER_AGENT, FEED_USER_AGENT
from multifeed.errors import NetworkError, ParseFailure
from multifeed.fetcher import FeedFetcher


URL = "https://example.com/feed.xml"


@pytest.fixture
async def fetcher():
    async with FeedFetcher(timeout=2.0) as fetcher:
        yield fetcher


class TestFetch:
    @pytest.mark.asyncio
    @respx.mock
    async def test_feed_mode_headers(self, fetcher):
        route = respx.get(URL).mock(return_value=httpx.Response(200, text="<rss/>"))

        response = await fetcher.fetch(URL)
        assert response.ok
        assert response.text == "<rss/>"

        request = route.calls.last.request
        assert request.headers["user-agent"] == FEED_USER_AGENT
        assert "application/rss+xml" in request.headers["accept"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_html_mode_headers(self, fetcher):
        route = respx.get("https://www.youtube.com/@creator").mock(return_value=httpx.Response(200, text="<html/>"))

        await fetcher.fetch("https://www.youtube.com/@creator", mode="html")
        request = route.calls.last.request
        assert request.headers["user-agent"] == BROWSER_USER_AGENT
        assert request.headers["accept"].startswith("text/html")

    @pytest.mark.asyncio
    @respx.mock
    async def test_caller_headers_override(self, fetcher):
        route = respx.get(URL).mock(return_value=httpx.Response(200))

        await fetcher.fetch(URL, headers={"Accept": "application/json"})
        assert route.calls.last.request.headers["accept"] == "application/json"

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_status_returned(self, fetcher):
        respx.get(URL).mock(return_value=httpx.Response(404, text="gone"))

        response = await fetcher.fetch(URL)
        assert response.status == 404
        assert not response.ok

    @pytest.mark.asyncio
    @respx.mock
    async def test_redirect_sets_final_url(self, fetcher):
        target = "https://feeds.example.com/main.xml"
        respx.get(URL).mock(return_value=httpx.Response(301, headers={"Location": target}))
        respx.get(target).mock(return_value=httpx.Response(
            200, text="<rss/>", headers={"Content-Type": "application/rss+xml"}
        ))

        response = await fetcher.fetch(URL)
        assert response.url == URL
        assert response.final_url == target
        assert response.was_redirected
        assert response.content_type == "application/rss+xml"

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_raises_network_error(self, fetcher):
        respx.get(URL).mock(side_effect=httpx.ConnectTimeout)

        with pytest.raises(NetworkError) as excinfo:
            await fetcher.fetch(URL)
        assert excinfo.value.url == URL
        assert "Timed out" in str(excinfo.value)

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_raises_network_error(self, fetcher):
        respx.get(URL).mock(side_effect=httpx.ConnectError)

        with pytest.raises(NetworkError):
            await fetcher.fetch(URL)


class TestFetchJson:
    @pytest.mark.asyncio
    @respx.mock
    async def test_decodes_body(self, fetcher):
        route = respx.get("https://itunes.apple.com/lookup?id=1").mock(
            return_value=httpx.Response(200, json={"resultCount": 1})
        )

        response, data = await fetcher.fetch_json("https://itunes.apple.com/lookup?id=1")
        assert response.ok
        assert data == {"resultCount": 1}
        assert route.calls.last.request.headers["accept"] == "application/json"

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_status_has_no_data(self, fetcher):
        respx.get(URL).mock(return_value=httpx.Response(500, text="oops"))

        response, data = await fetcher.fetch_json(URL)
        assert response.status == 500
        assert data is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_invalid_json(self, fetcher):
        respx.get(URL).mock(return_value=httpx.Response(200, text="<html>"))

        with pytest.raises(ParseFailure):
            await fetcher.fetch_json(URL)
