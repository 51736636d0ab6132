"""Feed Fetcher - shared async HTTP retrieval for every resolver.

Two request shapes are supported:
- "html": a realistic browser User-Agent, for scraping platform pages
  that block non-browser agents.
- "feed": an application User-Agent and feed Accept header, for XML
  feeds and JSON APIs.

Non-2xx responses are returned normally so callers can tell "not found"
apart from a transport failure; only timeouts and connection errors
raise NetworkError.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

from multifeed.config import BROWSER_USER_AGENT, FEED_USER_AGENT
from multifeed.errors import NetworkError, ParseFailure

logger = logging.getLogger(__name__)

FetchMode = Literal["feed", "html"]

DEFAULT_TIMEOUT = 10.0

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
FEED_ACCEPT = "application/rss+xml, application/xml, application/atom+xml, text/xml, */*"


@dataclass
class FetchResponse:
    """Raw result of one fetch.

    final_url differs from url when redirects were followed.
    """
    status: int
    text: str
    url: str
    final_url: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def was_redirected(self) -> bool:
        return self.final_url != self.url


class FeedFetcher:
    """Stateless fetcher sharing one httpx.AsyncClient.

    Usage:
        async with FeedFetcher() as fetcher:
            response = await fetcher.fetch(url, mode="html")
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        browser_user_agent: str = BROWSER_USER_AGENT,
        feed_user_agent: str = FEED_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ):
        self.timeout = timeout
        self.browser_user_agent = browser_user_agent
        self.feed_user_agent = feed_user_agent
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def __aenter__(self) -> "FeedFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def default_headers(self, mode: FetchMode) -> dict[str, str]:
        if mode == "html":
            return {
                "User-Agent": self.browser_user_agent,
                "Accept": HTML_ACCEPT,
                "Accept-Language": "en-US,en;q=0.5",
            }
        return {
            "User-Agent": self.feed_user_agent,
            "Accept": FEED_ACCEPT,
        }

    async def fetch(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        follow_redirects: bool = True,
        mode: FetchMode = "feed",
    ) -> FetchResponse:
        """Fetch a URL and return its body and final URL.

        Raises:
            NetworkError: On timeout, DNS or connection failure.
        """
        request_headers = self.default_headers(mode)
        if headers:
            request_headers.update(headers)

        try:
            response = await self.client.get(
                url,
                headers=request_headers,
                timeout=timeout if timeout is not None else self.timeout,
                follow_redirects=follow_redirects,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout fetching {url}")
            raise NetworkError(url, f"Timed out fetching {url}") from e
        except httpx.TransportError as e:
            logger.warning(f"Transport error fetching {url}: {e}")
            raise NetworkError(url, f"Failed to fetch {url}: {e}") from e

        return FetchResponse(
            status=response.status_code,
            text=response.text,
            url=url,
            final_url=str(response.url),
            headers={k.lower(): v for k, v in response.headers.items()},
        )

    async def fetch_json(self, url: str, **kwargs: Any) -> tuple[FetchResponse, Any]:
        """Fetch a URL and decode its body as JSON.

        Raises:
            NetworkError: On transport failure.
            ParseFailure: If a 2xx body is not valid JSON.
        """
        kwargs.setdefault("headers", {"Accept": "application/json"})
        response = await self.fetch(url, **kwargs)
        if not response.ok:
            return response, None
        try:
            return response, json.loads(response.text)
        except json.JSONDecodeError as e:
            raise ParseFailure(f"Invalid JSON from {url}: {e}") from e
