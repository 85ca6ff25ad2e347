"""Homepage fetching over Playwright's HTTP request context.

Pages are fetched as plain HTTP GETs (no browser page, no script
execution). The selectors are applied to the server-rendered HTML.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from playwright.async_api import APIRequestContext, Error as PlaywrightError, Playwright, async_playwright

from src.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "NewsSelectorScraper/1.0 (+https://example.com/bot)"


@dataclass
class FetchResponse:
    """Status and decoded body of one fetch."""

    status: int
    body: str


class PageFetcher:
    """Async HTTP fetcher. Use as an async context manager or call start()/close()."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_ms: Optional[float] = None,
    ):
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms
        self._playwright: Optional[Playwright] = None
        self._context: Optional[APIRequestContext] = None

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "PageFetcher":
        fetch_config = config.get("fetch", {})
        return cls(
            user_agent=fetch_config.get("user_agent", DEFAULT_USER_AGENT),
            timeout_ms=fetch_config.get("timeout_ms"),
        )

    async def start(self) -> None:
        if self._context is not None:
            return
        self._playwright = await async_playwright().start()
        try:
            self._context = await self._playwright.request.new_context(
                user_agent=self.user_agent,
                extra_http_headers={"Accept": "text/html,application/xhtml+xml"},
            )
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise
        logger.info("PageFetcher started (user_agent=%s)", self.user_agent)

    async def close(self) -> None:
        if self._context is not None:
            await self._context.dispose()
            self._context = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self) -> "PageFetcher":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def fetch(self, url: str) -> FetchResponse:
        """Fetch a URL and return its status and body.

        Raises:
            FetchError: on transport failure or a non-2xx status.
        """
        kwargs: dict[str, Any] = {}
        if self.timeout_ms is not None:
            kwargs["timeout"] = self.timeout_ms

        try:
            if self._context is None:
                await self.start()
            response = await self._context.get(url, **kwargs)
            body = await response.text()
        except (PlaywrightError, OSError) as e:
            raise FetchError(f"Could not fetch page: {str(e)[:300]} (URL: {url})", url) from e

        if not 200 <= response.status < 300:
            raise FetchError(
                f"Could not fetch page: {response.status} {response.status_text} (URL: {url})",
                url,
                status=response.status,
            )

        logger.debug("Fetched %s: status=%d chars=%d", url, response.status, len(body))
        return FetchResponse(status=response.status, body=body)
