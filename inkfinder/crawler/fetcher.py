"""HTTP fetcher with browser-like headers, bounded retry and abort support."""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from inkfinder.config import settings
from inkfinder.crawler.control import CancelToken, CrawlAborted, FetchError
from inkfinder.crawler.models import RawPage


def browser_headers() -> dict[str, str]:
    """Desktop-browser header set; many studio sites reject obvious bots."""
    return {
        "User-Agent": settings.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "ja,en-US;q=0.7,en;q=0.3",
        "Accept-Encoding": "gzip, deflate",
        "DNT": "1",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
    }


class Fetcher:
    """Stateless GET-with-retry.

    Every attempt is raced against the optional :class:`CancelToken`; a
    cancelled fetch raises :class:`CrawlAborted` straight away instead of
    retrying.  Any other failure (timeout, transport error, non-2xx) is
    retried ``max_retries`` times with a linearly growing delay of
    ``retry_base_delay * attempt``.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ) -> None:
        self.timeout = settings.request_timeout if timeout is None else timeout
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.retry_base_delay = (
            settings.retry_base_delay if retry_base_delay is None else retry_base_delay
        )

    async def _get(self, url: str) -> RawPage:
        async with httpx.AsyncClient(
            headers=browser_headers(),
            timeout=self.timeout,
            follow_redirects=True,
        ) as client:
            response = await client.get(url)
        if not response.is_success:
            raise FetchError(f"HTTP {response.status_code}: {response.reason_phrase}")
        return RawPage(url=url, html=response.text, status_code=response.status_code)

    async def _get_within_deadline(self, url: str) -> RawPage:
        # httpx times each phase separately; this bounds the whole attempt.
        try:
            return await asyncio.wait_for(self._get(url), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise FetchError(f"Timed out after {self.timeout}s") from exc

    async def fetch(self, url: str, token: Optional[CancelToken] = None) -> RawPage:
        """Fetch *url* and return a :class:`RawPage`.

        Raises:
            CrawlAborted: If *token* fires before or during a request.
            FetchError: Once all retries are exhausted.
        """
        token = token or CancelToken()
        attempt = 0
        while True:
            try:
                return await token.guard(self._get_within_deadline(url), url)
            except CrawlAborted:
                raise
            except (httpx.HTTPError, httpx.InvalidURL, FetchError) as exc:
                if token.cancelled:
                    raise CrawlAborted(f"Crawl was aborted: {url}") from exc
                message = str(exc) or type(exc).__name__
                if attempt >= self.max_retries:
                    print(f"[FETCH] ✗ {url}: {message}")
                    if isinstance(exc, FetchError):
                        raise
                    raise FetchError(message) from exc
                attempt += 1
                print(f"[FETCH] retry {attempt}/{self.max_retries} for {url}: {message}")
                if await token.sleep(self.retry_base_delay * attempt):
                    raise CrawlAborted(f"Crawl was aborted: {url}") from exc
