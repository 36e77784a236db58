"""Crawl one studio URL: fetch, extract, and time it."""

from __future__ import annotations

import time
from typing import Optional

from inkfinder.crawler.control import CancelToken, FetchError
from inkfinder.crawler.extractor import extract_studio_data, looks_like_japanese_tattoo_page
from inkfinder.crawler.fetcher import Fetcher
from inkfinder.crawler.models import StudioCrawlResult


class StudioCrawler:
    """Turns a studio URL into a :class:`StudioCrawlResult`.

    Fetch failures become ``success=False`` results; cancellation
    (:class:`~inkfinder.crawler.control.CrawlAborted`) propagates.
    """

    def __init__(self, fetcher: Optional[Fetcher] = None) -> None:
        self.fetcher = fetcher or Fetcher()

    async def crawl(self, url: str, token: Optional[CancelToken] = None) -> StudioCrawlResult:
        started = time.monotonic()
        try:
            raw = await self.fetcher.fetch(url, token)
        except FetchError as exc:
            return StudioCrawlResult(
                url=url,
                success=False,
                error=str(exc),
                response_time=time.monotonic() - started,
            )

        studio, artists = extract_studio_data(raw.html, url)
        print(f"[CRAWL] ✓ {studio.name_en or studio.name_ja}: {len(artists)} artist(s)")
        return StudioCrawlResult(
            url=url,
            success=True,
            studio=studio,
            artists=artists,
            response_time=time.monotonic() - started,
            relevant=looks_like_japanese_tattoo_page(raw.html),
        )
