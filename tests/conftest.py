"""Shared fixtures: canned HTML pages and an in-memory fetcher."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

import pytest

from inkfinder.crawler.control import CancelToken, FetchError
from inkfinder.crawler.models import RawPage
from inkfinder.crawler.runner import BatchPolicy

DIRECTORY_URL = "https://tattoo-studio.jp/tokyo/"

DIRECTORY_HTML = """\
<html><body>
  <ul>
    <li><a href="/tokyo/studio/red-dragon">Red Dragon</a></li>
    <li><a href="/tokyo/studio/blue-wave">Blue Wave</a></li>
    <li><a href="https://tattoo-studio.jp/tokyo/studio/ink-house">Ink House</a></li>
    <li><a href="/tokyo/studio/red-dragon">Red Dragon (again)</a></li>
    <li><a href="/about">About</a></li>
  </ul>
</body></html>
"""

STUDIO_URLS = [
    "https://tattoo-studio.jp/tokyo/studio/red-dragon",
    "https://tattoo-studio.jp/tokyo/studio/blue-wave",
    "https://tattoo-studio.jp/tokyo/studio/ink-house",
]

STUDIO_HTML = """\
<html>
<head><meta charset="utf-8"></head>
<body>
  <h1>Red Dragon Tattoo</h1>
  <p>彫龍タトゥースタジオ 東京都渋谷区神南1-2-3</p>
  <p>English OK. 個室あり. クレジットカード利用可.</p>
  <p>Tel: 03-1234-5678  Instagram: @reddragon_tokyo</p>
  <section class="artists">
    <div class="artist-card">
      <h3>Kenji Tanaka</h3>
      <p>Tattoo artist specializing in traditional and blackwork pieces.</p>
      <img src="/gallery/kenji-work1.jpg">
    </div>
    <div class="artist-card">
      <h3>Yuki Sato</h3>
      <p>Fine line tattoo style. 料金：¥10,000〜¥50,000</p>
    </div>
  </section>
</body>
</html>
"""

PLAIN_STUDIO_HTML = """\
<html><body>
  <h1>Blue Wave Tattoo</h1>
  <p>Walk-ins welcome. Open every day.</p>
</body></html>
"""


class FakeFetcher:
    """Serves pages from a dict and records every URL it is asked for.

    ``hooks`` maps a URL to a coroutine function run instead of returning
    the page, so tests can stall a fetch or trigger a stop mid-batch.
    """

    def __init__(
        self,
        pages: Optional[Dict[str, str]] = None,
        failures: Optional[Dict[str, str]] = None,
        hooks: Optional[Dict[str, Callable[[], Awaitable[None]]]] = None,
    ) -> None:
        self.pages = pages or {}
        self.failures = failures or {}
        self.hooks = hooks or {}
        self.calls: List[str] = []

    async def fetch(self, url: str, token: Optional[CancelToken] = None) -> RawPage:
        self.calls.append(url)
        await asyncio.sleep(0)
        if url in self.hooks:
            await self.hooks[url]()
        if url in self.failures:
            raise FetchError(self.failures[url])
        if url not in self.pages:
            raise FetchError("HTTP 404: Not Found")
        return RawPage(url=url, html=self.pages[url], status_code=200)


@pytest.fixture()
def instant_policy() -> BatchPolicy:
    """Batch policy with every delay disabled."""
    return BatchPolicy(per_item_delay=0, max_retries=0, retry_base_delay=0)


@pytest.fixture()
def site_pages() -> Dict[str, str]:
    pages = {DIRECTORY_URL: DIRECTORY_HTML}
    pages.update({url: STUDIO_HTML for url in STUDIO_URLS})
    return pages
