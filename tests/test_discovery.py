"""Tests for directory discovery and single-studio crawls."""

from __future__ import annotations

import asyncio

import pytest
from conftest import DIRECTORY_HTML, DIRECTORY_URL, PLAIN_STUDIO_HTML, STUDIO_URLS, FakeFetcher

from inkfinder.crawler.control import FetchError
from inkfinder.crawler.discovery import DirectoryDiscoverer
from inkfinder.crawler.sites import fallback_urls
from inkfinder.crawler.studio import StudioCrawler


class TestDirectoryDiscoverer:
    def test_seed_yields_studio_urls(self) -> None:
        discoverer = DirectoryDiscoverer(FakeFetcher({DIRECTORY_URL: DIRECTORY_HTML}), seed_delay=0)
        assert asyncio.run(discoverer.discover_seed(DIRECTORY_URL)) == STUDIO_URLS

    def test_known_host_falls_back_when_unreachable(self) -> None:
        discoverer = DirectoryDiscoverer(FakeFetcher(), seed_delay=0)
        urls = asyncio.run(discoverer.discover_seed(DIRECTORY_URL))
        assert urls == fallback_urls(DIRECTORY_URL)

    def test_fallbacks_can_be_disabled(self) -> None:
        discoverer = DirectoryDiscoverer(FakeFetcher(), seed_delay=0, use_fallbacks=False)
        with pytest.raises(FetchError):
            asyncio.run(discoverer.discover_seed(DIRECTORY_URL))

    def test_unknown_host_failure_raises(self) -> None:
        discoverer = DirectoryDiscoverer(FakeFetcher(), seed_delay=0)
        with pytest.raises(FetchError):
            asyncio.run(discoverer.discover_seed("https://unknown.example/list"))

    def test_discover_skips_failures_and_dedupes(self) -> None:
        fetcher = FakeFetcher({DIRECTORY_URL: DIRECTORY_HTML})
        discoverer = DirectoryDiscoverer(fetcher, seed_delay=0)
        seeds = ["https://unknown.example/list", DIRECTORY_URL, "https://www.ichitattoo.com/"]
        fetcher.pages["https://www.ichitattoo.com/"] = "<html>ICHI</html>"
        urls = asyncio.run(discoverer.discover(seeds))
        assert urls == STUDIO_URLS + ["https://www.ichitattoo.com/"]
        assert fetcher.calls == seeds


class TestStudioCrawler:
    def test_success_result(self) -> None:
        url = "https://blue-wave.example/"
        result = asyncio.run(StudioCrawler(FakeFetcher({url: PLAIN_STUDIO_HTML})).crawl(url))
        assert result.success is True
        assert result.url == url
        assert result.studio is not None
        assert result.studio.name_en == "Blue Wave Tattoo"
        assert len(result.artists) == 1
        assert result.relevant is True
        assert result.response_time >= 0

    def test_fetch_failure_is_a_result(self) -> None:
        url = "https://gone.example/"
        result = asyncio.run(StudioCrawler(FakeFetcher(failures={url: "HTTP 500: boom"})).crawl(url))
        assert result.success is False
        assert result.studio is None
        assert result.error == "HTTP 500: boom"
