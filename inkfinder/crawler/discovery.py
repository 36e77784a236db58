"""Directory discovery: seed URLs → unique studio page URLs."""

from __future__ import annotations

from typing import Iterable, List, Optional

from inkfinder.config import settings
from inkfinder.crawler.control import CancelToken, FetchError
from inkfinder.crawler.fetcher import Fetcher
from inkfinder.crawler.sites import classify, dedupe, extract_studio_urls, fallback_urls


class DirectoryDiscoverer:
    """Fetch each seed page and pull studio links out of it.

    When a seed cannot be fetched and its host has a static fallback list,
    that list is used instead; a seed from an unknown host has no fallback
    and the :class:`FetchError` is raised to the caller.
    """

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        seed_delay: Optional[float] = None,
        use_fallbacks: bool = True,
    ) -> None:
        self.fetcher = fetcher or Fetcher()
        self.seed_delay = settings.directory_delay if seed_delay is None else seed_delay
        self.use_fallbacks = use_fallbacks

    async def discover_seed(self, seed: str, token: Optional[CancelToken] = None) -> List[str]:
        """Return the studio URLs reachable from one seed page."""
        target = classify(seed)
        print(f"[DISCOVER] {target.kind}: {seed}")
        try:
            raw = await self.fetcher.fetch(seed, token)
        except FetchError as exc:
            fallback = fallback_urls(seed) if self.use_fallbacks else []
            if not fallback:
                raise
            print(f"[DISCOVER] {seed} unreachable ({exc}); using {len(fallback)} fallback URL(s)")
            return fallback

        urls = extract_studio_urls(raw.html, seed)
        print(f"[DISCOVER] ✓ {len(urls)} studio URL(s) from {seed}")
        return urls

    async def discover(
        self, seeds: Iterable[str], token: Optional[CancelToken] = None
    ) -> List[str]:
        """Run :meth:`discover_seed` over *seeds* one at a time.

        Seeds that fail outright are reported and skipped.  Returns the
        deduplicated union in first-seen order.
        """
        token = token or CancelToken()
        seeds = list(seeds)
        found: List[str] = []
        for index, seed in enumerate(seeds):
            try:
                found.extend(await self.discover_seed(seed, token))
            except FetchError as exc:
                print(f"[DISCOVER] ✗ {seed}: {exc}")
            if index < len(seeds) - 1 and await token.sleep(self.seed_delay):
                break

        unique = dedupe(found)
        print(f"[DISCOVER] {len(unique)} unique studio URL(s) discovered.")
        return unique
