"""Site pattern table and studio-URL extraction from directory pages.

Known hosts get their own :class:`SiteRule`; adding a site means adding a
row to ``SITE_RULES``, not touching control flow.  Unknown hosts fall back
to the generic ``href`` patterns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from urllib.parse import urljoin, urlparse

from inkfinder.crawler.models import CrawlTarget


@dataclass(frozen=True)
class SiteRule:
    """How to treat pages from one host.

    A rule without a ``link_pattern`` describes a single-studio site: its
    seed page *is* the studio page.
    """

    host: str
    link_pattern: Optional[re.Pattern[str]] = None
    fallback_urls: tuple[str, ...] = field(default_factory=tuple)

    @property
    def kind(self) -> str:
        return "directory" if self.link_pattern is not None else "studio"

    def matches(self, url: str) -> bool:
        hostname = (urlparse(url).hostname or "").lower()
        return hostname == self.host or hostname.endswith("." + self.host)


SITE_RULES: tuple[SiteRule, ...] = (
    SiteRule(
        host="tattoo-studio.jp",
        link_pattern=re.compile(r'href=["\']([^"\']*/studio/[^"\']+)["\']', re.IGNORECASE),
        fallback_urls=(
            "https://tattoo-studio.jp/tokyo/studio-1",
            "https://tattoo-studio.jp/tokyo/studio-2",
            "https://tattoo-studio.jp/osaka/studio-3",
        ),
    ),
    SiteRule(host="japan-tattoo.jp", fallback_urls=("https://japan-tattoo.jp/",)),
    SiteRule(host="kagerou-tattoo.co.jp", fallback_urls=("https://kagerou-tattoo.co.jp/en/",)),
    SiteRule(host="ichitattoo.com", fallback_urls=("https://www.ichitattoo.com/",)),
    SiteRule(host="three-tides-tattoo.com", fallback_urls=("https://www.three-tides-tattoo.com/",)),
    SiteRule(host="reddragon-tattoo.com", fallback_urls=("https://www.reddragon-tattoo.com/",)),
)

DEFAULT_DIRECTORIES: List[str] = [
    # Studio directory sites
    "https://tattoo-studio.jp/tokyo/",
    "https://tattoo-studio.jp/osaka/",
    # Individual well-known studios
    "https://japan-tattoo.jp/",
    "https://kagerou-tattoo.co.jp/en/",
    "https://www.ichitattoo.com/",
    "https://www.three-tides-tattoo.com/",
    "https://www.reddragon-tattoo.com/",
]

GENERIC_LINK_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'href=["\']([^"\']*studio[^"\']*)["\']', re.IGNORECASE),
    re.compile(r'href=["\']([^"\']*shop[^"\']*)["\']', re.IGNORECASE),
    re.compile(r'href=["\']([^"\']*tattoo[^"\']*)["\']', re.IGNORECASE),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def resolve_url(href: str, base_url: str) -> Optional[str]:
    """Resolve *href* against *base_url*; ``None`` if the result is unusable."""
    try:
        absolute = urljoin(base_url, href.strip())
        parsed = urlparse(absolute)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return absolute


def dedupe(urls: Iterable[str]) -> List[str]:
    """Drop repeats, keeping first-seen order."""
    return list(dict.fromkeys(urls))


def _resolve_all(hrefs: Iterable[str], base_url: str) -> List[str]:
    resolved = (resolve_url(href, base_url) for href in hrefs)
    return dedupe(url for url in resolved if url)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def rule_for(url: str) -> Optional[SiteRule]:
    """Return the :class:`SiteRule` whose host matches *url*, if any."""
    for rule in SITE_RULES:
        if rule.matches(url):
            return rule
    return None


def classify(url: str) -> CrawlTarget:
    rule = rule_for(url)
    return CrawlTarget(url=url, kind=rule.kind if rule else "directory")


def fallback_urls(url: str) -> List[str]:
    """Static studio URLs to use when *url* cannot be fetched (empty if unknown)."""
    rule = rule_for(url)
    return list(rule.fallback_urls) if rule else []


def extract_studio_urls(html: str, base_url: str) -> List[str]:
    """Return the studio page URLs linked from the listing page *html*.

    Single-studio sites yield their own URL.  Results are absolute and
    deduplicated; hrefs that do not resolve to an http(s) URL are dropped.
    """
    rule = rule_for(base_url)
    if rule is not None:
        if rule.link_pattern is None:
            return [base_url]
        return _resolve_all((m.group(1) for m in rule.link_pattern.finditer(html)), base_url)

    hrefs: List[str] = []
    for pattern in GENERIC_LINK_PATTERNS:
        hrefs.extend(m.group(1) for m in pattern.finditer(html))
    return _resolve_all(hrefs, base_url)
