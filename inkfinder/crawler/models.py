"""Data models for the crawler pipeline.

These are plain dataclasses.  The DB layer and the HTTP layer serialise
to and from them; nothing here talks to the network.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _known_fields(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


class CrawlStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    COMPLETED = "completed"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Fetch / discovery
# ---------------------------------------------------------------------------

@dataclass
class RawPage:
    """The raw HTTP response for a single URL fetch."""

    url: str
    html: str
    status_code: int


@dataclass(frozen=True)
class CrawlTarget:
    """A URL plus a hint about what kind of page it is.

    ``kind`` is ``"directory"`` for listing pages and ``"studio"`` for a
    single studio's own site.
    """

    url: str
    kind: str = "directory"

    @property
    def is_directory(self) -> bool:
        return self.kind == "directory"


# ---------------------------------------------------------------------------
# Extracted records
# ---------------------------------------------------------------------------

@dataclass
class PricingInfo:
    hourly_rate: Optional[str] = None
    session_minimum: Optional[str] = None
    price_range: Optional[str] = None
    consultation_fee: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(asdict(self).values())


@dataclass
class ContactInfo:
    booking_url: str
    email: Optional[str] = None
    phone: Optional[str] = None
    booking_platform: str = "website"
    instagram_handle: Optional[str] = None


@dataclass
class ExtractedStudio:
    """A studio record derived from one page; not yet persisted."""

    website: str
    id: str = field(default_factory=lambda: new_id("studio"))
    created_at: str = field(default_factory=utc_now_iso)
    name_ja: str = ""
    name_en: str = ""
    bio_ja: str = ""
    bio_en: str = ""
    location: str = ""
    address_ja: str = ""
    address_en: str = ""
    instagram_handle: str = ""
    instagram_posts: list[str] = field(default_factory=list)
    booking_url: str = ""
    phone: Optional[str] = None
    view_count: int = 0

    speaks_english: bool = False
    speaks_chinese: bool = False
    speaks_korean: bool = False
    lgbtq_friendly: bool = False
    private_room: bool = False
    parking_available: bool = False
    credit_card_accepted: bool = False
    digital_payment_accepted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtractedStudio:
        return cls(**_known_fields(cls, data))


@dataclass
class ExtractedArtist:
    """An artist record derived from a studio or artist page.

    ``studio_id`` points at an :class:`ExtractedStudio` minted in the same
    crawl session; it only becomes durable once the studio is persisted.
    """

    website_url: str
    contact_info: ContactInfo
    id: str = field(default_factory=lambda: new_id("artist"))
    created_at: str = field(default_factory=utc_now_iso)
    last_updated: str = field(default_factory=utc_now_iso)
    data_source: str = "crawled"
    studio_id: Optional[str] = None
    name_ja: str = ""
    name_en: str = ""
    bio_ja: str = ""
    bio_en: str = ""
    location: str = ""
    address_ja: str = ""
    address_en: str = ""
    styles: list[str] = field(default_factory=list)
    portfolio_images: list[str] = field(default_factory=list)
    pricing_info: PricingInfo = field(default_factory=PricingInfo)
    view_count: int = 0
    is_verified: bool = False
    crawl_status: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtractedArtist:
        values = _known_fields(cls, data)
        contact = values.get("contact_info") or {"booking_url": values.get("website_url", "")}
        if isinstance(contact, dict):
            values["contact_info"] = ContactInfo(**_known_fields(ContactInfo, contact))
        pricing = values.get("pricing_info") or {}
        if isinstance(pricing, dict):
            values["pricing_info"] = PricingInfo(**_known_fields(PricingInfo, pricing))
        return cls(**values)


# ---------------------------------------------------------------------------
# Crawl results / progress
# ---------------------------------------------------------------------------

@dataclass
class CrawlError:
    url: str
    error: str
    timestamp: str = field(default_factory=utc_now_iso)


@dataclass
class StudioCrawlResult:
    """Outcome of crawling a single studio URL."""

    url: str
    success: bool
    studio: Optional[ExtractedStudio] = None
    artists: list[ExtractedArtist] = field(default_factory=list)
    error: Optional[str] = None
    crawled_at: str = field(default_factory=utc_now_iso)
    response_time: float = 0.0
    relevant: bool = False


@dataclass
class CrawlResults:
    studios: list[ExtractedStudio] = field(default_factory=list)
    artists: list[ExtractedArtist] = field(default_factory=list)
    errors: list[CrawlError] = field(default_factory=list)


@dataclass
class CrawlProgress:
    """Mutable progress record for one crawl session."""

    session_id: str
    total_urls: int = 0
    processed_urls: int = 0
    successful_crawls: int = 0
    failed_crawls: int = 0
    current_url: Optional[str] = None
    status: CrawlStatus = CrawlStatus.IDLE
    start_time: str = field(default_factory=utc_now_iso)
    estimated_time_remaining: Optional[float] = None
    studios_found: int = 0
    artists_found: int = 0
    discovered_urls: int = 0
    errors: list[CrawlError] = field(default_factory=list)

    def snapshot(self) -> CrawlProgress:
        """Return a copy that later mutations will not touch."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data
