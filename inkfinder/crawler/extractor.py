"""Heuristic field extraction: studio/artist pages → extracted records.

Everything here is regex and substring matching over either the raw HTML
(for ``src``/``href`` attributes) or a tag-stripped text blob (for prose
fields).  A miss never raises; it degrades to an empty string, an empty
list or a per-language placeholder.
"""

from __future__ import annotations

import html as html_lib
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from inkfinder.crawler.models import (
    ContactInfo,
    ExtractedArtist,
    ExtractedStudio,
    PricingInfo,
    utc_now_iso,
)
from inkfinder.crawler.sites import dedupe, resolve_url

_JA = "\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF"
_HAS_JA = re.compile(f"[{_JA}]")

# ---------------------------------------------------------------------------
# Keyword / pattern tables
# ---------------------------------------------------------------------------

LOCATIONS: tuple[str, ...] = (
    "東京都", "大阪府", "京都府", "神奈川県", "愛知県", "福岡県", "北海道", "沖縄県",
    "Tokyo", "Osaka", "Kyoto", "Yokohama", "Nagoya", "Fukuoka", "Sapporo", "Okinawa",
)

STYLE_KEYWORDS_JA: tuple[str, ...] = (
    "和彫り", "トライバル", "リアリズム", "ブラックワーク", "ファインライン", "アニメ",
)
STYLE_KEYWORDS_EN: tuple[str, ...] = (
    "traditional", "tribal", "realism", "blackwork", "fine line", "anime",
    "japanese", "geometric",
)

AMENITY_KEYWORDS: Dict[str, tuple[str, ...]] = {
    "speaks_english": ("english", "英語"),
    "speaks_chinese": ("chinese", "中国語", "中文"),
    "speaks_korean": ("korean", "韓国語", "한국어"),
    "lgbtq_friendly": ("lgbtq", "lgbt"),
    "private_room": ("private room", "private-room", "プライベート", "個室"),
    "parking_available": ("parking", "駐車場", "パーキング"),
    "credit_card_accepted": ("credit card", "visa", "mastercard", "クレジット"),
    "digital_payment_accepted": ("paypal", "digital payment", "online payment", "paypay"),
}

ARTIST_INDICATORS: tuple[str, ...] = (
    "artist", "staff", "member", "tattoo", "style", "specializ",
    "アーティスト", "スタッフ", "メンバー", "タトゥー", "専門", "彫師",
)

JAPANESE_TATTOO_INDICATORS: tuple[str, ...] = (
    "刺青", "タトゥー", "tattoo", "和彫り", "irezumi",
    "japan", "japanese", "東京", "大阪", "京都",
)

STUDIO_BIO = {
    "ja": "プロフェッショナルなタトゥースタジオです。経験豊富なアーティストが在籍しています。",
    "en": "Professional tattoo studio with experienced artists.",
}
STUDIO_NAME_PLACEHOLDER = {"ja": "タトゥースタジオ", "en": "Tattoo Studio"}
ARTIST_NAME_PLACEHOLDER = {"ja": "スタジオアーティスト", "en": "Studio Artist"}

_IMAGE_EXCLUDE = ("logo", "icon", "avatar", "header", "footer", "banner", "btn")
_IMAGE_EXCLUDE_DETAILED = _IMAGE_EXCLUDE + ("profile", "background", "button", "arrow", "social")
_IMAGE_PREFER = ("tattoo", "work", "portfolio", "gallery", "art", "design", "タトゥー", "作品", "ギャラリー")

_IMAGE_EXT = r"\.(?:jpe?g|png|webp|gif)(?:\?[^\"']*)?"
_IMAGE_PATTERNS = (
    re.compile(rf'(?<![\w-])src=["\']([^"\']+{_IMAGE_EXT})["\']', re.IGNORECASE),
    re.compile(rf'data-src=["\']([^"\']+{_IMAGE_EXT})["\']', re.IGNORECASE),
)
_IMAGE_PATTERNS_DETAILED = _IMAGE_PATTERNS + (
    re.compile(rf'data-lazy=["\']([^"\']+{_IMAGE_EXT})["\']', re.IGNORECASE),
    re.compile(r'background-image:\s*url\(["\']?([^"\')]+)["\']?\)', re.IGNORECASE),
)

_NUM = r"(\d[\d,]*)"
_CUR = r"[¥￥$]?"
_RANGE_SEP = r"\s*[〜～\-~]\s*"

# Tried in order; the first match decides which single field is set.
_PRICE_PATTERNS: Tuple[Tuple[str, re.Pattern[str]], ...] = (
    ("price_range", re.compile(rf"料金[\s：:]*{_CUR}{_NUM}{_RANGE_SEP}{_CUR}{_NUM}")),
    ("price_range", re.compile(rf"price(?:\s*range)?[\s：:]*{_CUR}{_NUM}{_RANGE_SEP}{_CUR}{_NUM}", re.IGNORECASE)),
    ("session_minimum", re.compile(rf"最低料金[\s：:]*{_CUR}{_NUM}")),
    ("session_minimum", re.compile(rf"(?:session\s*)?minimum[\s：:]*{_CUR}{_NUM}", re.IGNORECASE)),
    ("session_minimum", re.compile(rf"\bfrom\s*{_CUR}{_NUM}", re.IGNORECASE)),
    ("consultation_fee", re.compile(rf"(?:相談料|カウンセリング)[\s：:]*{_CUR}{_NUM}")),
    ("consultation_fee", re.compile(rf"consultation(?:\s*fee)?[\s：:]*{_CUR}{_NUM}", re.IGNORECASE)),
)
_HOURLY_PATTERNS = (
    re.compile(rf"時給[\s：:]*{_CUR}{_NUM}"),
    re.compile(rf"hourly\s*rate[\s：:]*{_CUR}{_NUM}", re.IGNORECASE),
    re.compile(rf"{_NUM}\s*[円¥￥]\s*[/／]\s*時間"),
)

_EMAIL = re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
_PHONE = re.compile(r"(0\d{1,4}[-\s]?\d{1,4}[-\s]?\d{4})")
_INSTAGRAM_HANDLE = re.compile(r"(?<![\w.])@([A-Za-z0-9._]{1,30})")
_INSTAGRAM_POST = re.compile(r"https://(?:www\.)?instagram\.com/p/([A-Za-z0-9_-]+)")

_STUDIO_NAME = {
    "ja": re.compile(f"([{_JA}]+(?:スタジオ|タトゥー|刺青))"),
    "en": re.compile(r"([A-Z][a-zA-Z ]+(?:Studio|Tattoo|Shop))"),
}
_ARTIST_NAME = {
    "ja": re.compile(f"([{_JA}]{{2,8}})"),
    "en": re.compile(r"([A-Z][a-z]+\s+[A-Z][a-z]+)"),
}
_ADDRESS = {
    "ja": re.compile(f"([{_JA}]+区[{_JA}]*\\d[\\d\\-]*)"),
    "en": re.compile(r"(\d+(?:-\d+)*\s+[A-Za-z][A-Za-z ,\-]*[A-Za-z])"),
}

_SCRIPT_STYLE = re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]+>")
_WS = re.compile(r"\s+")
_SECTION_OPEN = re.compile(
    r'<(div|section|article|li)\b[^>]*\bclass\s*=\s*["\'][^"\']*(?:artist|staff|member)[^"\']*["\'][^>]*>',
    re.IGNORECASE,
)
_HEADING = re.compile(r"<(h1|title)[^>]*>(.*?)</\1>", re.IGNORECASE | re.DOTALL)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def strip_tags(html: str) -> str:
    """Return the visible text of *html* with whitespace collapsed."""
    text = _SCRIPT_STYLE.sub(" ", html)
    text = _TAG.sub(" ", text)
    text = html_lib.unescape(text)
    return _WS.sub(" ", text).strip()


def _yen(raw: str) -> Optional[str]:
    digits = re.sub(r"\D", "", raw)
    return f"¥{int(digits):,}" if digits else None


def _mentions(text: str, keywords: tuple[str, ...]) -> bool:
    lower = text.lower()
    return any(keyword.lower() in lower for keyword in keywords)


def check_amenity(text: str, keywords: tuple[str, ...]) -> bool:
    """Case-insensitive "does *text* mention any of *keywords*"."""
    return _mentions(text, keywords)


def looks_like_japanese_tattoo_page(html: str) -> bool:
    return _mentions(html, JAPANESE_TATTOO_INDICATORS)


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------

def extract_studio_name(text: str, language: str) -> str:
    match = _STUDIO_NAME[language].search(text)
    return match.group(1).strip() if match else STUDIO_NAME_PLACEHOLDER[language]


def extract_artist_name(text: str, language: str) -> str:
    match = _ARTIST_NAME[language].search(text)
    return match.group(1) if match else ""


def extract_artist_bio(text: str, language: str) -> str:
    """First couple of sentences in *language*, or an empty string."""
    sentences = [s.strip() for s in re.split(r"[.。]", text)]
    if language == "ja":
        picked = [s for s in sentences if _HAS_JA.search(s)][:2]
        return "。".join(picked) + "。" if picked else ""
    picked = [s for s in sentences if re.fullmatch(r"[A-Za-z\s,'-]+", s) and len(s) > 10][:2]
    return ". ".join(picked) + "." if picked else ""


def extract_location(text: str) -> str:
    for location in LOCATIONS:
        if location in text:
            return location
    return ""


def extract_address(text: str, language: str) -> str:
    match = _ADDRESS[language].search(text)
    return match.group(1).strip() if match else ""


def extract_styles(text: str) -> List[str]:
    lower = text.lower()
    found = [style for style in STYLE_KEYWORDS_JA if style in text]
    found.extend(style for style in STYLE_KEYWORDS_EN if style in lower)
    return found


def extract_portfolio_images(html: str, base_url: str, detailed: bool = False) -> List[str]:
    """Portfolio-looking image URLs, preferred keywords first.

    The studio-level variant keeps 10; the detailed (artist page) variant
    looks at more attributes, excludes more chrome and keeps 20.
    """
    patterns = _IMAGE_PATTERNS_DETAILED if detailed else _IMAGE_PATTERNS
    exclude = _IMAGE_EXCLUDE_DETAILED if detailed else _IMAGE_EXCLUDE
    limit = 20 if detailed else 10

    candidates: List[str] = []
    for pattern in patterns:
        for match in pattern.finditer(html):
            url = resolve_url(match.group(1), base_url)
            if url and not any(word in url.lower() for word in exclude):
                candidates.append(url)

    unique = dedupe(candidates)
    preferred = [u for u in unique if any(word in u.lower() for word in _IMAGE_PREFER)]
    others = [u for u in unique if u not in preferred]
    return (preferred + others)[:limit]


def extract_pricing(text: str, detailed: bool = False) -> PricingInfo:
    """Parse price phrases out of *text*.

    By default at most one field is set, decided by the first pattern that
    matches.  ``detailed`` fills every field whose pattern matches.
    """
    pricing = PricingInfo()
    for field_name, pattern in _PRICE_PATTERNS:
        if detailed and getattr(pricing, field_name):
            continue
        match = pattern.search(text)
        if not match:
            continue
        if field_name == "price_range":
            low, high = _yen(match.group(1)), _yen(match.group(2))
            value = f"{low} - {high}" if low and high else None
        else:
            value = _yen(match.group(1))
        if value:
            setattr(pricing, field_name, value)
            if not detailed:
                return pricing

    if detailed:
        for pattern in _HOURLY_PATTERNS:
            match = pattern.search(text)
            if match and _yen(match.group(1)):
                pricing.hourly_rate = _yen(match.group(1))
                break
    return pricing


def extract_email(text: str) -> Optional[str]:
    match = _EMAIL.search(text)
    return match.group(1) if match else None


def extract_phone(text: str) -> Optional[str]:
    match = _PHONE.search(text)
    return match.group(1) if match else None


def extract_instagram_handle(html: str) -> str:
    match = _INSTAGRAM_HANDLE.search(html)
    return match.group(1).rstrip(".") if match else ""


def extract_instagram_posts(html: str) -> List[str]:
    return dedupe(m.group(0) for m in _INSTAGRAM_POST.finditer(html))[:3]


def extract_contact(text: str, url: str, html: str = "") -> ContactInfo:
    email = extract_email(text)
    source = (html or text).lower()
    if "instagram" in source or "インスタ" in source:
        platform = "instagram"
    elif email:
        platform = "email"
    else:
        platform = "website"
    handle = extract_instagram_handle(html or text) if platform == "instagram" else ""
    return ContactInfo(
        booking_url=url,
        email=email,
        phone=extract_phone(text),
        booking_platform=platform,
        instagram_handle=handle or None,
    )


# ---------------------------------------------------------------------------
# Artist sectioning
# ---------------------------------------------------------------------------

def _element_end(html: str, start: int, tag: str) -> int:
    """Index just past the tag that closes the element opened at *start*."""
    tags = re.compile(rf"<(/?){tag}\b[^>]*>", re.IGNORECASE)
    depth = 0
    for match in tags.finditer(html, start):
        depth += -1 if match.group(1) else 1
        if depth == 0:
            return match.end()
    return len(html)


def is_artist_section(fragment: str) -> bool:
    return _mentions(fragment, ARTIST_INDICATORS)


def find_artist_sections(html: str) -> List[str]:
    """Split *html* into per-artist fragments.

    Elements whose class mentions artist/staff/member and whose inner
    content looks artist-like qualify; a wrapper is dropped when it contains
    another qualifying element.
    """
    spans: List[Tuple[int, int]] = []
    for match in _SECTION_OPEN.finditer(html):
        start = match.start()
        end = _element_end(html, start, match.group(1))
        if is_artist_section(html[match.end():end]):
            spans.append((start, end))

    innermost = [
        (start, end)
        for start, end in spans
        if not any((s, e) != (start, end) and start <= s and e <= end for s, e in spans)
    ]
    return [html[start:end] for start, end in innermost]


def _artist_from_text(
    fragment: str, text: str, url: str, studio_id: Optional[str], name_ja: str, name_en: str
) -> ExtractedArtist:
    return ExtractedArtist(
        website_url=url,
        studio_id=studio_id,
        contact_info=extract_contact(text, url),
        name_ja=name_ja,
        name_en=name_en,
        bio_ja=extract_artist_bio(text, "ja"),
        bio_en=extract_artist_bio(text, "en"),
        location=extract_location(text),
        address_ja=extract_address(text, "ja"),
        address_en=extract_address(text, "en"),
        styles=extract_styles(text),
        portfolio_images=extract_portfolio_images(fragment, url),
        pricing_info=extract_pricing(text),
    )


def extract_artists_from_studio(html: str, url: str, studio_id: str) -> List[ExtractedArtist]:
    """Every artist on a studio page; never empty.

    With no recognisable artist sections the whole page becomes a single
    generic "Studio Artist".
    """
    artists: List[ExtractedArtist] = []
    for fragment in find_artist_sections(html):
        text = strip_tags(fragment)
        artists.append(
            _artist_from_text(
                fragment,
                text,
                url,
                studio_id,
                extract_artist_name(text, "ja"),
                extract_artist_name(text, "en"),
            )
        )

    if not artists:
        text = strip_tags(html)
        artists.append(
            _artist_from_text(
                html,
                text,
                url,
                studio_id,
                ARTIST_NAME_PLACEHOLDER["ja"],
                ARTIST_NAME_PLACEHOLDER["en"],
            )
        )
    return artists


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_studio(html: str, url: str) -> ExtractedStudio:
    text = strip_tags(html)
    amenities = {name: check_amenity(text, words) for name, words in AMENITY_KEYWORDS.items()}
    return ExtractedStudio(
        website=url,
        name_ja=extract_studio_name(text, "ja"),
        name_en=extract_studio_name(text, "en"),
        # Studio bios are boilerplate; artist bios are scraped.
        bio_ja=STUDIO_BIO["ja"],
        bio_en=STUDIO_BIO["en"],
        location=extract_location(text),
        address_ja=extract_address(text, "ja"),
        address_en=extract_address(text, "en"),
        instagram_handle=extract_instagram_handle(html),
        instagram_posts=extract_instagram_posts(html),
        booking_url=url,
        phone=extract_phone(text),
        **amenities,
    )


def extract_studio_data(html: str, url: str) -> Tuple[ExtractedStudio, List[ExtractedArtist]]:
    """Return the studio described by *html* and at least one artist."""
    studio = extract_studio(html, url)
    return studio, extract_artists_from_studio(html, url, studio.id)


def _heading_text(html: str) -> str:
    """Text of the first ``<h1>``, else the ``<title>``, else empty."""
    found = {m.group(1).lower(): strip_tags(m.group(2)) for m in reversed(list(_HEADING.finditer(html)))}
    return found.get("h1") or found.get("title") or ""


def extract_artist_data(html: str, url: str, studio_id: Optional[str] = None) -> ExtractedArtist:
    """Extract a single artist from that artist's own page."""
    text = strip_tags(html)
    heading = _heading_text(html)
    now = datetime.now(timezone.utc)
    return ExtractedArtist(
        website_url=url,
        studio_id=studio_id,
        contact_info=extract_contact(text, url, html),
        name_ja=extract_artist_name(heading, "ja"),
        name_en=extract_artist_name(heading, "en"),
        bio_ja=extract_artist_bio(text, "ja"),
        bio_en=extract_artist_bio(text, "en"),
        location=extract_location(text),
        address_ja=extract_address(text, "ja"),
        address_en=extract_address(text, "en"),
        styles=extract_styles(text),
        portfolio_images=extract_portfolio_images(html, url, detailed=True),
        pricing_info=extract_pricing(text, detailed=True),
        crawl_status={
            "last_crawled": utc_now_iso(),
            "next_crawl_date": (now + timedelta(days=30)).isoformat(),
            "crawl_success": True,
            "website_status": "active",
        },
    )
