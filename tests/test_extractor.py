"""Tests for heuristic field extraction (studio pages and artist pages)."""

from __future__ import annotations

from datetime import datetime

from conftest import PLAIN_STUDIO_HTML, STUDIO_HTML

from inkfinder.crawler.extractor import (
    extract_artist_data,
    extract_contact,
    extract_location,
    extract_portfolio_images,
    extract_pricing,
    extract_studio_data,
    extract_styles,
    find_artist_sections,
    looks_like_japanese_tattoo_page,
    strip_tags,
)

STUDIO_URL = "https://tattoo-studio.jp/tokyo/studio/red-dragon"

_ARTIST_PAGE = """\
<html>
<head><title>Artist profile</title></head>
<body>
  <h1>Hana Kimura</h1>
  <p>Hourly rate: ¥15,000. Consultation fee: ¥3,000. Minimum ¥10,000.</p>
  <p>Book via Instagram @hana.ink</p>
  <div style="background-image: url('/img/piece-bg.jpg')"></div>
  <img data-lazy="/portfolio/p1.jpg">
</body>
</html>
"""


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

class TestStripTags:
    def test_drops_scripts_and_collapses_whitespace(self) -> None:
        html = "<p>Hello</p>\n<script>var x = 1;</script>  <b>world</b> &amp; more"
        assert strip_tags(html) == "Hello world & more"

    def test_relevance_check(self) -> None:
        assert looks_like_japanese_tattoo_page("<p>和彫り studio</p>") is True
        assert looks_like_japanese_tattoo_page("<p>Bakery menu</p>") is False


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------

class TestFieldExtractors:
    def test_location_prefers_prefecture(self) -> None:
        assert extract_location("東京都渋谷区 Tokyo") == "東京都"
        assert extract_location("Studio in Osaka") == "Osaka"
        assert extract_location("nowhere in particular") == ""

    def test_styles_subset_of_keywords(self) -> None:
        styles = extract_styles("Traditional 和彫り and Fine Line work")
        assert "和彫り" in styles
        assert "traditional" in styles
        assert "fine line" in styles
        assert "tribal" not in styles

    def test_pricing_first_match_sets_one_field(self) -> None:
        pricing = extract_pricing("料金：¥10,000〜¥50,000 最低料金：¥20,000")
        assert pricing.price_range == "¥10,000 - ¥50,000"
        assert pricing.session_minimum is None

    def test_pricing_detailed_fills_every_field(self) -> None:
        pricing = extract_pricing(
            "Hourly rate: ¥15,000. Consultation fee: ¥3,000. Minimum ¥10,000.",
            detailed=True,
        )
        assert pricing.hourly_rate == "¥15,000"
        assert pricing.consultation_fee == "¥3,000"
        assert pricing.session_minimum == "¥10,000"
        assert pricing.price_range is None

    def test_pricing_without_prices_is_empty(self) -> None:
        assert extract_pricing("Walk-ins welcome").is_empty()

    def test_contact_platform(self) -> None:
        assert extract_contact("Mail us: info@ink.jp", "https://ink.jp").booking_platform == "email"
        insta = extract_contact("Follow @ink_jp on Instagram", "https://ink.jp")
        assert insta.booking_platform == "instagram"
        assert insta.instagram_handle == "ink_jp"
        assert extract_contact("Call us", "https://ink.jp").booking_platform == "website"


class TestPortfolioImages:
    def test_excludes_chrome_and_resolves(self) -> None:
        html = '<img src="/images/logo.png"><img src="/gallery/work1.jpg">'
        assert extract_portfolio_images(html, "https://ink.jp/") == ["https://ink.jp/gallery/work1.jpg"]

    def test_preferred_first(self) -> None:
        html = '<img src="/a/photo.jpg"><img src="/tattoo/piece.jpg">'
        images = extract_portfolio_images(html, "https://ink.jp/")
        assert images == ["https://ink.jp/tattoo/piece.jpg", "https://ink.jp/a/photo.jpg"]

    def test_caps(self) -> None:
        html = "".join(f'<img src="/work/{i}.jpg">' for i in range(25))
        assert len(extract_portfolio_images(html, "https://ink.jp/")) == 10
        assert len(extract_portfolio_images(html, "https://ink.jp/", detailed=True)) == 20

    def test_deduplicates(self) -> None:
        html = '<img src="/work/1.jpg"><img data-src="/work/1.jpg">'
        assert extract_portfolio_images(html, "https://ink.jp/") == ["https://ink.jp/work/1.jpg"]


# ---------------------------------------------------------------------------
# Studio pages
# ---------------------------------------------------------------------------

class TestArtistSections:
    def test_wrapper_dropped_for_inner_cards(self) -> None:
        sections = find_artist_sections(STUDIO_HTML)
        assert len(sections) == 2
        assert "Kenji Tanaka" in sections[0]
        assert "Yuki Sato" in sections[1]

    def test_no_sections(self) -> None:
        assert find_artist_sections(PLAIN_STUDIO_HTML) == []

    def test_class_name_alone_does_not_qualify(self) -> None:
        html = PLAIN_STUDIO_HTML.replace(
            "</body>", '<div class="member-login"><a href="/login">Log in</a></div></body>'
        )
        assert find_artist_sections(html) == []
        _, artists = extract_studio_data(html, "https://blue-wave.example/")
        assert [a.name_en for a in artists] == ["Studio Artist"]


class TestExtractStudioData:
    def test_studio_fields(self) -> None:
        studio, _ = extract_studio_data(STUDIO_HTML, STUDIO_URL)
        assert studio.website == STUDIO_URL
        assert studio.booking_url == STUDIO_URL
        assert studio.id.startswith("studio-")
        assert studio.name_en == "Red Dragon Tattoo"
        assert studio.name_ja == "彫龍タトゥースタジオ"
        assert studio.location == "東京都"
        assert studio.address_ja == "東京都渋谷区神南1-2-3"
        assert studio.phone == "03-1234-5678"
        assert studio.instagram_handle == "reddragon_tokyo"

    def test_amenities(self) -> None:
        studio, _ = extract_studio_data(STUDIO_HTML, STUDIO_URL)
        assert studio.speaks_english is True
        assert studio.private_room is True
        assert studio.credit_card_accepted is True
        assert studio.lgbtq_friendly is False
        assert studio.parking_available is False

    def test_one_artist_per_section(self) -> None:
        studio, artists = extract_studio_data(STUDIO_HTML, STUDIO_URL)
        assert [a.name_en for a in artists] == ["Kenji Tanaka", "Yuki Sato"]
        assert all(a.studio_id == studio.id for a in artists)
        assert all(a.data_source == "crawled" for a in artists)
        assert all(a.website_url == STUDIO_URL for a in artists)

        kenji, yuki = artists
        assert kenji.styles == ["traditional", "blackwork"]
        assert kenji.portfolio_images == ["https://tattoo-studio.jp/gallery/kenji-work1.jpg"]
        assert yuki.pricing_info.price_range == "¥10,000 - ¥50,000"

    def test_fallback_studio_artist(self) -> None:
        studio, artists = extract_studio_data(PLAIN_STUDIO_HTML, "https://blue-wave.example/")
        assert len(artists) == 1
        assert artists[0].name_en == "Studio Artist"
        assert artists[0].name_ja == "スタジオアーティスト"
        assert artists[0].studio_id == studio.id

    def test_name_placeholders_on_miss(self) -> None:
        studio, _ = extract_studio_data("<p>hello</p>", "https://x.example/")
        assert studio.name_en == "Tattoo Studio"
        assert studio.name_ja == "タトゥースタジオ"
        assert studio.location == ""


# ---------------------------------------------------------------------------
# Artist pages
# ---------------------------------------------------------------------------

class TestExtractArtistData:
    def test_detailed_fields(self) -> None:
        artist = extract_artist_data(_ARTIST_PAGE, "https://hana-ink.example.com/", studio_id="studio-1")
        assert artist.name_en == "Hana Kimura"
        assert artist.studio_id == "studio-1"
        assert artist.pricing_info.hourly_rate == "¥15,000"
        assert artist.pricing_info.consultation_fee == "¥3,000"
        assert artist.pricing_info.session_minimum == "¥10,000"
        assert artist.contact_info.booking_platform == "instagram"
        assert artist.contact_info.instagram_handle == "hana.ink"
        assert artist.portfolio_images == [
            "https://hana-ink.example.com/portfolio/p1.jpg",
            "https://hana-ink.example.com/img/piece-bg.jpg",
        ]

    def test_crawl_status(self) -> None:
        artist = extract_artist_data(_ARTIST_PAGE, "https://hana-ink.example.com/")
        status = artist.crawl_status
        assert status is not None
        assert status["crawl_success"] is True
        assert status["website_status"] == "active"
        last = datetime.fromisoformat(status["last_crawled"])
        nxt = datetime.fromisoformat(status["next_crawl_date"])
        assert 29 <= (nxt - last).days <= 30
