# tests/test_extract.py
import json
import pytest
from livingscraper.extract import extract, parse_detail_html
from livingscraper.normalize import build_listing

URL = "https://www.livinginsider.com/livingdetail/1234567/noble-ploenchit.html"

DETAIL_HTML = """
<html><body>
<nav aria-label="breadcrumb">
  <a href="/">หน้าแรก</a><a href="/bkk">กรุงเทพมหานคร</a>
  <a href="/project/noble">Noble Ploenchit</a><a href="#">ขายคอนโด Noble Ploenchit</a>
</nav>
<h1 class="font_sarabun show-title">ขายคอนโด Noble Ploenchit วิวสวย ใกล้ BTS</h1>
<span class="badge">ขาย</span><span class="badge">คอนโด</span>
<div class="price-box"><span class="price-now">฿ 5,900,000</span></div>
<del>฿ 6,500,000</del>
<div class="psm">(฿ 150,000 บ/ตร.ม.)</div>
<div class="detail">2 ห้องนอน 2 ห้องน้ำ 65.5 ตร.ม. 12 ชั้น 1 ที่จอดรถ</div>
<div class="stat">ดู : 1,234 : 56</div>
<div class="agent-box"><h4>Khun Somchai</h4><span>Verified agent</span></div>
<div id="phone_number_modal_show">081-234-5678</div>
<a href="mailto:agent@example.com">Email</a>
<a href="https://line.me/ti/p/~noble">LINE</a> <span>LINE: @nobleagent</span>
<a href="https://www.facebook.com/noble">Facebook</a>
<img src="/assets/logo.png">
<img src="https://d1abc.cloudfront.net/upload/2024/photo1.jpg">
<img data-src="/upload/2024/photo2.jpg">
<div class="description">Spacious unit with open kitchen.<script>var tracking = 1;</script></div>
<span class="date-created">สร้าง: 12/01/2567</span>
<span class="date-bump">ดัน: 15/01/2567</span>
<div class="box-link-map" data-map="living_transit" data-lat="13.7437" data-lng="100.5486">
  <div class="box-map-l"><span>BTS Ploenchit</span><p>0.35 km</p></div></div>
<div class="box-link-map" data-map="living_hospital">
  <div class="box-map-l"><span>โรงพยาบาลบำรุงราษฎร์</span><p>1.8 km</p></div></div>
<div class="box-link-map" data-map="living_mall">
  <div class="box-map-l"><span>Central Chidlom</span><p>0.9 km</p></div></div>
<div class="box-link-map" data-map="living_transit">
  <div class="box-map-l"><span>MRT Lumphini</span><p>1.2 km</p></div></div>
<div class="box-link-map" data-map="living_academy">
  <div class="box-map-l"><span>มหาวิทยาลัยศรีปทุม</span><p></p></div></div>
<div class="item_property_highlight"><span class="text_property_highlight">สระว่ายน้ำ</span></div>
<div class="item_property_highlight"><span class="text_property_highlight">ฟิตเนส</span></div>
<div class="item_property_highlight"><span class="text_property_highlight">รักษาความปลอดภัย 24 ชม.</span></div>
</body></html>
"""


@pytest.fixture(scope="module")
def raw():
    return parse_detail_html(DETAIL_HTML, URL)


class TestParseDetail:
    def test_title_project_and_location(self, raw):
        assert raw["title"] == "ขายคอนโด Noble Ploenchit วิวสวย ใกล้ BTS"
        assert raw["project_name"] == "Noble Ploenchit"
        assert raw["location_text"] == "Noble Ploenchit"
        assert raw["breadcrumb"][0] == "หน้าแรก"

    def test_badges(self, raw):
        assert raw["deal_type"] == "ขาย"
        assert raw["category"] == "คอนโด"

    def test_prices(self, raw):
        assert raw["price_text"] == "฿ 5,900,000"
        assert raw["old_price_text"] == "฿ 6,500,000"
        assert raw["price_psm_text"] == "฿ 150,000 บ/ตร.ม."

    def test_property_details(self, raw):
        assert raw["bedrooms"] == 2
        assert raw["bathrooms"] == 2
        assert raw["usable_area_sqm"] == 65.5
        assert raw["floor"] == "12"
        assert raw["parking"] == 1

    def test_stats_and_agent(self, raw):
        assert (raw["views"], raw["clicks"]) == (1234, 56)
        assert raw["agent_name"] == "Khun Somchai"
        assert raw["agent_verified"] is True

    def test_contacts(self, raw):
        assert raw["phone"] == "0812345678"
        assert raw["email"] == "agent@example.com"
        assert raw["line_url"] == "https://line.me/ti/p/~noble"
        assert raw["line_id"] == "@nobleagent"
        assert raw["fb_url"] == "https://www.facebook.com/noble"

    def test_images_skip_junk(self, raw):
        assert raw["imgs"] == [
            "https://d1abc.cloudfront.net/upload/2024/photo1.jpg",
            "/upload/2024/photo2.jpg",
        ]

    def test_description_drops_scripts(self, raw):
        assert raw["description"] == "Spacious unit with open kitchen."

    def test_dates(self, raw):
        assert raw["created"] == "สร้าง: 12/01/2567"
        assert raw["bumped"] == "ดัน: 15/01/2567"

    def test_nearby_places_grouped_and_sorted(self, raw):
        assert [p["name"] for p in raw["bts"]] == ["BTS Ploenchit", "MRT Lumphini"]
        assert raw["bts"][0]["lat"] == 13.7437
        assert raw["hospitals"][0]["distance_km"] == 1.8
        assert raw["malls"][0]["name"] == "Central Chidlom"
        # no distance, skipped
        assert raw["universities"] == []
        assert [p["distance_km"] for p in raw["all_places"]] == [0.35, 0.9, 1.2, 1.8]

    def test_facilities(self, raw):
        assert raw["facilities"] == ["สระว่ายน้ำ", "ฟิตเนส", "รักษาความปลอดภัย 24 ชม."]
        assert raw["has_pool"] and raw["has_gym"] and raw["has_security"]
        assert not raw["has_sauna"]

    def test_phone_falls_back_to_hidden_span(self):
        html = '<body><span id="hideTel_99">089 999 8888</span></body>'
        assert parse_detail_html(html)["phone"] == "0899998888"

    def test_empty_page(self):
        raw = parse_detail_html("<html><body></body></html>")
        assert raw["title"] == ""
        assert raw["imgs"] == []
        assert raw["facilities"] == []


@pytest.mark.asyncio
async def test_extract_reads_page_content():
    class Page:
        async def content(self):
            return DETAIL_HTML

    raw = await extract(Page(), URL)
    assert raw["url"] == URL
    assert raw["price_text"] == "฿ 5,900,000"


class TestBuildListing:
    def test_full_row(self, raw):
        listing = build_listing(raw, URL, max_images=20)

        assert listing.listing_id == "1234567"
        assert listing.price_value == 5_900_000
        assert listing.price_psm == 150_000
        assert listing.discount_percent == 9.2
        assert listing.created_at_iso == "2024-01-12"
        assert listing.bumped_at_iso == "2024-01-15"
        assert listing.contact_phone == "0812345678"
        assert listing.images == (
            "https://d1abc.cloudfront.net/upload/2024/photo1.jpg | "
            "https://www.livinginsider.com/upload/2024/photo2.jpg"
        )
        assert listing.cover_image == "https://d1abc.cloudfront.net/upload/2024/photo1.jpg"
        assert listing.nearest_bts_name == "BTS Ploenchit"
        assert listing.nearest_bts_distance_km == 0.35
        assert json.loads(listing.nearby_bts_json)[1]["name"] == "MRT Lumphini"
        assert listing.facility_count == 3
        assert listing.has_pool is True and listing.has_sauna is False

    def test_dashboard_scores_set_at_normalization(self, raw):
        listing = build_listing(raw, URL)
        assert listing.walkability_score == 90
        assert listing.location_score == 90
        assert listing.facility_score == 52
        assert listing.investment_score == 80
        assert listing.quality_score is None
        assert listing.value_score is None
