# tests/test_schemas.py
import pytest
from pydantic import ValidationError
from livingscraper.schemas import LISTING_FIELDS, Listing, RunRequest

URL = "https://www.livinginsider.com"


class TestRunRequest:
    def test_defaults(self):
        req = RunRequest(startUrl=URL)
        assert (req.max_pages, req.max_results, req.sample_every) == (None, 50, 1)
        assert req.prefer_fast_mode == "auto"
        assert req.price_range == (None, None)

    @pytest.mark.parametrize("field,value,expected", [
        ("maxPages", 0, 1),
        ("maxPages", 999, 200),
        ("maxPages", "abc", None),
        ("maxPages", "", None),
        ("maxPages", "7", 7),
        ("maxResults", 10_000, 5000),
        ("maxResults", -5, 1),
        ("maxResults", "12.7", 12),
        ("sampleEvery", 500, 100),
        ("sampleEvery", None, 1),
    ])
    def test_numbers_are_clamped(self, field, value, expected):
        req = RunRequest(**{"startUrl": URL, field: value})
        assert req.model_dump(by_alias=True)[field] == expected

    @pytest.mark.parametrize("url", ["", "   ", "www.livinginsider.com", "ftp://www.livinginsider.com"])
    def test_start_url_must_be_http(self, url):
        with pytest.raises(ValidationError):
            RunRequest(startUrl=url)

    def test_text_fields_are_stripped(self):
        req = RunRequest(startUrl=f"  {URL}  ", keyword="  noble  ", preferFastMode=" FULL ")
        assert req.start_url == URL
        assert req.keyword == "noble"
        assert req.prefer_fast_mode == "full"

    def test_unknown_mode_falls_back_to_auto(self):
        assert RunRequest(startUrl=URL, preferFastMode="turbo").prefer_fast_mode == "auto"

    def test_price_range_parses_thai_text(self):
        req = RunRequest(startUrl=URL, priceMin="฿ 1,500,000", priceMax="3000000")
        assert req.price_range == (1_500_000, 3_000_000)

    def test_is_frozen(self):
        req = RunRequest(startUrl=URL)
        with pytest.raises(ValidationError):
            req.max_pages = 10


def test_listing_dump_follows_export_order():
    row = Listing(listing_id="1", unexpected="ignored").model_dump()
    assert list(row) == LISTING_FIELDS
    assert "unexpected" not in row
