# livingscraper/schemas.py
import math
import re
from typing import Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from .utils import parse_number_like

Number = Union[int, float]


def _clamp_int(v, lo, hi, fallback):
    try:
        n = float(v)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(n):
        return fallback
    return min(hi, max(lo, int(n)))


def _clean_str(v):
    return "" if v is None else str(v).strip()


class RunRequest(BaseModel):
    """Normalized run configuration; immutable once a job holds it."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    start_url: str = Field(..., alias="startUrl")
    deal_type: str = Field("", alias="dealType")
    category: str = ""
    keyword: str = ""
    price_min: str = Field("", alias="priceMin")
    price_max: str = Field("", alias="priceMax")
    max_pages: Optional[int] = Field(None, alias="maxPages")
    max_results: int = Field(50, alias="maxResults")
    sample_every: int = Field(1, alias="sampleEvery")
    prefer_fast_mode: str = Field("auto", alias="preferFastMode")

    @field_validator("start_url", mode="before")
    @classmethod
    def validate_start_url(cls, v):
        v = _clean_str(v)
        if not v:
            raise ValueError("startUrl is required")
        if not re.match(r"^https?://", v, re.I):
            raise ValueError("startUrl must start with http/https")
        return v

    @field_validator("deal_type", "category", "keyword", "price_min", "price_max", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _clean_str(v)

    @field_validator("max_pages", mode="before")
    @classmethod
    def clamp_max_pages(cls, v):
        if v is None or _clean_str(v) == "":
            return None
        return _clamp_int(v, 1, 200, None)

    @field_validator("max_results", mode="before")
    @classmethod
    def clamp_max_results(cls, v):
        return _clamp_int(v, 1, 5000, 50)

    @field_validator("sample_every", mode="before")
    @classmethod
    def clamp_sample_every(cls, v):
        return _clamp_int(v, 1, 100, 1)

    @field_validator("prefer_fast_mode", mode="before")
    @classmethod
    def normalize_mode(cls, v):
        v = _clean_str(v).lower()
        return v if v in ("auto", "fast", "full") else "auto"

    @property
    def price_range(self):
        return parse_number_like(self.price_min), parse_number_like(self.price_max)


class Listing(BaseModel):
    """One normalized output row. Field order is the export column order."""
    model_config = ConfigDict(extra="ignore")

    # basic
    listing_id: Optional[str] = None
    listing_url: Optional[str] = None
    category: Optional[str] = None
    deal_type: Optional[str] = None
    project_name: Optional[str] = None
    listing_title: Optional[str] = None
    price_text: Optional[str] = None
    price_value: Optional[Number] = None
    price_psm: Optional[Number] = None
    old_price_text: Optional[str] = None
    discount_percent: Optional[float] = None
    usable_area_sqm: Optional[Number] = None
    floor: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    parking: Optional[int] = None
    furnishing: Optional[str] = None
    direction: Optional[str] = None
    # dates
    created_at_iso: Optional[str] = None
    bumped_at_iso: Optional[str] = None
    # location
    location_text: Optional[str] = None
    province: Optional[str] = None
    district: Optional[str] = None
    # nearby places, JSON encoded
    nearby_bts_json: Optional[str] = None
    nearby_hospitals_json: Optional[str] = None
    nearby_universities_json: Optional[str] = None
    nearby_malls_json: Optional[str] = None
    nearby_all_json: Optional[str] = None
    nearest_bts_name: Optional[str] = None
    nearest_bts_distance_km: Optional[float] = None
    nearest_hospital_name: Optional[str] = None
    nearest_hospital_distance_km: Optional[float] = None
    nearest_mall_name: Optional[str] = None
    nearest_mall_distance_km: Optional[float] = None
    # map
    map_url: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    # agent
    agent_name: Optional[str] = None
    agent_url: Optional[str] = None
    agent_verified: Optional[bool] = None
    agent_rating: Optional[float] = None
    # stats
    clicks: Optional[int] = None
    views: Optional[int] = None
    favorites: Optional[int] = None
    # contact
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    contact_line_url: Optional[str] = None
    contact_line_id: Optional[str] = None
    contact_facebook_url: Optional[str] = None
    contact_buttons: Optional[str] = None
    # content
    description_text: Optional[str] = None
    highlights: Optional[str] = None
    detail_snippet: Optional[str] = None
    # images
    images: Optional[str] = None
    cover_image: Optional[str] = None
    # facilities
    facilities_json: Optional[str] = None
    facility_count: Optional[int] = None
    has_pool: Optional[bool] = None
    has_gym: Optional[bool] = None
    has_parking: Optional[bool] = None
    has_security: Optional[bool] = None
    has_garden: Optional[bool] = None
    has_sauna: Optional[bool] = None
    has_ev_charger: Optional[bool] = None
    has_sky_pool: Optional[bool] = None
    has_foreigner_quota: Optional[bool] = None
    is_luxury: Optional[bool] = None
    has_private_lift: Optional[bool] = None
    # quality scores
    quality_score: Optional[int] = None
    price_score: Optional[int] = None
    data_completeness: Optional[int] = None
    anomaly_flags: Optional[str] = None
    # dashboard scores
    walkability_score: Optional[int] = None
    location_score: Optional[int] = None
    facility_score: Optional[int] = None
    investment_score: Optional[int] = None
    value_score: Optional[int] = None

    @property
    def image_count(self) -> int:
        if not self.images:
            return 0
        return len([x for x in self.images.split("|") if x.strip()])


LISTING_FIELDS = list(Listing.model_fields)
