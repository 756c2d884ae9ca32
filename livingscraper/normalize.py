# livingscraper/normalize.py
"""Map the open-ended field bag from extraction onto the fixed `Listing` row.

Unknown keys are ignored and every missing value ends up as an explicit
None. Dashboard scores are filled here; quality scores come later, once the
row has passed duplicate detection.
"""
import json
import re
from typing import Any, Dict, List
from urllib.parse import urlsplit
from .schemas import Listing
from .scoring import apply_dashboard_scores
from .utils import abs_url, clean_text, parse_number_like, thai_date_to_iso

DESCRIPTION_LIMIT = 1500
SNIPPET_LIMIT = 180
FACILITY_FLAGS = (
    "has_pool", "has_gym", "has_parking", "has_security", "has_garden",
    "has_sauna", "has_ev_charger", "has_sky_pool", "has_foreigner_quota",
    "is_luxury", "has_private_lift",
)

_LISTING_ID = re.compile(r"/livingdetail/(\d+)/")


def listing_id_from_url(url):
    try:
        m = _LISTING_ID.search(urlsplit(url).path)
    except ValueError:
        return None
    return m.group(1) if m else None


def _text(value):
    return clean_text(value) or None


def _int(value):
    n = parse_number_like(value) if isinstance(value, str) else value
    if n is None or isinstance(n, bool):
        return None
    try:
        return int(n)
    except (TypeError, ValueError):
        return None


def _float(value):
    try:
        return float(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _json(value):
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    return json.dumps(value, ensure_ascii=False)


def _nearest(places):
    if not places:
        return None, None
    first = places[0]
    return first.get("name"), _float(first.get("distance_km"))


def absolute_images(url, images, limit) -> List[str]:
    """Resolve image URLs against the page, keep first occurrences, cap the count."""
    out = []
    for src in images or []:
        full = abs_url(url, src)
        if full and full not in out:
            out.append(full)
    return out[:limit]


def discount_percent(price, old_price):
    if not price or not old_price or old_price <= price:
        return None
    return round((old_price - price) / old_price * 100, 1)


def build_listing(raw: Dict[str, Any], url: str, max_images: int = 20) -> Listing:
    price_value = parse_number_like(clean_text(raw.get("price_text")))
    old_price_text = _text(raw.get("old_price_text"))
    description = clean_text(raw.get("description"))
    images = absolute_images(url, raw.get("imgs"), max_images)
    facilities = raw.get("facilities") or []

    bts = raw.get("bts") or []
    hospitals = raw.get("hospitals") or []
    malls = raw.get("malls") or []
    bts_name, bts_km = _nearest(bts)
    hospital_name, hospital_km = _nearest(hospitals)
    mall_name, mall_km = _nearest(malls)

    phone = re.sub(r"[\s-]", "", raw.get("phone") or "")

    listing = Listing(
        listing_id=listing_id_from_url(url),
        listing_url=url,
        category=_text(raw.get("category")),
        deal_type=_text(raw.get("deal_type")),
        project_name=_text(raw.get("project_name")),
        listing_title=_text(raw.get("title")),
        price_text=_text(raw.get("price_text")),
        price_value=price_value,
        price_psm=parse_number_like(raw.get("price_psm_text") or None),
        old_price_text=old_price_text,
        discount_percent=discount_percent(price_value, parse_number_like(old_price_text)),
        usable_area_sqm=raw.get("usable_area_sqm"),
        floor=_text(raw.get("floor")),
        bedrooms=_int(raw.get("bedrooms")),
        bathrooms=_int(raw.get("bathrooms")),
        parking=_int(raw.get("parking")),
        created_at_iso=thai_date_to_iso(raw.get("created")),
        bumped_at_iso=thai_date_to_iso(raw.get("bumped")),
        location_text=_text(raw.get("location_text")),
        province=_text(raw.get("province")),
        nearby_bts_json=_json(bts),
        nearby_hospitals_json=_json(hospitals),
        nearby_universities_json=_json(raw.get("universities") or []),
        nearby_malls_json=_json(malls),
        nearby_all_json=_json((raw.get("all_places") or [])[:20]),
        nearest_bts_name=bts_name,
        nearest_bts_distance_km=bts_km,
        nearest_hospital_name=hospital_name,
        nearest_hospital_distance_km=hospital_km,
        nearest_mall_name=mall_name,
        nearest_mall_distance_km=mall_km,
        agent_name=_text(raw.get("agent_name")),
        agent_verified=bool(raw.get("agent_verified")),
        clicks=_int(raw.get("clicks")),
        views=_int(raw.get("views")),
        contact_phone=phone or None,
        contact_email=_text(raw.get("email")),
        contact_line_url=_text(raw.get("line_url")),
        contact_line_id=_text(raw.get("line_id")),
        contact_facebook_url=_text(raw.get("fb_url")),
        description_text=description[:DESCRIPTION_LIMIT] or None,
        detail_snippet=description[:SNIPPET_LIMIT] or None,
        images=" | ".join(images) or None,
        cover_image=images[0] if images else None,
        facilities_json=_json(facilities),
        facility_count=len(facilities),
        **{flag: bool(raw.get(flag)) for flag in FACILITY_FLAGS},
    )
    return apply_dashboard_scores(listing)
