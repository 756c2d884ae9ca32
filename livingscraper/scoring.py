# livingscraper/scoring.py
"""Quality and dashboard scores for normalized listings.

Sub-scores are computed on a 0-1 scale and stored on the listing as
integers on a 0-100 scale. Dashboard scores (walkability, location,
facility, investment) are filled at normalization time; the quality pass
runs after duplicate detection and price learning and ends with
`value_score`, which needs the quality score.
"""
import re

COMPLETENESS_FIELDS = (
    "listing_title", "category", "deal_type", "price_value",
    "location_text", "bedrooms", "bathrooms", "usable_area_sqm",
    "contact_phone", "agent_name", "images", "description_text",
)

LOCAL_PHONE = re.compile(r"^0\d{8,9}$")


def _filled(value) -> bool:
    if value is None or value == "":
        return False
    if isinstance(value, str) and len(value) < 2:
        return False
    return True


def score_data_completeness(listing) -> float:
    filled = sum(1 for name in COMPLETENESS_FIELDS if _filled(getattr(listing, name)))
    return filled / len(COMPLETENESS_FIELDS)


def score_contact_quality(listing) -> float:
    score = 0.0
    phone = re.sub(r"[\s-]", "", listing.contact_phone or "")
    if phone and LOCAL_PHONE.match(phone):
        score += 0.4
    if listing.contact_email and "@" in listing.contact_email:
        score += 0.2
    if listing.contact_line_url:
        score += 0.2
    if listing.agent_name and len(listing.agent_name) > 2:
        score += 0.1
    if listing.agent_verified:
        score += 0.1
    return score


def score_image_quality(listing) -> float:
    count = listing.image_count
    if count >= 10:
        return 1.0
    return count / 10


def score_price_reliability(listing) -> float:
    price = listing.price_value
    if not price or price <= 0:
        return 0.0
    score = 0.5
    if listing.price_psm and listing.price_psm > 0:
        score += 0.2
    if 100_000 < price < 1_000_000_000:
        score += 0.2
    if listing.old_price_text:
        score += 0.1
    return min(score, 1.0)


def calculate_quality_score(listing) -> int:
    score = (
        score_data_completeness(listing) * 0.35
        + score_contact_quality(listing) * 0.25
        + score_image_quality(listing) * 0.20
        + score_price_reliability(listing) * 0.20
    )
    return round(score * 100)


def walkability_score(transit_km) -> int:
    if transit_km is None:
        return 0
    if transit_km <= 0.3:
        return 100
    if transit_km <= 0.5:
        return 90
    if transit_km <= 0.8:
        return 75
    if transit_km <= 1.2:
        return 60
    if transit_km <= 2.0:
        return 40
    return 20


def _proximity(distance_km, bands):
    if distance_km is None:
        return 0
    for limit, points in bands:
        if distance_km <= limit:
            return points
    return 0


def location_score(transit_km, mall_km, hospital_km) -> int:
    score = _proximity(transit_km, ((0.5, 40), (1.0, 30), (2.0, 15)))
    score += _proximity(mall_km, ((1.0, 30), (2.0, 20), (3.0, 10)))
    score += _proximity(hospital_km, ((1.0, 30), (2.0, 20), (3.0, 10)))
    return min(score, 100)


def facility_score(facility_count, has_pool, has_gym) -> int:
    score = ((facility_count or 0) / 15) * 60
    if has_pool:
        score += 20
    if has_gym:
        score += 20
    return min(round(score), 100)


def investment_score(price_psm, transit_km, facility_count) -> int:
    score = 50
    if price_psm:
        if price_psm < 100_000:
            score += 25
        elif price_psm < 150_000:
            score += 15
        elif price_psm < 200_000:
            score += 5
    if transit_km:
        score += _proximity(transit_km, ((0.3, 35), (0.5, 25), (1.0, 15)))
    count = facility_count or 0
    if count >= 10:
        score += 20
    elif count >= 7:
        score += 15
    elif count >= 5:
        score += 10
    return min(score, 100)


def apply_dashboard_scores(listing):
    listing.walkability_score = walkability_score(listing.nearest_bts_distance_km)
    listing.location_score = location_score(
        listing.nearest_bts_distance_km,
        listing.nearest_mall_distance_km,
        listing.nearest_hospital_distance_km,
    )
    listing.facility_score = facility_score(listing.facility_count, listing.has_pool, listing.has_gym)
    listing.investment_score = investment_score(
        listing.price_psm, listing.nearest_bts_distance_km, listing.facility_count
    )
    return listing


def anomaly_flags(listing, engine):
    flags = []
    price_anomaly = engine.detect_price_anomaly(listing.price_value, listing.category)
    if price_anomaly:
        flags.append(f"price_{price_anomaly}")
    if not listing.contact_phone and not listing.contact_email:
        flags.append("no_contact")
    if listing.image_count == 0:
        flags.append("no_images")
    if not listing.price_value:
        flags.append("no_price")
    if listing.listing_title and len(listing.listing_title) < 10:
        flags.append("short_title")
    if listing.description_text and len(listing.description_text) < 50:
        flags.append("short_description")
    return ",".join(flags) or None


def value_score(quality, price, location) -> int:
    """Blend of 0-100 scores: quality 40%, price 30%, location 30%."""
    return round(quality * 0.40 + price * 0.30 + location * 0.30)


def apply_quality_scores(listing, engine):
    listing.quality_score = calculate_quality_score(listing)
    listing.price_score = round(score_price_reliability(listing) * 100)
    listing.data_completeness = round(score_data_completeness(listing) * 100)
    listing.anomaly_flags = anomaly_flags(listing, engine)
    if listing.location_score is None:
        apply_dashboard_scores(listing)
    listing.value_score = value_score(listing.quality_score, listing.price_score, listing.location_score)
    return listing
