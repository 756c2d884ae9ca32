# livingscraper/sources.py
"""Search seeds (category x location) and per-run source selection."""
import math
import random
from typing import List, Optional
from urllib.parse import quote, urlsplit
from .models import Source
from .utils import logger

DEFAULT_ORIGIN = "https://www.livinginsider.com"

CATEGORIES = [
    {"id": "condo", "name": "คอนโด", "url_part": "คอนโด", "weight": 1.2},
    {"id": "house", "name": "บ้านเดี่ยว", "url_part": "บ้าน", "weight": 1.0},
    {"id": "townhouse", "name": "ทาวน์เฮ้าส์", "url_part": "ทาวน์เฮ้าส์", "weight": 0.9},
    {"id": "land", "name": "ที่ดิน", "url_part": "ที่ดิน", "weight": 0.8},
    {"id": "commercial", "name": "อาคารพาณิชย์", "url_part": "อาคารพาณิชย์", "weight": 0.7},
]

LOCATIONS = [
    {"id": "bangkok", "name": "กรุงเทพมหานคร", "weight": 1.3},
    {"id": "nonthaburi", "name": "นนทบุรี", "weight": 1.0},
    {"id": "pathumthani", "name": "ปทุมธานี", "weight": 0.9},
    {"id": "samutprakan", "name": "สมุทรปราการ", "weight": 0.9},
    {"id": "samutsakorn", "name": "สมุทรสาคร", "weight": 0.7},
]

RENT_WORDS = ("rent", "เช่า", "ให้เช่า")


def deal_segment(deal_type: str) -> str:
    deal = (deal_type or "").strip().lower()
    return "Rent" if any(w in deal for w in RENT_WORDS) else "Buysell"


def site_origin(start_url: Optional[str]) -> str:
    if not start_url:
        return DEFAULT_ORIGIN
    parts = urlsplit(start_url)
    if not parts.scheme or not parts.netloc:
        return DEFAULT_ORIGIN
    return f"{parts.scheme}://{parts.netloc}"


def generate_sources(origin: str = DEFAULT_ORIGIN, deal: str = "Buysell", keyword: str = "") -> List[Source]:
    """Every category x location search URL, in a stable order."""
    sources = []
    for cat in CATEGORIES:
        for loc in LOCATIONS:
            phrase = f"{cat['url_part']} {loc['name']}"
            if keyword:
                phrase = f"{phrase} {keyword}"
            url = f"{origin}/searchword/all/{deal}/1/{quote(phrase, safe='')}.html"
            sources.append(Source(
                id=f"{cat['id']}_{loc['id']}",
                url=url,
                category=cat["name"],
                location=loc["name"],
                name=f"{cat['name']} ใน {loc['name']}",
                weight=cat["weight"] * loc["weight"],
            ))
    return sources


def filter_by_category(sources: List[Source], category: str) -> List[Source]:
    """Keep sources of the requested category; all of them when nothing matches."""
    wanted = (category or "").strip().lower()
    if not wanted:
        return sources
    ids = {c["id"] for c in CATEGORIES if wanted in (c["id"], c["name"].lower())}
    matched = [s for s in sources if s.id.split("_", 1)[0] in ids]
    return matched or sources


def sources_for_run(options) -> List[Source]:
    all_sources = generate_sources(
        origin=site_origin(options.start_url),
        deal=deal_segment(options.deal_type),
        keyword=options.keyword,
    )
    return filter_by_category(all_sources, options.category)


def select_sources(all_sources: List[Source], target_count: int, engine=None, rng=None) -> List[Source]:
    """Pick the sources to crawl for a run of `target_count` listings.

    With learned performance data every source is ranked by its learned
    score (0.5 when unseen) plus up to 0.2 of jitter, so untested sources
    still get picked now and then. Without it, sources are ranked by
    weight times a uniform draw. Roughly ten listings are expected per
    source.
    """
    rng = rng or random.Random()
    needed = math.ceil(target_count / 10)

    if engine is not None and engine.has_source_samples():
        logger.info("Using learned source selection")
        for src in all_sources:
            src.score = engine.source_score(src.id)
        ranked = sorted(all_sources, key=lambda s: s.score + rng.random() * 0.2, reverse=True)
        return ranked[:needed]

    logger.info("Using weighted random source selection")
    ranked = sorted(all_sources, key=lambda s: s.weight * rng.random(), reverse=True)
    return ranked[:max(needed, 3)]
