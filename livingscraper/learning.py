# livingscraper/learning.py
"""Learning engine: source performance, price statistics, duplicate
signatures and scroll-depth feedback.

One engine is created per process and each run works on `engine.spawn()`:
the child shares the learned statistics but owns its duplicate set, so a
listing seen in an earlier run is not dropped from a later one.
"""
import math
import re
from collections import deque
from typing import Dict, Optional
from .models import PriceStats, SourcePerformance
from .utils import logger

SCROLL_HISTORY_SIZE = 20
MIN_SCROLL_ROUNDS = 15
MAX_SCROLL_ROUNDS = 35


class LearningEngine:
    def __init__(self):
        self.source_performance: Dict[str, SourcePerformance] = {}
        self.price_stats = PriceStats()
        self.category_stats: Dict[str, PriceStats] = {}
        self.scroll_history = deque(maxlen=SCROLL_HISTORY_SIZE)
        self.duplicate_signatures = set()
        self.duplicates_seen = 0

    def spawn(self) -> "LearningEngine":
        child = LearningEngine()
        child.source_performance = self.source_performance
        child.price_stats = self.price_stats
        child.category_stats = self.category_stats
        child.scroll_history = self.scroll_history
        return child

    # -- sources ---------------------------------------------------------

    def has_source_samples(self) -> bool:
        return bool(self.source_performance)

    def source_score(self, source_id: str) -> float:
        perf = self.source_performance.get(source_id)
        return perf.score if perf else 0.5

    def record_source_performance(self, source_id: str, success: bool, links_found: int, avg_quality: float = 0.0):
        perf = self.source_performance.setdefault(source_id, SourcePerformance())
        perf.attempts += 1
        perf.successes += 1 if success else 0
        perf.total_links += links_found or 0
        perf.avg_links_found = perf.total_links / perf.attempts
        perf.avg_quality = (perf.avg_quality * (perf.attempts - 1) + (avg_quality or 0)) / perf.attempts
        # success rate 40%, link yield 30%, quality 30%
        perf.score = (
            (perf.successes / perf.attempts) * 0.4
            + min(perf.avg_links_found / 15, 1) * 0.3
            + perf.avg_quality * 0.3
        )
        logger.info("Source %s score: %.1f%%", source_id, perf.score * 100)
        return perf

    # -- prices ----------------------------------------------------------

    def learn_price(self, price, category):
        if not price or price <= 0:
            return
        self.price_stats.add(price)
        if category:
            self.category_stats.setdefault(category, PriceStats()).add(price)

    def detect_price_anomaly(self, price, category) -> Optional[str]:
        """Classify a price against what has been seen so far.

        Global checks take precedence over the per-category ones.
        """
        if not price or self.price_stats.count < 5:
            return None

        mean = self.price_stats.mean
        std = _std_dev(self.price_stats.values, mean)
        z = abs((price - mean) / (std or 1))

        category_anomaly = None
        stats = self.category_stats.get(category) if category else None
        if stats is not None and stats.count >= 3:
            cat_mean = stats.mean
            if price < cat_mean * 0.3:
                category_anomaly = "suspiciously_low"
            if price > cat_mean * 3:
                category_anomaly = "suspiciously_high"

        if z > 3:
            return "outlier_high"
        if price < mean * 0.1:
            return "outlier_low"
        return category_anomaly

    # -- duplicates ------------------------------------------------------

    @staticmethod
    def signature(listing) -> str:
        title = listing.listing_title or ""
        parts = [
            re.sub(r"\s+", "", title.lower()),
            listing.price_value,
            listing.usable_area_sqm,
            listing.bedrooms,
            listing.location_text,
        ]
        return "|".join(str(p) for p in parts if p)

    def is_duplicate(self, listing) -> bool:
        sig = self.signature(listing)
        if sig in self.duplicate_signatures:
            self.duplicates_seen += 1
            return True
        self.duplicate_signatures.add(sig)
        return False

    # -- scrolling -------------------------------------------------------

    def recommend_scroll_rounds(self, current_rounds: int, links_found: int) -> int:
        """Record a scroll sample and return the rounds to use next."""
        self.scroll_history.append({"rounds": current_rounds, "links": links_found})
        if len(self.scroll_history) < 3:
            return current_rounds

        recent = list(self.scroll_history)[-3:]
        avg_links = sum(x["links"] for x in recent) / len(recent)
        if avg_links < 8:
            return min(current_rounds + 5, MAX_SCROLL_ROUNDS)
        if avg_links > 20:
            return max(current_rounds - 3, MIN_SCROLL_ROUNDS)
        return current_rounds

    # -- reporting -------------------------------------------------------

    def generate_insights(self) -> dict:
        stats = self.price_stats
        insights = {
            "total_sources": len(self.source_performance),
            "best_source": None,
            "worst_source": None,
            "price_range": {
                "min": 0 if stats.min == math.inf else stats.min,
                "max": stats.max,
                "avg": stats.mean,
            },
            "category_breakdown": {},
            "duplicates_detected": self.duplicates_seen,
            "recommendations": [],
        }

        best_score, worst_score = 0.0, 1.0
        for source_id, perf in self.source_performance.items():
            if perf.score > best_score:
                best_score = perf.score
                insights["best_source"] = {"id": source_id, "score": perf.score, "avg_links": perf.avg_links_found}
            if perf.score < worst_score and perf.attempts > 0:
                worst_score = perf.score
                insights["worst_source"] = {"id": source_id, "score": perf.score}

        for category, cat in self.category_stats.items():
            insights["category_breakdown"][category] = {
                "count": cat.count,
                "avg_price": cat.mean,
                "price_range": [cat.min, cat.max],
            }

        if best_score > 0.7:
            insights["recommendations"].append("Focus on high-performing sources for better results")
        if self.duplicates_seen > 5:
            insights["recommendations"].append(
                f"{self.duplicates_seen} duplicates detected - consider expanding sources"
            )
        return insights


def _std_dev(values, mean) -> float:
    if len(values) < 2:
        return 0.0
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return math.sqrt(variance)
