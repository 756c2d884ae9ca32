# tests/test_learning.py
from livingscraper.learning import LearningEngine
from livingscraper.schemas import Listing


def listing(**fields):
    base = {"listing_title": "Noble Ploenchit 2 Bed", "price_value": 5_000_000, "usable_area_sqm": 65,
            "bedrooms": 2, "location_text": "กรุงเทพมหานคร"}
    base.update(fields)
    return Listing(**base)


class TestDuplicates:
    def test_first_occurrence_is_recorded_not_flagged(self):
        engine = LearningEngine()
        assert engine.is_duplicate(listing()) is False
        assert engine.is_duplicate(listing()) is True
        assert engine.is_duplicate(listing()) is True
        assert engine.duplicates_seen == 2

    def test_signature_ignores_case_and_whitespace(self):
        engine = LearningEngine()
        engine.is_duplicate(listing(listing_title="Noble Ploenchit 2 Bed"))
        assert engine.is_duplicate(listing(listing_title="noble  ploenchit 2bed")) is True

    def test_different_price_is_not_duplicate(self):
        engine = LearningEngine()
        engine.is_duplicate(listing())
        assert engine.is_duplicate(listing(price_value=5_100_000)) is False


class TestPriceAnomaly:
    def test_needs_five_samples(self):
        engine = LearningEngine()
        for _ in range(4):
            engine.learn_price(1_000_000, "คอนโด")
        assert engine.detect_price_anomaly(50_000_000, "คอนโด") is None

    def test_non_positive_prices_are_ignored(self):
        engine = LearningEngine()
        engine.learn_price(0, "คอนโด")
        engine.learn_price(None, "คอนโด")
        engine.learn_price(-5, "คอนโด")
        assert engine.price_stats.count == 0

    def test_global_outlier_wins_over_category(self):
        engine = LearningEngine()
        for _ in range(5):
            engine.learn_price(1_000_000, "คอนโด")
        # also > 300% of the category mean
        assert engine.detect_price_anomaly(10_000_000, "คอนโด") == "outlier_high"

    def test_global_low_outlier(self):
        engine = LearningEngine()
        for price in (1_000_000, 2_000_000, 3_000_000, 4_000_000, 5_000_000):
            engine.learn_price(price, "บ้านเดี่ยว")
        assert engine.detect_price_anomaly(100_000, "บ้านเดี่ยว") == "outlier_low"

    def test_category_check_when_globally_normal(self):
        engine = LearningEngine()
        for _ in range(3):
            engine.learn_price(1_000_000, "คอนโด")
        for _ in range(2):
            engine.learn_price(10_000_000, "ที่ดิน")
        assert engine.detect_price_anomaly(4_000_000, "คอนโด") == "suspiciously_high"
        assert engine.detect_price_anomaly(4_000_000, "ที่ดิน") is None

    def test_uncategorised_prices_skip_category_check(self):
        engine = LearningEngine()
        for _ in range(3):
            engine.learn_price(1_000_000, None)
        for _ in range(2):
            engine.learn_price(5_000_000, "บ้าน")
        assert "" not in engine.category_stats
        assert None not in engine.category_stats
        assert engine.price_stats.count == 5
        assert engine.detect_price_anomaly(4_000_000, None) is None
        assert engine.detect_price_anomaly(4_000_000, "") is None


class TestScrollRecommendation:
    def test_unchanged_until_three_samples(self):
        engine = LearningEngine()
        assert engine.recommend_scroll_rounds(10, 5) == 10
        assert engine.recommend_scroll_rounds(10, 5) == 10
        assert engine.recommend_scroll_rounds(10, 5) == 15

    def test_increase_is_capped(self):
        engine = LearningEngine()
        for _ in range(3):
            rounds = engine.recommend_scroll_rounds(33, 2)
        assert rounds == 35

    def test_rich_pages_scroll_less_but_not_below_floor(self):
        engine = LearningEngine()
        for _ in range(3):
            rounds = engine.recommend_scroll_rounds(16, 30)
        assert rounds == 15

    def test_history_is_bounded(self):
        engine = LearningEngine()
        for _ in range(50):
            engine.recommend_scroll_rounds(25, 10)
        assert len(engine.scroll_history) == 20


class TestSourcePerformance:
    def test_score_blends_success_links_and_quality(self):
        engine = LearningEngine()
        perf = engine.record_source_performance("condo_bangkok", True, 15, 0.5)
        assert perf.score == 0.4 + 0.3 + 0.15
        perf = engine.record_source_performance("condo_bangkok", False, 0, 0.5)
        assert perf.attempts == 2
        assert perf.avg_links_found == 7.5
        assert round(perf.score, 4) == round(0.5 * 0.4 + 0.5 * 0.3 + 0.5 * 0.3, 4)

    def test_unseen_source_scores_half(self):
        assert LearningEngine().source_score("land_bangkok") == 0.5


def test_spawn_shares_learning_but_not_duplicates():
    parent = LearningEngine()
    parent.is_duplicate(listing())
    child = parent.spawn()
    child.learn_price(2_000_000, "คอนโด")
    child.record_source_performance("condo_bangkok", True, 10)

    assert child.is_duplicate(listing()) is False
    assert parent.price_stats.count == 1
    assert parent.has_source_samples()


def test_insights_summarize_sources_and_prices():
    engine = LearningEngine()
    engine.record_source_performance("condo_bangkok", True, 15, 1.0)
    engine.record_source_performance("land_samutsakorn", False, 0, 0.0)
    engine.learn_price(2_000_000, "คอนโด")
    engine.learn_price(4_000_000, "คอนโด")

    insights = engine.generate_insights()
    assert insights["total_sources"] == 2
    assert insights["best_source"]["id"] == "condo_bangkok"
    assert insights["worst_source"]["id"] == "land_samutsakorn"
    assert insights["price_range"] == {"min": 2_000_000, "max": 4_000_000, "avg": 3_000_000}
    assert insights["category_breakdown"]["คอนโด"]["count"] == 2
    assert insights["recommendations"] == ["Focus on high-performing sources for better results"]


def test_insights_on_empty_engine():
    insights = LearningEngine().generate_insights()
    assert insights["price_range"]["min"] == 0
    assert insights["best_source"] is None
