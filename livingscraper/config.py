# livingscraper/config.py
"""Process-wide settings read once from the environment.

Every knob is read at import time (after `load_dotenv()`) into the frozen
`settings` singleton. Tests build their own `Settings(...)` instead of
patching the environment.
"""
import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


def _env_int(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return int(default)


def _env_float(name, default):
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return float(default)


def _env_bool(name, default):
    return os.getenv(name, default).strip().lower() not in ("false", "0", "no", "off")


@dataclass(frozen=True)
class Settings:
    # browser
    headless: bool = field(default_factory=lambda: _env_bool("SCRAPE_HEADLESS", "true"))
    nav_timeout_ms: int = field(default_factory=lambda: _env_int("SCRAPE_NAV_TIMEOUT", 60_000))
    action_timeout_ms: int = field(default_factory=lambda: _env_int("SCRAPE_ACTION_TIMEOUT", 12_000))
    detail_timeout_ms: int = field(default_factory=lambda: _env_int("SCRAPE_DETAIL_TIMEOUT_MS", 45_000))
    detail_retries: int = field(default_factory=lambda: _env_int("SCRAPE_DETAIL_RETRIES", 3))

    # list page scrolling
    scroll_rounds: int = field(default_factory=lambda: _env_int("SCRAPE_LIST_SCROLL_ROUNDS", 25))
    scroll_step: int = field(default_factory=lambda: _env_int("SCRAPE_LIST_SCROLL_STEP", 1200))
    step_delay_ms: int = field(default_factory=lambda: _env_int("SCRAPE_STEP_DELAY", 250))
    wait_after_scroll_ms: int = field(default_factory=lambda: _env_int("SCRAPE_WAIT_AFTER_SCROLL", 2000))

    # detail workers
    max_concurrency: int = field(default_factory=lambda: max(1, _env_int("SCRAPE_MAX_CONCURRENCY", 2)))
    max_images: int = field(default_factory=lambda: max(0, _env_int("SCRAPE_MAX_IMAGES", 20)))
    page_recycle_after: int = field(default_factory=lambda: max(1, _env_int("PAGE_RECYCLE_AFTER", 5)))
    backoff_scale: float = field(default_factory=lambda: max(0.0, _env_float("SCRAPE_BACKOFF_SCALE", 1.0)))

    # job store
    job_ttl_ms: int = field(default_factory=lambda: _env_int("CACHE_TTL_MS", 60 * 60 * 1000))
    job_max_items: int = field(default_factory=lambda: max(1, _env_int("CACHE_MAX_ITEMS", 100)))
    sse_ping_ms: int = field(default_factory=lambda: _env_int("SSE_PING_MS", 15_000))
    shared_learning: bool = field(default_factory=lambda: _env_bool("SCRAPE_SHARED_LEARNING", "true"))

    @property
    def sweep_interval_seconds(self):
        """TTL sweep period: half the TTL, never more than a minute."""
        return max(0.001, min(self.job_ttl_ms / 2, 60_000) / 1000)


settings = Settings()
