# tests/conftest.py
import random
from contextlib import asynccontextmanager
import pytest
from livingscraper.config import Settings
from livingscraper.learning import LearningEngine
from livingscraper.schemas import RunRequest

ORIGIN = "https://www.livinginsider.com"


def detail_url(n):
    return f"{ORIGIN}/livingdetail/{100000 + n}/condo-for-sale-{n}.html"


def raw_listing(url):
    """A plausible extraction result, unique per URL."""
    n = int(url.split("/livingdetail/")[1].split("/")[0]) - 100000
    return {
        "title": f"ขายคอนโด Noble Ploenchit unit {n}",
        "category": "คอนโด",
        "deal_type": "ขาย",
        "price_text": f"฿ {5_000_000 + n:,}",
        "bedrooms": 2,
        "bathrooms": 2,
        "usable_area_sqm": 65.5,
        "location_text": "กรุงเทพมหานคร",
        "phone": "081-234-5678",
        "agent_name": "Khun Somchai",
        "imgs": [f"/upload/{n}/photo{i}.jpg" for i in range(3)],
        "description": "Spacious two bedroom unit close to BTS Ploenchit with city view.",
        "bts": [{"name": "BTS Ploenchit", "distance_km": 0.4, "lat": None, "lng": None}],
    }


class FakePage:
    def __init__(self):
        self.closed = False

    def is_closed(self):
        return self.closed

    async def close(self):
        self.closed = True


class FakeContext:
    def __init__(self, mode):
        self.mode = mode
        self.closed = False

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self):
        self.closed = False


class FakeDriver:
    """Stands in for LivingInsiderDriver; every list page yields `links`."""

    def __init__(self, links=(), failures=None, failing_sources=(), raw=raw_listing):
        self.links = list(links)
        self.failures = {url: list(errors) for url, errors in (failures or {}).items()}
        self.failing_sources = set(failing_sources)
        self.raw = raw
        self.browser = None
        self.contexts = []
        self.pages = []
        self.visited = []
        self.scroll_rounds = []
        self.attempts = {}

    @asynccontextmanager
    async def launch(self):
        self.browser = FakeBrowser()
        try:
            yield self.browser
        finally:
            self.browser.closed = True

    async def new_context(self, browser, mode="auto"):
        context = FakeContext(mode)
        self.contexts.append(context)
        return context

    async def new_page(self, context):
        page = FakePage()
        self.pages.append(page)
        return page

    async def close(self, target):
        await target.close()

    async def goto(self, page, url, retries=2):
        self.visited.append(url)
        if len(self.visited) in self.failing_sources:
            raise TimeoutError(f"Timeout 60000ms exceeded navigating to {url}")

    async def dismiss_overlays(self, page):
        return None

    async def auto_scroll(self, page, rounds=None, step=None):
        self.scroll_rounds.append(rounds)
        return rounds

    async def harvest_links(self, page):
        return list(self.links)

    async def load_detail(self, page, url):
        self.attempts[url] = self.attempts.get(url, 0) + 1
        pending = self.failures.get(url)
        if pending:
            raise pending.pop(0)
        return self.raw(url)


@pytest.fixture
def settings():
    return Settings(
        headless=True,
        detail_timeout_ms=5000,
        detail_retries=3,
        scroll_rounds=25,
        step_delay_ms=0,
        wait_after_scroll_ms=0,
        max_concurrency=2,
        max_images=20,
        page_recycle_after=5,
        backoff_scale=0.0,
        job_ttl_ms=60_000,
        job_max_items=10,
        sse_ping_ms=50,
        shared_learning=True,
    )


@pytest.fixture
def engine():
    return LearningEngine()


@pytest.fixture
def rng():
    return random.Random(7)


@pytest.fixture
def make_options():
    def make(**overrides):
        body = {"startUrl": ORIGIN}
        body.update(overrides)
        return RunRequest(**body)
    return make
