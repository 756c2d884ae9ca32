# livingscraper/browser.py
"""Playwright driver for LivingInsider list and detail pages."""
import asyncio
import re
from contextlib import asynccontextmanager
from urllib.parse import urlsplit
from playwright.async_api import Error as PlaywrightError, async_playwright
from .config import settings as default_settings
from .extract import extract as default_extract
from .utils import abs_url, logger, retry

LAUNCH_ARGS = ["--disable-dev-shm-usage", "--disable-gpu", "--no-sandbox"]
CONTEXT_OPTIONS = {"locale": "th-TH", "timezone_id": "Asia/Bangkok"}

PERF_CSS = (
    "*, *::before, *::after { animation-duration: 0.001s !important; "
    "transition-duration: 0.001s !important; }"
)

BLOCKED_URL_PARTS = (
    "doubleclick", "googlesyndication", "googletagmanager", "google-analytics",
    "facebook.com/tr", "hotjar", "/ads", "analytics", "tracking",
)

OVERLAY_SELECTORS = ('button:has-text("ยอมรับ")', 'button:has-text("ตกลง")', ".swal2-close", ".close")

PHONE_BUTTON_SELECTORS = (
    'div.ownCont-active.ch-lightgreen:has(img[alt="tel"])',
    'div.ownCont-active:has(img[alt="tel"])',
    'div.ch-lightgreen:has(img[alt="tel"])',
    'img[alt="tel"]',
    "text=ดูเบอร์",
)
PHONE_MODAL = "#phone_number_modal_show"

DETAIL_PATH = re.compile(r"^/livingdetail/(\d{4,})/")
TRANSIENT_ERRORS = (PlaywrightError, asyncio.TimeoutError)


def is_crash_error(exc) -> bool:
    msg = str(exc).lower()
    return "crash" in msg or "closed" in msg


def goto_backoff(attempt, exc) -> float:
    """Seconds to wait after a failed navigation attempt."""
    if "crash" in str(exc).lower():
        return 2.0 + 1.0 * attempt
    return 0.45 + 0.7 * attempt


def detail_backoff(attempt, exc) -> float:
    if is_crash_error(exc):
        return 3.0 + 1.5 * attempt
    return 0.8 + 0.6 * attempt


def is_detail_url(url, host=None) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if not parts.hostname:
        return False
    if host and parts.hostname != host:
        return False
    return bool(DETAIL_PATH.match(parts.path))


def filter_detail_links(hrefs, page_url):
    """Absolute detail-page URLs found in `hrefs`, deduplicated, in page order."""
    host = urlsplit(page_url).hostname
    out = []
    for href in hrefs:
        url = abs_url(page_url, (href or "").strip())
        if url and is_detail_url(url, host) and url not in out:
            out.append(url)
    return out


def make_route_handler(mode="auto"):
    mode = (mode or "auto").lower()

    async def handle(route):
        request = route.request
        url, kind = request.url, request.resource_type
        if any(part in url for part in BLOCKED_URL_PARTS):
            return await route.abort()
        if mode == "full":
            return await route.continue_()
        if kind in ("media", "font", "websocket"):
            return await route.abort()
        if kind == "image" and "/search" in url:
            return await route.abort()
        if mode == "fast" and kind == "stylesheet":
            return await route.abort()
        return await route.continue_()

    return handle


class LivingInsiderDriver:
    """Owns every browser interaction; the pipeline only sees these methods."""

    def __init__(self, settings=None, extract=None):
        self.settings = settings or default_settings
        self.extract = extract or default_extract

    @asynccontextmanager
    async def launch(self):
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=self.settings.headless, args=LAUNCH_ARGS)
            logger.info("Browser launched (headless=%s)", self.settings.headless)
            try:
                yield browser
            finally:
                await self.close(browser)

    async def new_context(self, browser, mode="auto"):
        context = await browser.new_context(**CONTEXT_OPTIONS)
        context.set_default_navigation_timeout(self.settings.nav_timeout_ms)
        context.set_default_timeout(self.settings.action_timeout_ms)
        await context.route("**/*", make_route_handler(mode))
        return context

    async def new_page(self, context):
        page = await context.new_page()
        await self.inject_perf_css(page)
        return page

    async def close(self, target):
        try:
            await target.close()
        except PlaywrightError as e:
            logger.debug("Close failed: %s", e)

    async def inject_perf_css(self, page):
        try:
            await page.add_style_tag(content=PERF_CSS)
        except PlaywrightError:
            pass

    async def goto(self, page, url, retries=2):
        scale = self.settings.backoff_scale

        @retry(TRANSIENT_ERRORS, tries=retries + 1, wait=lambda attempt, e: goto_backoff(attempt, e) * scale)
        async def _goto():
            await page.goto(url, timeout=self.settings.nav_timeout_ms, wait_until="domcontentloaded")

        await _goto()

    async def dismiss_overlays(self, page):
        try:
            await page.keyboard.press("Escape")
        except PlaywrightError:
            pass
        for selector in OVERLAY_SELECTORS:
            try:
                loc = page.locator(selector).first
                if await loc.count() > 0:
                    await loc.click(timeout=900)
                    await page.wait_for_timeout(120)
            except PlaywrightError:
                continue

    async def reveal_contact(self, page) -> bool:
        """Click the "show phone" control and wait for the number modal."""
        click_timeout = min(3000, self.settings.action_timeout_ms)
        for selector in PHONE_BUTTON_SELECTORS:
            loc = page.locator(selector).first
            try:
                if await loc.count() == 0:
                    continue
            except PlaywrightError:
                continue
            # click and modal failures are non-fatal once a control is found
            try:
                await loc.scroll_into_view_if_needed(timeout=click_timeout)
                await loc.click(timeout=click_timeout)
                await page.wait_for_selector(PHONE_MODAL, timeout=8000)
            except PlaywrightError as e:
                logger.debug("Phone reveal via %s incomplete: %s", selector, e)
            return True
        return False

    async def auto_scroll(self, page, rounds=None, step=None):
        """Scroll until the page height is stable for 5 rounds or `rounds` run out.

        Returns the number of rounds actually scrolled.
        """
        rounds = rounds or self.settings.scroll_rounds
        step = step or self.settings.scroll_step
        last_height, stable, used = 0, 0, 0
        for _ in range(rounds):
            try:
                height = await page.evaluate("() => document.documentElement.scrollHeight")
            except PlaywrightError:
                height = 0
            if height and height == last_height:
                stable += 1
                if stable >= 5:
                    break
            else:
                stable = 0
            last_height = height
            try:
                await page.evaluate("(y) => window.scrollBy(0, y)", step)
            except PlaywrightError:
                pass
            used += 1
            await page.wait_for_timeout(self.settings.step_delay_ms)
        await page.wait_for_timeout(self.settings.wait_after_scroll_ms)
        return used

    async def harvest_links(self, page):
        try:
            hrefs = await page.eval_on_selector_all("a[href]", "els => els.map(a => a.getAttribute('href') || '')")
        except PlaywrightError as e:
            logger.warning("Link harvest failed on %s: %s", page.url, e)
            return []
        return filter_detail_links(hrefs, page.url)

    async def load_detail(self, page, url):
        await self.goto(page, url)
        await page.wait_for_timeout(300)
        await self.inject_perf_css(page)
        await self.dismiss_overlays(page)
        if await self.reveal_contact(page):
            await page.wait_for_timeout(600)
        return await self.extract(page, url)
