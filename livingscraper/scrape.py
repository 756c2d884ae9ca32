# livingscraper/scrape.py
"""The scrape pipeline: pick sources, collect detail links, parse details.

One `ScrapePipeline` handles one run. Link collection walks the selected
sources one after another so scroll feedback from a source shapes the
next; detail pages are then drained by a fixed pool of workers sharing a
`WorkQueue`. Workers only touch shared state (queue, meta, rows, engine)
between awaits.
"""
import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from .browser import LivingInsiderDriver, detail_backoff, is_crash_error
from .config import settings as default_settings
from .learning import LearningEngine
from .models import new_job_meta
from .normalize import build_listing
from .scoring import apply_quality_scores
from .sources import select_sources, sources_for_run
from .utils import logger

PROGRESS_EVERY = 5
SOURCE_QUALITY_PLACEHOLDER = 0.5


def now_iso():
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WorkQueue:
    """FIFO of detail URLs; `claim()` never suspends, so no two workers get the same item."""

    def __init__(self, items=()):
        self._items = deque(items)

    def claim(self) -> Optional[str]:
        if not self._items:
            return None
        return self._items.popleft()

    def __len__(self):
        return len(self._items)


@dataclass
class ScrapeResult:
    rows: List[Dict[str, Any]]
    meta: Dict[str, Any]
    insights: Dict[str, Any] = field(default_factory=dict)


class _Worker:
    def __init__(self, worker_id, page):
        self.id = worker_id
        self.page = page
        self.processed = 0


class ScrapePipeline:
    def __init__(
        self,
        options,
        engine: Optional[LearningEngine] = None,
        settings=None,
        driver=None,
        on_progress: Optional[Callable[[str, Dict[str, Any]], None]] = None,
        cancel_event: Optional[asyncio.Event] = None,
        rng=None,
    ):
        self.options = options
        self.engine = engine or LearningEngine()
        self.settings = settings or default_settings
        self.driver = driver or LivingInsiderDriver(self.settings)
        self.on_progress = on_progress
        self.cancel_event = cancel_event or asyncio.Event()
        self.rng = rng
        self.meta = new_job_meta()
        self.rows = []

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def progress(self, message):
        if self.on_progress is not None:
            self.on_progress(message, self.meta)

    async def run(self) -> ScrapeResult:
        started = time.monotonic()
        opts = self.options
        self.meta["started_at"] = now_iso()
        self.meta["scroll_rounds"] = self.settings.scroll_rounds

        sources = select_sources(sources_for_run(opts), opts.max_results, engine=self.engine, rng=self.rng)
        logger.info("Selected %d sources for %d results", len(sources), opts.max_results)
        self.progress(f"selected {len(sources)} sources")

        async with self.driver.launch() as browser:
            links = await self.collect_links(browser, sources)
            sampled = links[::opts.sample_every][:opts.max_results]
            self.meta["sampled_links"] = len(sampled)
            logger.info("Parsing %d of %d collected links", len(sampled), len(links))
            if sampled and not self.cancelled:
                await self.parse_details(browser, sampled)

        return self.finish(started)

    async def collect_links(self, browser, sources) -> List[str]:
        opts, meta = self.options, self.meta
        target = opts.max_results * 2
        collected: Dict[str, None] = {}
        rounds = self.settings.scroll_rounds

        context = await self.driver.new_context(browser, opts.prefer_fast_mode)
        try:
            page = await self.driver.new_page(context)
            for index, source in enumerate(sources, 1):
                if self.cancelled:
                    logger.info("Run cancelled during link collection")
                    break
                if opts.max_pages is not None and meta["pages_visited"] >= opts.max_pages:
                    break
                meta["pages_visited"] += 1
                meta["sources_used"] += 1
                logger.info("Source %d/%d: %s", index, len(sources), source.name)

                try:
                    await self.driver.goto(page, source.url)
                    await self.driver.dismiss_overlays(page)
                    await self.driver.auto_scroll(page, rounds)
                    links = await self.driver.harvest_links(page)
                except Exception as e:
                    logger.warning("Source %s failed: %s", source.id, e)
                    self.engine.record_source_performance(source.id, False, 0)
                    meta["errors"].append({"url": source.url, "error": str(e) or e.__class__.__name__})
                    self.progress(f"source {index}/{len(sources)} failed")
                    continue

                self.engine.record_source_performance(
                    source.id, bool(links), len(links), SOURCE_QUALITY_PLACEHOLDER
                )
                for link in links:
                    collected[link] = None
                    if len(collected) >= target:
                        break
                meta["collected_links"] = len(collected)
                rounds = self.engine.recommend_scroll_rounds(rounds, len(links))
                meta["scroll_rounds"] = rounds
                logger.info("Collected %d links (total: %d)", len(links), len(collected))
                self.progress(f"source {index}/{len(sources)}: {len(collected)} links")

                if len(collected) >= target:
                    logger.info("Link target reached, stopping collection")
                    break
        finally:
            await self.driver.close(context)

        return list(collected)

    async def parse_details(self, browser, urls):
        queue = WorkQueue(urls)
        context = await self.driver.new_context(browser, self.options.prefer_fast_mode)
        try:
            workers = [
                asyncio.create_task(self.work(i + 1, context, queue, len(urls)))
                for i in range(self.settings.max_concurrency)
            ]
            try:
                await asyncio.gather(*workers)
            except BaseException:
                for task in workers:
                    task.cancel()
                await asyncio.gather(*workers, return_exceptions=True)
                raise
        finally:
            await self.driver.close(context)

    async def work(self, worker_id, context, queue: WorkQueue, total):
        worker = _Worker(worker_id, await self.driver.new_page(context))
        try:
            while not self.cancelled:
                url = queue.claim()
                if url is None:
                    break
                try:
                    listing = await self.fetch_with_retry(worker, context, url)
                except Exception as e:
                    logger.warning("Worker %d: giving up on %s: %s", worker.id, url, e)
                    self.meta["errors"].append({"url": url, "error": str(e) or e.__class__.__name__})
                    continue

                self.accept(listing, total)
                worker.processed += 1
                if worker.processed % self.settings.page_recycle_after == 0:
                    await self.recycle(worker, context)
        finally:
            await self.driver.close(worker.page)

    async def recycle(self, worker: _Worker, context):
        """Swap in a fresh page; on failure the old one stays closed and the next fetch reopens it."""
        await self.driver.close(worker.page)
        try:
            worker.page = await self.driver.new_page(context)
        except Exception as e:
            logger.warning("Worker %d: page recycle failed: %s", worker.id, e)

    async def fetch_with_retry(self, worker: _Worker, context, url):
        retries = self.settings.detail_retries
        timeout = self.settings.detail_timeout_ms / 1000
        last_error = None
        for attempt in range(retries + 1):
            try:
                if worker.page.is_closed():
                    worker.page = await self.driver.new_page(context)
                raw = await asyncio.wait_for(self.driver.load_detail(worker.page, url), timeout)
                return build_listing(raw, url, self.settings.max_images)
            except Exception as e:
                last_error = e
                logger.warning("Worker %d: attempt %d on %s failed: %s", worker.id, attempt + 1, url, e)
                if is_crash_error(e):
                    await self.driver.close(worker.page)
                    try:
                        worker.page = await self.driver.new_page(context)
                    except Exception as page_error:
                        logger.error("Worker %d: could not reopen page: %s", worker.id, page_error)
                if attempt < retries:
                    await asyncio.sleep(detail_backoff(attempt, e) * self.settings.backoff_scale)
        raise last_error

    def accept(self, listing, total):
        """Dedupe, learn, score and filter one parsed listing."""
        meta = self.meta
        if self.engine.is_duplicate(listing):
            meta["duplicates_removed"] += 1
            logger.info("Duplicate skipped: %s", listing.listing_url)
            return

        self.engine.learn_price(listing.price_value, listing.category)
        apply_quality_scores(listing, self.engine)

        if not self.in_price_range(listing.price_value):
            meta["filtered_out"] += 1
            return

        self.rows.append(listing)
        meta["total_parsed"] = len(self.rows)
        logger.info(
            "Parsed %s Q:%s%% L:%s%% (%d/%d)",
            listing.listing_id, listing.quality_score, listing.location_score, len(self.rows), total,
        )
        if len(self.rows) % PROGRESS_EVERY == 0:
            self.progress(f"{len(self.rows)}/{total}")

    def in_price_range(self, price) -> bool:
        low, high = self.options.price_range
        if low is None and high is None:
            return True
        if price is None:
            return False
        if low is not None and price < low:
            return False
        if high is not None and price > high:
            return False
        return True

    def finish(self, started) -> ScrapeResult:
        meta = self.meta
        meta["ended_at"] = now_iso()
        meta["elapsed_ms"] = round((time.monotonic() - started) * 1000)
        scores = [row.quality_score or 0 for row in self.rows]
        meta["avg_quality_score"] = round(sum(scores) / len(scores)) if scores else 0
        meta["cancelled"] = self.cancelled
        insights = self.engine.generate_insights()
        meta["insights"] = insights
        logger.info(
            "Scrape complete: %d listings, quality %s%%, %d duplicates, %d errors in %.1fs",
            len(self.rows), meta["avg_quality_score"], meta["duplicates_removed"],
            len(meta["errors"]), meta["elapsed_ms"] / 1000,
        )
        return ScrapeResult(rows=[row.model_dump() for row in self.rows], meta=meta, insights=insights)
