# livingscraper/scheduler.py
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from .utils import logger


def start_scheduler(store, interval_seconds) -> AsyncIOScheduler:
    """Run the job store's TTL sweep on the event loop every `interval_seconds`."""
    scheduler = AsyncIOScheduler()
    scheduler.add_job(store.sweep_expired, "interval", seconds=interval_seconds, id="job-ttl-sweep")
    scheduler.start()
    logger.info("Scheduler started (TTL sweep every %.1fs)", interval_seconds)
    return scheduler


def stop_scheduler(scheduler: AsyncIOScheduler):
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
