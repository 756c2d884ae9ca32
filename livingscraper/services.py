# livingscraper/services.py
import asyncio
from .jobs import JobStore
from .learning import LearningEngine
from .scrape import ScrapePipeline
from .utils import logger


def engine_for_run(shared: LearningEngine, shared_learning=True) -> LearningEngine:
    return shared.spawn() if shared_learning else LearningEngine()


def default_pipeline_factory(settings, engine: LearningEngine):
    def build(job, on_progress):
        return ScrapePipeline(
            job.options,
            engine=engine_for_run(engine, settings.shared_learning),
            settings=settings,
            on_progress=on_progress,
            cancel_event=job.cancel_event,
        )
    return build


async def run_job(store: JobStore, job_id, pipeline_factory):
    """Drive one job from `running` to `done` or `error`."""
    job = store.get(job_id)
    if job is None:
        return None

    def on_progress(message, meta):
        if store.update_meta(job_id, meta) is not None:
            store.broadcast(job_id, message)

    store.broadcast(job_id, "scrape started")
    pipeline = pipeline_factory(job, on_progress)
    try:
        result = await pipeline.run()
    except asyncio.CancelledError:
        store.fail(job_id, "cancelled", meta=pipeline.meta)
        store.broadcast(job_id)
        raise
    except Exception as e:
        logger.exception("Scrape job %s failed: %s", job_id[:8], e)
        store.fail(job_id, e, meta=pipeline.meta)
        store.broadcast(job_id, "failed")
        return None

    if store.complete(job_id, result.rows, result.meta) is not None:
        store.broadcast(job_id, f"done: {len(result.rows)} listings")
    return result


def start_job(store: JobStore, options, pipeline_factory):
    """Create a job and schedule its pipeline on the running loop."""
    job = store.create(options)
    job.task = asyncio.create_task(run_job(store, job.id, pipeline_factory))
    return job
