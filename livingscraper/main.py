# livingscraper/main.py
import asyncio
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from .api.routes import router as api_router
from .config import settings as default_settings
from .jobs import JobStore
from .learning import LearningEngine
from .scheduler import start_scheduler, stop_scheduler
from .services import default_pipeline_factory
from .utils import logger

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
}


def create_app(settings=None, pipeline_factory=None, store=None) -> FastAPI:
    settings = settings or default_settings
    store = store or JobStore(settings.job_ttl_ms, settings.job_max_items)
    pipeline_factory = pipeline_factory or default_pipeline_factory(settings, LearningEngine())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = start_scheduler(store, settings.sweep_interval_seconds)
        try:
            yield
        finally:
            stop_scheduler(scheduler)
            tasks = store.shutdown()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)

    app = FastAPI(title="LivingInsider Scraper", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.pipeline_factory = pipeline_factory

    @app.middleware("http")
    async def api_headers(request: Request, call_next):
        started = time.monotonic()
        response = await call_next(request)
        if request.url.path.startswith("/api/"):
            for name, value in NO_CACHE_HEADERS.items():
                if name.lower() not in response.headers:
                    response.headers[name] = value
            logger.info(
                "%s %s -> %d (%.0f ms)",
                request.method, request.url.path, response.status_code, (time.monotonic() - started) * 1000,
            )
        return response

    app.include_router(api_router)
    return app


app = create_app()
