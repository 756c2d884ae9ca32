# livingscraper/api/routes.py
import asyncio
import json
import time
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import StreamingResponse
from ..export import CSV_MEDIA_TYPE, XLSX_MEDIA_TYPE, export_filename, to_csv, to_xlsx
from ..jobs import CLOSED, JobNotFound, JobNotReady, JobStore
from ..models import JobStatus
from ..schemas import RunRequest
from ..services import start_job
from ..utils import logger

router = APIRouter(prefix="/api")


def get_store(request: Request) -> JobStore:
    return request.app.state.store


def _job_or_404(store: JobStore, job_id):
    try:
        return store.require(job_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="Job not found")


def _done_job(store: JobStore, job_id):
    try:
        return store.require_done(job_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="Job not found")
    except JobNotReady:
        raise HTTPException(status_code=409, detail="Job not ready")


@router.get("/health")
def health(request: Request, store: JobStore = Depends(get_store)):
    return {
        "ok": True,
        "time": datetime.now(timezone.utc).isoformat(),
        "ttl_ms": request.app.state.settings.job_ttl_ms,
        "jobs": len(store),
    }


@router.post("/scrape")
async def scrape(
    payload: RunRequest,
    request: Request,
    sync: bool = Query(False),
    store: JobStore = Depends(get_store),
):
    job = start_job(store, payload, request.app.state.pipeline_factory)
    logger.info(
        "Scrape job %s queued | pages=%s results=%d sync=%s",
        job.id[:8], payload.max_pages, payload.max_results, bool(sync),
    )
    if not sync:
        return {"jobId": job.id}

    await asyncio.shield(job.task)
    if job.status is JobStatus.ERROR:
        raise HTTPException(status_code=500, detail=job.error or "Scrape failed")
    return {"jobId": job.id, "rows": job.rows, "meta": job.meta}


@router.get("/scrape/progress/{job_id}")
async def progress(job_id: str, request: Request, store: JobStore = Depends(get_store)):
    _job_or_404(store, job_id)
    sub = store.subscribe(job_id)
    ping_seconds = max(request.app.state.settings.sse_ping_ms, 1) / 1000
    logger.info("SSE client attached to job %s", job_id[:8])

    async def stream():
        try:
            while True:
                try:
                    event = await sub.get(timeout=ping_seconds)
                except asyncio.TimeoutError:
                    yield f": ping {int(time.time() * 1000)}\n\n"
                    continue
                if event is CLOSED:
                    break
                yield f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"
        finally:
            store.unsubscribe(sub)
            logger.info("SSE client detached from job %s", job_id[:8])

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )


@router.get("/job/{job_id}")
def get_job(job_id: str, store: JobStore = Depends(get_store)):
    return _job_or_404(store, job_id).snapshot()


@router.post("/job/{job_id}/cancel")
def cancel_job(job_id: str, store: JobStore = Depends(get_store)):
    try:
        job = store.cancel(job_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="Job not found")
    except JobNotReady:
        raise HTTPException(status_code=409, detail="Job already finished")
    return {"jobId": job.id, "status": job.status.value, "cancelled": True}


@router.get("/export.csv")
def export_csv(job_id: str = Query(..., alias="jobId"), store: JobStore = Depends(get_store)):
    job = _done_job(store, job_id)
    return Response(
        content=to_csv(job.rows),
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export_filename(job.id, "csv")}"'},
    )


@router.get("/export.xlsx")
def export_xlsx(job_id: str = Query(..., alias="jobId"), store: JobStore = Depends(get_store)):
    job = _done_job(store, job_id)
    return Response(
        content=to_xlsx(job.rows),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export_filename(job.id, "xlsx")}"'},
    )
