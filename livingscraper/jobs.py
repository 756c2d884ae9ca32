# livingscraper/jobs.py
"""In-memory job store with TTL expiry, capacity eviction and progress pub/sub.

All methods are synchronous, so on the event loop each one runs as a single
block: a reader never sees a job half-way through `complete()`.
"""
import asyncio
import time
import uuid
from typing import Callable, Dict, Optional
from .models import Job, JobStatus
from .utils import logger

CLOSED = object()


class JobNotFound(Exception):
    pass


class JobNotReady(Exception):
    pass


class Subscription:
    """One progress listener. `CLOSED` is queued once when the channel ends."""

    def __init__(self, job_id):
        self.job_id = job_id
        self.queue = asyncio.Queue()
        self.closed = False

    def push(self, event):
        if not self.closed:
            self.queue.put_nowait(event)

    def close(self):
        if not self.closed:
            self.closed = True
            self.queue.put_nowait(CLOSED)

    async def get(self, timeout=None):
        """Next event, `CLOSED` at the end; raises asyncio.TimeoutError when idle."""
        return await asyncio.wait_for(self.queue.get(), timeout)


def _now_ms():
    return int(time.time() * 1000)


class JobStore:
    def __init__(self, ttl_ms: int, max_items: int, clock: Callable[[], float] = time.time):
        self.ttl_ms = ttl_ms
        self.max_items = max(1, max_items)
        self.clock = clock
        self._jobs: Dict[str, Job] = {}

    def __len__(self):
        return len(self._jobs)

    def __contains__(self, job_id):
        return job_id in self._jobs

    # -- lifecycle -------------------------------------------------------

    def create(self, options) -> Job:
        now = self.clock()
        job = Job(id=str(uuid.uuid4()), options=options, created_at=now, updated_at=now)
        self._jobs[job.id] = job
        logger.info("Job %s created", job.id[:8])
        self.evict_overflow()
        return job

    def _expired(self, job, now) -> bool:
        return (now - job.created_at) * 1000 > self.ttl_ms

    def get(self, job_id) -> Optional[Job]:
        job = self._jobs.get(job_id)
        if job is not None and self._expired(job, self.clock()):
            self.remove(job_id, reason="expired")
            return None
        return job

    def require(self, job_id) -> Job:
        job = self.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def require_done(self, job_id) -> Job:
        job = self.require(job_id)
        if job.status is not JobStatus.DONE:
            raise JobNotReady(job_id)
        return job

    def _transition(self, job_id, target) -> Optional[Job]:
        job = self.get(job_id)
        if job is None:
            logger.warning("Job %s gone before %s", job_id[:8], target.value)
            return None
        if job.status.terminal:
            logger.warning("Job %s is already %s, refusing %s", job_id[:8], job.status.value, target.value)
            return None
        return job

    def update_meta(self, job_id, meta):
        job = self.get(job_id)
        if job is None or job.status.terminal:
            return None
        job.meta = dict(meta)
        job.updated_at = self.clock()
        return job

    def complete(self, job_id, rows, meta) -> Optional[Job]:
        job = self._transition(job_id, JobStatus.DONE)
        if job is None:
            return None
        job.rows = list(rows)
        job.meta = dict(meta)
        job.status = JobStatus.DONE
        job.updated_at = self.clock()
        logger.info("Job %s done with %d rows", job_id[:8], len(job.rows))
        return job

    def fail(self, job_id, error, meta=None) -> Optional[Job]:
        job = self._transition(job_id, JobStatus.ERROR)
        if job is None:
            return None
        if meta is not None:
            job.meta = dict(meta)
        job.error = str(error)
        job.status = JobStatus.ERROR
        job.updated_at = self.clock()
        logger.error("Job %s failed: %s", job_id[:8], job.error)
        return job

    def cancel(self, job_id) -> Job:
        job = self.require(job_id)
        if job.status.terminal:
            raise JobNotReady(job_id)
        job.cancel_event.set()
        logger.info("Job %s cancel requested", job_id[:8])
        return job

    # -- eviction --------------------------------------------------------

    def remove(self, job_id, reason="removed"):
        job = self._jobs.pop(job_id, None)
        if job is None:
            return None
        for sub in list(job.subscribers):
            sub.close()
        job.subscribers.clear()
        job.cancel_event.set()
        logger.info("Job %s %s", job_id[:8], reason)
        return job

    def evict_overflow(self):
        if len(self._jobs) <= self.max_items:
            return []
        ordered = sorted(self._jobs.values(), key=lambda j: j.created_at)
        victims = ordered[:len(self._jobs) - self.max_items]
        for job in victims:
            self.remove(job.id, reason="evicted")
        return [job.id for job in victims]

    def sweep_expired(self):
        now = self.clock()
        expired = [job_id for job_id, job in self._jobs.items() if self._expired(job, now)]
        for job_id in expired:
            self.remove(job_id, reason="expired")
        if expired:
            logger.info("TTL sweep removed %d jobs", len(expired))
        return expired

    def shutdown(self):
        """Signal every running job to stop and cancel its task; returns the cancelled tasks."""
        tasks = []
        for job in list(self._jobs.values()):
            job.cancel_event.set()
            if job.task is not None and not job.task.done():
                job.task.cancel()
                tasks.append(job.task)
        return tasks

    # -- progress --------------------------------------------------------

    def event(self, job, message=None):
        body = {
            "jobId": job.id,
            "status": job.status.value,
            "meta": job.meta,
            "message": message,
            "ts": _now_ms(),
        }
        if job.error:
            body["error"] = job.error
        return body

    def subscribe(self, job_id) -> Subscription:
        job = self.require(job_id)
        sub = Subscription(job_id)
        job.subscribers.add(sub)
        sub.push(self.event(job, "started" if job.status is JobStatus.RUNNING else "ready"))
        if job.status.terminal:
            sub.close()
            job.subscribers.discard(sub)
        return sub

    def unsubscribe(self, sub: Subscription):
        job = self._jobs.get(sub.job_id)
        if job is not None:
            job.subscribers.discard(sub)

    def broadcast(self, job_id, message=None):
        job = self._jobs.get(job_id)
        if job is None:
            return 0
        event = self.event(job, message)
        delivered = len(job.subscribers)
        for sub in list(job.subscribers):
            sub.push(event)
        if job.status.terminal:
            for sub in list(job.subscribers):
                sub.close()
            job.subscribers.clear()
        return delivered
