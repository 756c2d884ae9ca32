# livingscraper/models.py
"""In-memory entities: search sources, learning statistics and scrape jobs.

Nothing here is persisted; jobs live in `JobStore` until TTL or capacity
eviction removes them, learned statistics live as long as the process.
"""
import asyncio
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class JobStatus(str, Enum):
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self is not JobStatus.RUNNING


@dataclass
class Source:
    id: str
    url: str
    category: str
    location: str
    name: str
    weight: float
    score: Optional[float] = None


@dataclass
class SourcePerformance:
    attempts: int = 0
    successes: int = 0
    total_links: int = 0
    avg_links_found: float = 0.0
    avg_quality: float = 0.0
    score: float = 0.0


@dataclass
class PriceStats:
    min: float = math.inf
    max: float = 0.0
    sum: float = 0.0
    count: int = 0
    values: List[float] = field(default_factory=list)

    def add(self, price):
        self.values.append(price)
        self.min = min(self.min, price)
        self.max = max(self.max, price)
        self.sum += price
        self.count += 1

    @property
    def mean(self) -> float:
        return self.sum / self.count if self.count else 0.0


def new_job_meta() -> Dict[str, Any]:
    return {
        "pages_visited": 0,
        "sources_used": 0,
        "collected_links": 0,
        "sampled_links": 0,
        "total_parsed": 0,
        "duplicates_removed": 0,
        "filtered_out": 0,
        "errors": [],
    }


@dataclass
class Job:
    id: str
    options: Any
    created_at: float
    updated_at: float
    status: JobStatus = JobStatus.RUNNING
    meta: Dict[str, Any] = field(default_factory=new_job_meta)
    rows: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    subscribers: Set[Any] = field(default_factory=set)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional[asyncio.Task] = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "jobId": self.id,
            "status": self.status.value,
            "meta": self.meta,
            "error": self.error,
            "rows": self.rows if self.status is JobStatus.DONE else [],
        }
