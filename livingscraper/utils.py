# livingscraper/utils.py
"""Shared utilities: logging, retry decorator and text/number helpers."""
import asyncio
import os
import logging
import re
from datetime import date
from functools import wraps
from urllib.parse import urljoin
from dotenv import load_dotenv

load_dotenv()

def get_logger(name=__name__):
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO)
    )
    return logging.getLogger(name)

logger = get_logger("livingscraper")

def retry(exceptions, tries=3, delay=1, backoff=2, wait=None, logger=logger):
    """Retry an async callable on `exceptions`.

    `wait(attempt, exc)` overrides the default geometric delay schedule and
    returns the number of seconds to sleep before the next attempt.
    """
    def deco_retry(f):
        @wraps(f)
        async def f_retry(*args, **kwargs):
            mdelay = delay
            for attempt in range(tries - 1):
                try:
                    return await f(*args, **kwargs)
                except exceptions as e:
                    pause = wait(attempt, e) if wait else mdelay
                    logger.warning("Retryable error: %s, retrying in %.2f sec", e, pause)
                    await asyncio.sleep(pause)
                    mdelay *= backoff
            return await f(*args, **kwargs)
        return f_retry
    return deco_retry

def clean_text(s):
    return re.sub(r"\s+", " ", str(s if s is not None else "")).strip()

def parse_number_like(s):
    """Parse currency/number-like text such as "฿ 13,590,000" into a number."""
    if s is None:
        return None
    parts = re.findall(r"-?\d+(?:\.\d+)?", str(s).replace(",", ""))
    if not parts:
        return None
    try:
        n = float("".join(parts))
    except ValueError:
        return None
    return int(n) if n.is_integer() else n

def abs_url(base, href):
    if not href:
        return ""
    if re.match(r"^https?://", href, re.I):
        return href
    try:
        return urljoin(base, href)
    except ValueError:
        return ""

def thai_date_to_iso(text):
    """Convert d/m/yyyy text (Buddhist or Gregorian year) to YYYY-MM-DD."""
    m = re.search(r"(\d{1,2})/(\d{1,2})/(\d{4})", str(text or ""))
    if not m:
        return None
    dd, mm, yy = int(m.group(1)), int(m.group(2)), int(m.group(3))
    if yy >= 2400:
        yy -= 543
    try:
        return date(yy, mm, dd).isoformat()
    except ValueError:
        return None
