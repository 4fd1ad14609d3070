# src/licsync/http/throttle.py
from __future__ import annotations
import random
import threading
import time
from dataclasses import dataclass

# Statuses the read path retries on its own
RETRY_STATUSES = {429, 502, 503, 504}


def parse_retry_after(header: str | None) -> float | None:
    # Graph sends integer seconds
    if header and header.strip().isdigit():
        return float(int(header.strip()))
    return None


def compute_sleep_seconds(attempt: int, retry_after_header: str | None) -> float:
    ra = parse_retry_after(retry_after_header)
    if ra is not None:
        return ra
    base = min(2 ** attempt, 8)  # 1,2,4,8 cap
    return base * (0.6 + 0.8 * random.random())  # jitter 60–140%


def sleep_backoff(seconds: float) -> None:
    if seconds > 0:
        time.sleep(seconds)


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay retry used for license writes.

    attempts counts the first call, so attempts=3 means at most two retries.
    """
    attempts: int = 3
    delay_seconds: float = 5.0

    def delay_for(self, retry_after: float | None = None) -> float:
        if retry_after is not None and retry_after > self.delay_seconds:
            return retry_after
        return self.delay_seconds


class ConcurrencyGate:
    """Bounds in-flight HTTP calls when principals are fanned out to workers."""
    def __init__(self, max_concurrency: int = 6):
        self.max_concurrency = max(1, int(max_concurrency))
        self._sem = threading.Semaphore(self.max_concurrency)

    def __enter__(self):
        self._sem.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._sem.release()
