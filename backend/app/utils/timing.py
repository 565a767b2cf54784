"""Timing helpers for the recommendation path (engine stages and request handlers)."""
import logging
import time
from contextlib import contextmanager
from typing import Callable, Optional

logger = logging.getLogger(__name__)

LogFn = Callable[[str], None]


def now_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.perf_counter() * 1000


def _emit(label: str, elapsed: float, log_fn: Optional[LogFn]) -> None:
    (log_fn or logger.debug)(f"{label}: {elapsed:.2f}ms")


@contextmanager
def time_operation(label: str, log_fn: Optional[LogFn] = None, min_ms: float = 0.0):
    """
    Time the enclosed block and log "<label>: <elapsed>ms".

    Blocks faster than `min_ms` are not logged. Exceptions raised inside the
    block still propagate after the timing line is written.

        with time_operation("personalized user_id=7"):
            items = recommend_personalized(db, 7, limit=10)
    """
    start = now_ms()
    try:
        yield
    finally:
        elapsed = now_ms() - start
        if elapsed >= min_ms:
            _emit(label, elapsed, log_fn)


def log_elapsed(start_ms: float, label: str, log_fn: Optional[LogFn] = None) -> float:
    """Log the time since `start_ms`; the returned timestamp starts the next stage."""
    _emit(label, now_ms() - start_ms, log_fn)
    return now_ms()
