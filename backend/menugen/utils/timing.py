"""Timing spans for jobs and per-client searches."""

import time
from contextlib import contextmanager
from typing import Optional

from menugen.logging import get_logger

logger = get_logger(__name__)

# Prefix for all timing logs so they stand out and are easy to grep
_TIMING_PREFIX = "[TIMING]"


def format_duration(ms: int) -> str:
    """Return human-readable duration: e.g. 12500 -> '12.5s', 750 -> '750ms'."""
    if ms >= 1000:
        return f"{ms / 1000:.1f}s"
    return f"{ms}ms"


class Stopwatch:
    """Elapsed milliseconds since start; readable while still running."""

    def __init__(self) -> None:
        self._start = time.perf_counter()
        self._stopped_ms: Optional[int] = None

    def stop(self) -> int:
        if self._stopped_ms is None:
            self._stopped_ms = self.elapsed_ms
        return self._stopped_ms

    @property
    def elapsed_ms(self) -> int:
        if self._stopped_ms is not None:
            return self._stopped_ms
        return int((time.perf_counter() - self._start) * 1000)


@contextmanager
def time_span(name: str, **extra: object):
    """Log how long a block took, with optional extra key=value fields."""
    watch = Stopwatch()
    try:
        yield watch
    finally:
        elapsed = watch.stop()
        parts = [f"elapsed_ms={elapsed}", f"({format_duration(elapsed)})"] + [
            f"{k}={v}" for k, v in extra.items()
        ]
        logger.info("%s %s %s", _TIMING_PREFIX, name, " ".join(parts))
