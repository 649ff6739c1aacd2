"""
Timing and clock utilities.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, Optional


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string (record timestamps)."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TimingResult:
    """Result of a timed operation."""
    name: str
    duration_sec: float
    success: bool = True
    error: Optional[str] = None

    @property
    def duration_ms(self) -> float:
        return self.duration_sec * 1000

    def __str__(self) -> str:
        if self.duration_sec < 1:
            return f"{self.name}: {self.duration_ms:.1f}ms"
        return f"{self.name}: {self.duration_sec:.2f}s"


@contextmanager
def timed_operation(
    name: str,
    logger: Optional[logging.Logger] = None,
    log_level: int = logging.DEBUG
) -> Iterator[TimingResult]:
    """
    Context manager for timing operations.

    Usage:
        with timed_operation("OCR", logger) as timing:
            # do work
        print(f"Took {timing.duration_sec:.2f}s")
    """
    result = TimingResult(name=name, duration_sec=0.0)
    start = time.perf_counter()

    try:
        yield result
        result.success = True
    except Exception as e:
        result.success = False
        result.error = str(e)
        raise
    finally:
        result.duration_sec = time.perf_counter() - start

        if logger:
            msg = str(result)
            if not result.success:
                msg += f" (failed: {result.error})"
            logger.log(log_level, msg)
