"""
Lightweight telemetry helpers for extraction and git operations.

Events and timings are emitted as structured debug logs only; nothing is
retained between calls.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("contractdiff.telemetry")


def _normalize_latency_name(metric_name: str) -> str:
    if metric_name.endswith("_ms"):
        return metric_name
    if metric_name.endswith(".latency"):
        return f"{metric_name}_ms"
    return metric_name


def log_event(event_name: str, **fields: Any) -> None:
    """
    Structured log event.

    Side Effects:
        - Writes to logger (debug level)
    """
    logger.debug("event=%s %s", event_name, fields)


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """
    Context manager for timing code blocks.

    Side Effects:
        - Writes to logger (debug level) with timing, also when the block raises
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logger.debug("timing=%s seconds=%.6f", _normalize_latency_name(metric_name), elapsed)
