"""Lightweight metrics helpers."""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional

from shedai.observability.tracing import trace

logger = logging.getLogger(__name__)


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Record a metric as a short Opik trace; a no-op when Opik is off."""
    payload: Dict[str, Any] = {"value": value}
    if metadata:
        payload.update(metadata)
    logger.debug("metric %s=%s", name, value)
    with trace(f"metric:{name}", metadata=payload):
        pass


def log_counts(prefix: str, counts: Mapping[str, int], metadata: Optional[Dict[str, Any]] = None) -> None:
    """Emit one metric per entry, e.g. ``schedule.accepted``, ``schedule.backfilled``."""
    for key, value in counts.items():
        log_metric(f"{prefix}.{key}", value, metadata=metadata)


@contextmanager
def timed(name: str, metadata: Optional[Dict[str, Any]] = None) -> Iterator[None]:
    """Measure the wrapped block and log ``<name>.latency_ms``."""
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        log_metric(f"{name}.latency_ms", round(elapsed_ms, 2), metadata=metadata)
