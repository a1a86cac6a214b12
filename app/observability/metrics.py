"""Metrics recorded as short-lived Opik traces."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from time import perf_counter
from typing import Any, Dict, Iterator, Optional

from app.observability.tracing import trace

logger = logging.getLogger(__name__)


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Record one metric value; a no-op when Opik is disabled and never raises."""
    payload: Dict[str, Any] = {"value": value}
    if metadata:
        payload.update(metadata)

    try:
        with trace(f"metric:{name}", metadata=payload):
            pass
    except Exception as exc:  # pragma: no cover - metrics must never break generation
        logger.debug("Unable to record metric %s: %s", name, exc)


@contextmanager
def timed_metric(name: str, metadata: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
    """
    Log the block's wall time in milliseconds under ``name``.

    The yielded dict is merged into the metric metadata, so callers can attach
    values that are only known once the block finishes.
    """
    extra: Dict[str, Any] = dict(metadata or {})
    start = perf_counter()
    try:
        yield extra
    finally:
        log_metric(name, round((perf_counter() - start) * 1000, 3), extra)
