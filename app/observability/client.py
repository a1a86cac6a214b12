"""Lazily created Opik client used for study plan traces and metrics."""
from __future__ import annotations

import logging
from threading import Lock
from typing import Optional

from app.core.config import settings

try:
    from opik import Opik
except ImportError:  # pragma: no cover
    Opik = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

_client: Optional["Opik"] = None
_client_lock = Lock()
_init_attempted = False


def _build_client() -> Optional["Opik"]:
    if not settings.opik_enabled:
        logger.debug("Opik disabled; study plan traces stay local.")
        return None
    if not settings.opik_api_key:
        logger.warning("OPIK_ENABLED is true but OPIK_API_KEY is missing; tracing stays off.")
        return None
    try:
        client = Opik(project_name=settings.opik_project, api_key=settings.opik_api_key)
    except Exception as exc:  # pragma: no cover - depends on remote service
        logger.warning("Failed to initialize Opik, study plan tracing disabled: %s", exc)
        return None
    logger.info("Opik tracing study plans into project=%s", settings.opik_project)
    return client


def init_opik() -> Optional["Opik"]:
    """Create the client on first use; later calls return whatever the first one produced."""
    global _client, _init_attempted

    if Opik is None:
        return None

    with _client_lock:
        if _init_attempted:
            return _client
        _init_attempted = True
        _client = _build_client()
        return _client


def get_opik_client() -> Optional["Opik"]:
    if _client is not None:
        return _client
    return init_opik()


def reset_opik_client() -> None:
    """Forget the cached client so the next call re-reads settings."""
    global _client, _init_attempted

    with _client_lock:
        _client = None
        _init_attempted = False
