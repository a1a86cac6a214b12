"""Logging setup shared by the API process and direct library use."""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict

from app.core.context import get_request_id

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(message)s"

# Client libraries log every HTTP round-trip at INFO; the pipeline logs its own attempts.
NOISY_LOGGERS = ("httpx", "httpcore", "openai")


class RequestIdFilter(logging.Filter):
    """Stamp each record with the bound request id, or ``-`` outside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


def build_logging_config(log_level: str) -> Dict[str, Any]:
    level = log_level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"pipeline": {"format": LOG_FORMAT}},
        "filters": {"request_id": {"()": RequestIdFilter}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "pipeline",
                "filters": ["request_id"],
                "level": level,
            }
        },
        "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
        "root": {"handlers": ["console"], "level": level},
    }


def configure_logging(*, log_level: str = "INFO", force: bool = False) -> None:
    """Apply the logging config once; ``force`` re-applies it, e.g. after a level change."""
    if getattr(configure_logging, "_configured", False) and not force:
        return

    dictConfig(build_logging_config(log_level))
    logging.getLogger(__name__).debug("Logging configured at %s", log_level)
    configure_logging._configured = True  # type: ignore[attr-defined]
