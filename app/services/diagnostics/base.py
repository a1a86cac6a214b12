"""Diagnostics sink interface."""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class DiagnosticsSink:
    """Base interface for storing prompts, raw responses and errors of a generation run."""

    def save(self, name: str, content: str) -> None:
        raise NotImplementedError


def save_diagnostics(sink: DiagnosticsSink | None, name: str, content: str | None) -> None:
    """Best-effort write; a failing sink is logged and otherwise ignored."""
    if sink is None or content is None:
        return
    try:
        sink.save(name, content)
    except Exception as exc:
        logger.warning("Unable to save diagnostics record %s: %s", name, exc)
