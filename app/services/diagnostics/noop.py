"""No-op diagnostics sink (logs only)."""
from __future__ import annotations

import logging

from app.services.diagnostics.base import DiagnosticsSink

logger = logging.getLogger(__name__)


class NoopDiagnosticsSink(DiagnosticsSink):
    def save(self, name: str, content: str) -> None:
        logger.debug("Diagnostics record dropped (noop) name=%s size=%s", name, len(content))
