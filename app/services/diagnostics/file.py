"""Filesystem-backed diagnostics sink."""
from __future__ import annotations

import logging
import re
from pathlib import Path

from app.services.diagnostics.base import DiagnosticsSink

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class FileDiagnosticsSink(DiagnosticsSink):
    """Writes each record to ``<directory>/<name>.txt``."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def save(self, name: str, content: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{_UNSAFE_CHARS.sub('_', name).strip('._') or 'record'}.txt"
        path.write_text(content, encoding="utf-8")
        logger.debug("Diagnostics record written to %s", path)
