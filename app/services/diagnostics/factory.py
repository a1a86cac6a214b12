"""Diagnostics sink factory."""
from __future__ import annotations

from functools import lru_cache

from app.core.config import settings
from app.services.diagnostics.base import DiagnosticsSink
from app.services.diagnostics.file import FileDiagnosticsSink
from app.services.diagnostics.memory import InMemoryDiagnosticsSink
from app.services.diagnostics.noop import NoopDiagnosticsSink


@lru_cache
def get_diagnostics_sink() -> DiagnosticsSink:
    provider = settings.diagnostics_provider.lower()
    if provider == "file":
        return FileDiagnosticsSink(settings.diagnostics_dir)
    if provider == "memory":
        return InMemoryDiagnosticsSink()
    return NoopDiagnosticsSink()
