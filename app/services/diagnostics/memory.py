"""In-memory diagnostics sink, mainly for tests."""
from __future__ import annotations

from typing import Dict, List, Tuple

from app.services.diagnostics.base import DiagnosticsSink


class InMemoryDiagnosticsSink(DiagnosticsSink):
    def __init__(self) -> None:
        self.records: List[Tuple[str, str]] = []

    def save(self, name: str, content: str) -> None:
        self.records.append((name, content))

    def by_name(self) -> Dict[str, str]:
        return dict(self.records)

    def names(self) -> List[str]:
        return [name for name, _ in self.records]
