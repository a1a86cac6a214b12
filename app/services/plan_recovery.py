"""Best-effort recovery of plan JSON from raw provider text."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?[ \t]*\r?\n?(.*?)```", re.DOTALL)
_OVERVIEW_FIELD = re.compile(r'"overview"\s*:\s*"((?:[^"\\]|\\.)*)(?:"|\\?$)', re.DOTALL)
_NEXT_STEPS_FIELD = re.compile(r'"nextSteps"\s*:\s*"((?:[^"\\]|\\.)*)(?:"|\\?$)', re.DOTALL)


@dataclass(frozen=True)
class ParseOutcome:
    """Result of a single recovery strategy: either a decoded value or a reason it failed."""

    ok: bool
    value: Any = None
    error: str = ""

    @classmethod
    def success(cls, value: Any) -> "ParseOutcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "ParseOutcome":
        return cls(ok=False, error=error)


@dataclass
class PlanCandidate:
    """Possibly partial plan recovered from a provider response."""

    overview: str = ""
    phases: List[Dict[str, Any]] = field(default_factory=list)
    daily_plans: List[Dict[str, Any]] = field(default_factory=list)
    next_steps: Optional[str] = None
    strategy: str = ""

    @property
    def is_salvageable(self) -> bool:
        return bool(self.overview.strip()) and bool(self.phases or self.daily_plans)


def parse_direct(text: str) -> ParseOutcome:
    try:
        value = json.loads(text)
    except (TypeError, ValueError) as exc:
        return ParseOutcome.failure(f"direct parse failed: {exc}")
    if not isinstance(value, dict):
        return ParseOutcome.failure(f"expected a JSON object, got {type(value).__name__}")
    return ParseOutcome.success(value)


def parse_fenced_block(text: str) -> ParseOutcome:
    match = _FENCED_BLOCK.search(text)
    if not match:
        return ParseOutcome.failure("no fenced code block")
    return parse_direct(match.group(1).strip())


def parse_brace_span(text: str) -> ParseOutcome:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return ParseOutcome.failure("no brace-delimited span")
    return parse_direct(text[start : end + 1])


def salvage_truncated(text: str) -> ParseOutcome:
    """
    Rebuild what we can from a response cut off mid-document.

    ``overview`` is pulled with a pattern that tolerates a missing closing
    quote; ``phases`` and ``dailyPlans`` are scanned element by element so
    every complete object before the cut survives.
    """
    overview = _extract_string_field(_OVERVIEW_FIELD, text)
    if not overview:
        return ParseOutcome.failure("no overview found in truncated text")
    salvaged: Dict[str, Any] = {
        "overview": overview,
        "phases": extract_array_objects(text, "phases"),
        "dailyPlans": extract_array_objects(text, "dailyPlans"),
    }
    next_steps = _extract_string_field(_NEXT_STEPS_FIELD, text)
    if next_steps:
        salvaged["nextSteps"] = next_steps
    return ParseOutcome.success(salvaged)


RECOVERY_STRATEGIES: Tuple[Tuple[str, Callable[[str], ParseOutcome]], ...] = (
    ("direct", parse_direct),
    ("fenced", parse_fenced_block),
    ("brace_span", parse_brace_span),
    ("truncation_salvage", salvage_truncated),
)


def recover_candidate(raw_text: Optional[str]) -> PlanCandidate:
    """Run the strategies in order; the first that decodes an object wins."""
    text = (raw_text or "").strip()
    if not text:
        return PlanCandidate()

    for name, strategy in RECOVERY_STRATEGIES:
        outcome = strategy(text)
        if not outcome.ok:
            logger.debug("Recovery strategy %s skipped: %s", name, outcome.error)
            continue
        candidate = candidate_from_mapping(outcome.value, strategy=name)
        if not candidate.overview:
            logger.info("Recovery strategy %s decoded an object without an overview", name)
            return PlanCandidate()
        logger.info(
            "Recovered plan candidate via %s (phases=%s, daily_plans=%s)",
            name,
            len(candidate.phases),
            len(candidate.daily_plans),
        )
        return candidate

    logger.warning("No recovery strategy produced a plan candidate (%s chars)", len(text))
    return PlanCandidate()


def candidate_from_mapping(data: Dict[str, Any], *, strategy: str = "") -> PlanCandidate:
    overview = data.get("overview")
    next_steps = data.get("nextSteps")
    return PlanCandidate(
        overview=overview.strip() if isinstance(overview, str) else "",
        phases=_object_list(data.get("phases")),
        daily_plans=_object_list(data.get("dailyPlans")),
        next_steps=next_steps.strip() or None if isinstance(next_steps, str) else None,
        strategy=strategy,
    )


def extract_array_objects(text: str, key: str) -> List[Dict[str, Any]]:
    """
    Decode each complete ``{...}`` element of the array stored under ``key``.

    Depth tracking skips braces inside string literals. Elements that fail to
    decode are dropped; scanning stops at the closing bracket of the array or
    at the end of the text.
    """
    match = re.search(r'"%s"\s*:\s*\[' % re.escape(key), text)
    if not match:
        return []

    elements: List[Dict[str, Any]] = []
    depth = 0
    element_start = -1
    in_string = False
    escaped = False
    for index in range(match.end(), len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            if depth == 0:
                element_start = index
            depth += 1
        elif char == "}":
            if depth == 0:
                break
            depth -= 1
            if depth == 0 and element_start != -1:
                element = _decode_object(text[element_start : index + 1])
                if element is not None:
                    elements.append(element)
                element_start = -1
        elif char == "]" and depth == 0:
            break
    return elements


def _decode_object(fragment: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(fragment)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def _extract_string_field(pattern: re.Pattern, text: str) -> str:
    match = pattern.search(text)
    if not match:
        return ""
    raw = match.group(1)
    try:
        value = json.loads(f'"{raw}"')
    except ValueError:
        # Cut inside an escape sequence; keep the raw characters.
        value = raw
    return value.strip()


def _object_list(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]
