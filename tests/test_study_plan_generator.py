from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

import httpx

from app.services import study_plan_generator
from app.services.diagnostics.base import DiagnosticsSink
from app.services.diagnostics.memory import InMemoryDiagnosticsSink
from app.services.plan_completion import check_plan_invariants
from app.services.plan_fallback import generate_local_study_plan
from app.services.providers.client import ProviderClient, ProviderError, ProviderResponse
from app.services.providers.config import ProviderEndpoint, StaticCredentialProvider
from app.services.study_plan_generator import StudyPlanOrchestrator

PRIMARY = ProviderEndpoint(name="primary", base_url="https://primary.test/v1", model="primary-model")
SECONDARY = ProviderEndpoint(name="secondary", base_url="https://secondary.test/v1", model="secondary-model")


def _envelope(content: str) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "demo",
        "choices": [{"index": 0, "finish_reason": "length", "message": {"role": "assistant", "content": content}}],
    }


def _provider_day(day: int, reference_date) -> dict:
    return {
        "day": day,
        "date": (reference_date + timedelta(days=day - 1)).isoformat(),
        "phaseId": 1,
        "title": f"Anatomy day {day}",
        "subjects": ["Anatomy"],
        "tasks": [
            {
                "title": f"Read chapter {day}",
                "description": "Take notes on the {key} terms",
                "durationMinutes": 60,
                "resources": ["Anatomy textbook"],
            }
        ],
        "reviewTips": "Recall the terms tonight.",
    }


def _orchestrator(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    sink: Optional[DiagnosticsSink] = None,
    keys: Optional[Dict[str, str]] = None,
) -> StudyPlanOrchestrator:
    return StudyPlanOrchestrator(
        endpoints=[PRIMARY, SECONDARY],
        credentials=StaticCredentialProvider(keys if keys is not None else {"primary": "k1", "secondary": "k2"}),
        client=ProviderClient(http_client=httpx.Client(transport=httpx.MockTransport(handler)), retry_delay=0),
        sink=sink if sink is not None else InMemoryDiagnosticsSink(),
        timeout=5,
        max_attempts=2,
    )


class _MetricRecorder:
    def __init__(self) -> None:
        self.names: List[str] = []
        self.metadata: List[Dict[str, Any]] = []

    def __call__(self, name: str, value: Any, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.names.append(name)
        self.metadata.append(metadata or {})


def test_primary_timeouts_then_truncated_secondary(monkeypatch, make_survey, reference_date) -> None:
    metrics = _MetricRecorder()
    monkeypatch.setattr(study_plan_generator, "log_metric", metrics)
    calls = {"primary": 0, "secondary": 0}
    recovered = [_provider_day(day, reference_date) for day in range(1, 6)]
    truncated = (
        '{"overview": "Start with anatomy, then build up to mock exams.", "dailyPlans": ['
        + ", ".join(json.dumps(entry) for entry in recovered)
        + ', {"day": 6, "date": "2026-03-07", "phaseId": 1, "title": "Anatomy da'
    )

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "primary.test":
            calls["primary"] += 1
            raise httpx.ReadTimeout("timed out", request=request)
        calls["secondary"] += 1
        return httpx.Response(200, json=_envelope(truncated))

    sink = InMemoryDiagnosticsSink()
    result = _orchestrator(handler, sink=sink).generate(make_survey(days_until_exam=60), reference_date=reference_date)

    assert calls == {"primary": 2, "secondary": 1}
    assert [entry.day for entry in result.daily_plans] == list(range(1, 31))
    assert result.to_payload()["dailyPlans"][:5] == recovered
    assert all(entry.title.startswith("Day ") for entry in result.daily_plans[5:])
    assert check_plan_invariants(result, 30) == []
    assert result.overview == "Start with anatomy, then build up to mock exams."
    assert result.next_steps
    assert "study_plan.provider.failed" in metrics.names
    assert "study_plan.provider.accepted" in metrics.names
    assert "study_plan.fallback.used" not in metrics.names
    names = sink.names()
    assert any(name.endswith("-prompt") for name in names)
    assert any(name.endswith("-primary-error") for name in names)
    assert any(name.endswith("-secondary-response") for name in names)


def test_both_providers_failing_matches_local_plan(monkeypatch, make_survey, reference_date) -> None:
    metrics = _MetricRecorder()
    monkeypatch.setattr(study_plan_generator, "log_metric", metrics)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "primary.test":
            return httpx.Response(500, json={"error": "boom"})
        raise httpx.ConnectError("refused", request=request)

    survey = make_survey(days_until_exam=60)
    result = _orchestrator(handler).generate(survey, reference_date=reference_date)

    expected = generate_local_study_plan(survey, None, 30, reference_date=reference_date)
    assert result.to_payload() == expected.to_payload()
    assert metrics.names.count("study_plan.provider.failed") == 2
    assert "study_plan.fallback.used" in metrics.names


def test_unsalvageable_response_moves_to_next_provider(monkeypatch, make_survey, reference_date) -> None:
    metrics = _MetricRecorder()
    monkeypatch.setattr(study_plan_generator, "log_metric", metrics)
    full_plan = {
        "overview": "Secondary plan",
        "phases": [{"id": 1, "name": "All in", "startDay": 1, "endDay": 5}],
        "dailyPlans": [_provider_day(day, reference_date) for day in range(1, 6)],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "primary.test":
            return httpx.Response(200, json=_envelope("Sorry, I can't help with that."))
        return httpx.Response(200, json=_envelope(json.dumps(full_plan)))

    sink = InMemoryDiagnosticsSink()
    result = _orchestrator(handler, sink=sink).generate(make_survey(days_until_exam=5), reference_date=reference_date)

    assert result.overview == "Secondary plan"
    assert [phase.name for phase in result.phases] == ["All in"]
    assert result.next_steps is None
    assert {"provider": "primary", "reason": "unsalvageable", "attempts": 1} in metrics.metadata
    error_records = [content for name, content in sink.records if name.endswith("-primary-error")]
    assert "overview=False" in error_records[0]


def test_provider_without_key_is_skipped(make_survey, reference_date) -> None:
    hosts: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        return httpx.Response(200, json=_envelope(json.dumps({"overview": "x", "dailyPlans": [_provider_day(1, reference_date)]})))

    result = _orchestrator(handler, keys={"secondary": "k2"}).generate(make_survey(days_until_exam=3), reference_date=reference_date)

    assert hosts == ["secondary.test"]
    assert result.daily_plans[0].title == "Anatomy day 1"


def test_failing_sink_does_not_affect_result(make_survey, reference_date) -> None:
    class _BrokenSink(DiagnosticsSink):
        def save(self, name: str, content: str) -> None:
            raise OSError("disk full")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_envelope(json.dumps({"overview": "x", "dailyPlans": [_provider_day(1, reference_date)]})))

    result = _orchestrator(handler, sink=_BrokenSink()).generate(make_survey(days_until_exam=4), reference_date=reference_date)

    assert result.overview == "x"
    assert len(result.daily_plans) == 4


def test_unexpected_pipeline_error_falls_back(monkeypatch, make_survey, reference_date) -> None:
    def boom(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(study_plan_generator, "complete_plan", boom)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_envelope(json.dumps({"overview": "x", "dailyPlans": [_provider_day(1, reference_date)]})))

    survey = make_survey(days_until_exam=10)
    result = _orchestrator(handler).generate(survey, reference_date=reference_date)

    expected = generate_local_study_plan(survey, None, 10, reference_date=reference_date)
    assert result.to_payload() == expected.to_payload()


def test_cancellation_is_treated_like_timeout(make_survey, reference_date) -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
        raise AssertionError("no request expected")

    cancel_event = threading.Event()
    cancel_event.set()
    survey = make_survey(days_until_exam=10)

    result = _orchestrator(handler).generate(survey, reference_date=reference_date, cancel_event=cancel_event)

    expected = generate_local_study_plan(survey, None, 10, reference_date=reference_date)
    assert result.to_payload() == expected.to_payload()


def test_knowledge_points_come_from_material(monkeypatch, make_survey, material, reference_date) -> None:
    captured: Dict[str, Any] = {}

    def fake_generate(self, survey, material, horizon, knowledge_points, *args):
        captured["knowledge_points"] = knowledge_points
        captured["plan_days"] = horizon.plan_days
        return generate_local_study_plan(survey, material, horizon.plan_days, reference_date=reference_date), "fallback"

    monkeypatch.setattr(StudyPlanOrchestrator, "_generate", fake_generate)
    orchestrator = StudyPlanOrchestrator(endpoints=[PRIMARY], credentials=StaticCredentialProvider({"primary": "k1"}))

    orchestrator.generate(make_survey(days_until_exam=10), material, reference_date=reference_date)

    assert captured == {"knowledge_points": 20, "plan_days": 10}


def test_module_entry_point_uses_default_orchestrator(monkeypatch, make_survey, reference_date) -> None:
    class _FailingClient:
        def call(self, endpoint, credentials, payload, **kwargs):
            return ProviderResponse(text=None, ok=False, attempts=1, error=ProviderError("status", "simulated", 502))

    orchestrator = StudyPlanOrchestrator(
        endpoints=[PRIMARY, SECONDARY],
        credentials=StaticCredentialProvider({"primary": "k1", "secondary": "k2"}),
        client=_FailingClient(),
    )
    monkeypatch.setattr(study_plan_generator, "get_study_plan_orchestrator", lambda: orchestrator)

    survey = make_survey(days_until_exam=7)
    result = study_plan_generator.generate_study_plan(survey, reference_date=reference_date)

    expected = generate_local_study_plan(survey, None, 7, reference_date=reference_date)
    assert result.to_payload() == expected.to_payload()


def test_malformed_primary_body_fails_over_to_secondary(make_survey, reference_date) -> None:
    hosts: List[str] = []
    plan = {"overview": "Secondary plan", "dailyPlans": [_provider_day(1, reference_date)]}

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        if request.url.host == "primary.test":
            return httpx.Response(200, content=b'{"choices": [', headers={"content-type": "application/json"})
        return httpx.Response(200, json=_envelope(json.dumps(plan)))

    sink = InMemoryDiagnosticsSink()
    result = _orchestrator(handler, sink=sink).generate(make_survey(days_until_exam=5), reference_date=reference_date)

    assert hosts == ["primary.test", "primary.test", "secondary.test"]
    assert result.overview == "Secondary plan"
    assert any(name.endswith("-primary-error") for name in sink.names())


def test_cancel_during_primary_call_skips_remaining_providers(make_survey, reference_date) -> None:
    cancel_event = threading.Event()
    release = threading.Event()
    hosts: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        cancel_event.set()
        release.wait(5)
        return httpx.Response(200, json=_envelope(json.dumps({"overview": "provider plan", "dailyPlans": []})))

    survey = make_survey(days_until_exam=10)
    try:
        result = _orchestrator(handler).generate(survey, reference_date=reference_date, cancel_event=cancel_event)
    finally:
        release.set()

    expected = generate_local_study_plan(survey, None, 10, reference_date=reference_date)
    assert hosts == ["primary.test"]
    assert result.to_payload() == expected.to_payload()


def test_tracing_failure_still_returns_local_plan(monkeypatch, make_survey, reference_date) -> None:
    @contextmanager
    def broken_trace(*args, **kwargs):
        raise RuntimeError("tracing backend down")
        yield  # pragma: no cover

    monkeypatch.setattr(study_plan_generator, "trace", broken_trace)

    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
        raise AssertionError("no request expected")

    survey = make_survey(days_until_exam=8)
    result = _orchestrator(handler).generate(survey, reference_date=reference_date)

    expected = generate_local_study_plan(survey, None, 8, reference_date=reference_date)
    assert result.to_payload() == expected.to_payload()
