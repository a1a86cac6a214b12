"""Resilient study plan generation across providers with local fallback."""
from __future__ import annotations

import logging
import threading
from datetime import date
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple

from app.core.config import Settings, get_settings
from app.core.context import request_scope
from app.observability.metrics import log_metric
from app.observability.tracing import annotate, trace
from app.services.diagnostics.base import DiagnosticsSink, save_diagnostics
from app.services.diagnostics.factory import get_diagnostics_sink
from app.services.plan_completion import complete_plan
from app.services.plan_fallback import follow_up_guidance, generate_local_study_plan
from app.services.plan_models import LearningMaterial, PlanHorizon, StudyPlanResult, SurveyInput
from app.services.plan_prompts import build_provider_payload, build_study_plan_prompt
from app.services.plan_recovery import PlanCandidate, recover_candidate
from app.services.providers.client import ProviderClient
from app.services.providers.config import (
    CredentialProvider,
    ProviderEndpoint,
    SettingsCredentialProvider,
    configured_endpoints,
)

logger = logging.getLogger(__name__)

FALLBACK_SOURCE = "fallback"


class UnsalvageableResponseError(Exception):
    """
    Provider text from which no overview plus phases or daily plans could be recovered.

    Like ``ProviderError`` it travels as a value into logs, metrics and
    diagnostics records instead of being raised.
    """

    reason = "unsalvageable"

    @classmethod
    def for_candidate(cls, candidate: PlanCandidate) -> "UnsalvageableResponseError":
        return cls(
            f"recovered overview={bool(candidate.overview)} phases={len(candidate.phases)} "
            f"daily_plans={len(candidate.daily_plans)}"
        )


class StudyPlanOrchestrator:
    """
    Tries each provider in priority order and returns the first usable plan.

    ``generate`` never raises: provider failures, unsalvageable responses and
    unexpected errors all end in the local fallback plan. Outcomes are only
    visible through logs, metrics and diagnostics records.
    """

    def __init__(
        self,
        *,
        endpoints: Sequence[ProviderEndpoint],
        credentials: CredentialProvider,
        client: Optional[ProviderClient] = None,
        sink: Optional[DiagnosticsSink] = None,
        timeout: float = 120.0,
        max_attempts: int = 2,
        temperature: float = 0.3,
        max_tokens: int = 8000,
        max_plan_days: int = 30,
        default_knowledge_points: int = 30,
    ) -> None:
        self.endpoints: List[ProviderEndpoint] = list(endpoints)
        self.credentials = credentials
        self.client = client or ProviderClient()
        self.sink = sink
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_plan_days = max_plan_days
        self.default_knowledge_points = default_knowledge_points

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        client: Optional[ProviderClient] = None,
        sink: Optional[DiagnosticsSink] = None,
    ) -> "StudyPlanOrchestrator":
        settings = settings or get_settings()
        return cls(
            endpoints=configured_endpoints(settings),
            credentials=SettingsCredentialProvider(settings),
            client=client or ProviderClient(retry_delay=settings.provider_retry_delay_seconds),
            sink=sink if sink is not None else get_diagnostics_sink(),
            timeout=settings.provider_timeout_seconds,
            max_attempts=settings.provider_max_attempts,
            temperature=settings.generation_temperature,
            max_tokens=settings.generation_max_tokens,
            max_plan_days=settings.max_daily_plan_days,
            default_knowledge_points=settings.default_knowledge_points,
        )

    def generate(
        self,
        survey: SurveyInput,
        material: Optional[LearningMaterial] = None,
        *,
        reference_date: Optional[date] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> StudyPlanResult:
        reference_date = reference_date or date.today()
        try:
            with request_scope() as request_id:
                horizon = self._horizon(survey, reference_date)
                knowledge_points = self._knowledge_points(material)
                metadata = {
                    "plan_days": horizon.plan_days,
                    "days_until_exam": horizon.days_until_exam,
                    "knowledge_points": knowledge_points,
                    "has_material": material is not None,
                }
                with trace("study_plan.generate", metadata=metadata) as opik_trace:
                    logger.info(
                        "Generating study plan days=%s/%s knowledge_points=%s",
                        horizon.plan_days,
                        horizon.days_until_exam,
                        knowledge_points,
                    )
                    result, source = self._generate(
                        survey, material, horizon, knowledge_points, reference_date, request_id, cancel_event
                    )
                    annotate(opik_trace, source=source, daily_plans=len(result.daily_plans))
                    logger.info("Study plan ready source=%s", source)
                return result
        except Exception:
            logger.exception("Study plan pipeline failed unexpectedly; using local plan")
            log_metric("study_plan.fallback.used", 1, {"reason": "pipeline_error"})
            return self._fallback(survey, material, reference_date)

    def _horizon(self, survey: SurveyInput, reference_date: date) -> PlanHorizon:
        return PlanHorizon.from_days_until_exam(survey.days_until_exam(reference_date), self.max_plan_days)

    def _knowledge_points(self, material: Optional[LearningMaterial]) -> int:
        return (material.knowledge_point_count() if material else 0) or self.default_knowledge_points

    def _generate(
        self,
        survey: SurveyInput,
        material: Optional[LearningMaterial],
        horizon: PlanHorizon,
        knowledge_points: int,
        reference_date: date,
        request_id: str,
        cancel_event: Optional[threading.Event],
    ) -> Tuple[StudyPlanResult, str]:
        prompt = build_study_plan_prompt(survey, horizon, material, reference_date=reference_date)
        save_diagnostics(self.sink, f"{request_id}-prompt", prompt)

        for endpoint in self.endpoints:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("Generation cancelled before provider %s; generating local plan", endpoint.name)
                log_metric("study_plan.fallback.used", 1, {"reason": "cancelled"})
                return self._fallback(survey, material, reference_date), FALLBACK_SOURCE
            candidate = self._try_provider(endpoint, prompt, request_id, cancel_event)
            if candidate is None:
                continue
            log_metric(
                "study_plan.provider.accepted",
                1,
                {"provider": endpoint.name, "strategy": candidate.strategy, "daily_plans": len(candidate.daily_plans)},
            )
            result = complete_plan(
                candidate,
                horizon.plan_days,
                knowledge_points,
                start_date=reference_date,
                material=material,
                title_label=survey.title_label,
                long_term=horizon.is_long_term,
            )
            if horizon.is_long_term and not result.next_steps:
                result = result.model_copy(update={"next_steps": follow_up_guidance(horizon.plan_days)})
            return result, endpoint.name

        logger.warning("All providers failed; generating local plan")
        log_metric("study_plan.fallback.used", 1, {"reason": "providers_exhausted"})
        return self._fallback(survey, material, reference_date), FALLBACK_SOURCE

    def _try_provider(
        self,
        endpoint: ProviderEndpoint,
        prompt: str,
        request_id: str,
        cancel_event: Optional[threading.Event],
    ) -> Optional[PlanCandidate]:
        payload = build_provider_payload(
            prompt,
            endpoint.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        with trace(
            "study_plan.provider_call",
            metadata={"provider": endpoint.name, "model": endpoint.model},
            request_id=request_id,
        ) as span:
            response = self.client.call(
                endpoint,
                self.credentials.get_api_key(endpoint.name),
                payload,
                timeout=self.timeout,
                max_attempts=self.max_attempts,
                cancel_event=cancel_event,
            )
            annotate(span, ok=response.ok, attempts=response.attempts)

        if not response.ok:
            reason = response.error.kind if response.error else "unknown"
            save_diagnostics(self.sink, f"{request_id}-{endpoint.name}-error", str(response.error))
            log_metric(
                "study_plan.provider.failed",
                1,
                {"provider": endpoint.name, "reason": reason, "attempts": response.attempts},
            )
            return None

        save_diagnostics(self.sink, f"{request_id}-{endpoint.name}-response", response.text)
        candidate = recover_candidate(response.text)
        if candidate.is_salvageable:
            return candidate

        error = UnsalvageableResponseError.for_candidate(candidate)
        logger.warning("Provider %s response unusable: %s", endpoint.name, error)
        save_diagnostics(self.sink, f"{request_id}-{endpoint.name}-error", str(error))
        log_metric(
            "study_plan.provider.failed",
            1,
            {"provider": endpoint.name, "reason": error.reason, "attempts": response.attempts},
        )
        return None

    def _fallback(
        self,
        survey: SurveyInput,
        material: Optional[LearningMaterial],
        reference_date: date,
    ) -> StudyPlanResult:
        horizon = self._horizon(survey, reference_date)
        try:
            return generate_local_study_plan(survey, material, horizon.plan_days, reference_date=reference_date)
        except Exception:
            logger.exception("Local study plan generation failed; completing an empty candidate")
            return complete_plan(
                PlanCandidate(),
                horizon.plan_days,
                self._knowledge_points(material),
                start_date=reference_date,
                material=material,
                title_label=survey.title_label,
                long_term=horizon.is_long_term,
            )


@lru_cache
def get_study_plan_orchestrator() -> StudyPlanOrchestrator:
    return StudyPlanOrchestrator.from_settings()


def generate_study_plan(
    survey: SurveyInput,
    material: Optional[LearningMaterial] = None,
    *,
    reference_date: Optional[date] = None,
    cancel_event: Optional[threading.Event] = None,
) -> StudyPlanResult:
    """Public entry point; always returns a structurally complete plan."""
    return get_study_plan_orchestrator().generate(
        survey,
        material,
        reference_date=reference_date,
        cancel_event=cancel_event,
    )
