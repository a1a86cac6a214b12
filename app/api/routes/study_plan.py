"""Study plan generation endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.api.schemas.study_plan import StudyPlanRequest, StudyPlanResponse
from app.observability.metrics import timed_metric
from app.observability.tracing import trace
from app.services.study_plan_generator import StudyPlanOrchestrator, get_study_plan_orchestrator

router = APIRouter()


@router.post(
    "/study-plans/generate",
    response_model=StudyPlanResponse,
    response_model_exclude_none=True,
    tags=["study-plans"],
)
def generate_study_plan_endpoint(
    payload: StudyPlanRequest,
    http_request: Request,
    orchestrator: StudyPlanOrchestrator = Depends(get_study_plan_orchestrator),
) -> StudyPlanResponse:
    """Generate a study plan; provider failures degrade to a locally generated plan."""
    request_id = getattr(http_request.state, "request_id", None)
    with timed_metric("study_plan.generate.latency_ms") as metric_meta, trace(
        "http.study_plan.generate",
        metadata={"route": "/study-plans/generate", "has_material": payload.material is not None},
        request_id=request_id,
    ):
        result = orchestrator.generate(payload.survey, payload.material)
        metric_meta["daily_plans"] = len(result.daily_plans)

    return StudyPlanResponse(
        overview=result.overview,
        phases=result.phases,
        daily_plans=result.daily_plans,
        next_steps=result.next_steps,
        request_id=request_id or "",
    )
