"""Schemas for the study plan generation endpoint."""
from __future__ import annotations

from typing import Optional

from app.services.plan_models import CamelModel, LearningMaterial, StudyPlanResult, SurveyInput


class StudyPlanRequest(CamelModel):
    survey: SurveyInput
    material: Optional[LearningMaterial] = None


class StudyPlanResponse(StudyPlanResult):
    request_id: str
