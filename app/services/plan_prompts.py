"""Prompt construction for study plan generation."""
from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, List, Optional

from app.services.plan_models import (
    SUBJECT_AREA_LABELS,
    ExamStatus,
    LearningMaterial,
    OverallLevel,
    PlanHorizon,
    SubjectLevel,
    SurveyInput,
)
from app.services.plan_phases import PHASE_TEMPLATES, split_phase_days

SUBJECT_LEVEL_LABELS = {
    SubjectLevel.LOW: "little familiarity (*)",
    SubjectLevel.MEDIUM: "some familiarity (**)",
    SubjectLevel.HIGH: "solid grasp (***)",
}

OVERALL_LEVEL_LABELS = {
    OverallLevel.WEAK: "weak foundation, needs to start from the basics",
    OverallLevel.MEDIUM: "some foundation, parts need strengthening",
    OverallLevel.STRONG: "solid foundation, needs a systematic review",
}

WEEKDAYS_COUNT_LABELS = {
    "1-2": "1-2 weekdays per week",
    "3-4": "3-4 weekdays per week",
    "5": "5 weekdays per week",
}

WEEKDAY_HOURS_LABELS = {
    "<1": "less than 1 hour per weekday",
    "1-2": "1-2 hours per weekday",
    "2-3": "2-3 hours per weekday",
    "3+": "more than 3 hours per weekday",
}

WEEKEND_HOURS_LABELS = {
    "<2": "less than 2 hours per weekend day",
    "2-4": "2-4 hours per weekend day",
    "4-6": "4-6 hours per weekend day",
    "6+": "more than 6 hours per weekend day",
}

SYSTEM_ROLE = (
    "You are an experienced exam-preparation planner for healthcare professionals. "
    "You build personalized, realistic study plans for nursing certification exams."
)


def study_base_description(survey: SurveyInput) -> str:
    """Describe the learner's starting point: overall level on a first attempt, per-subject otherwise."""
    if survey.exam_status is ExamStatus.FIRST:
        return OVERALL_LEVEL_LABELS[survey.overall_level]
    lines = ["Selected subjects and current level:"]
    for area in survey.subjects:
        level = survey.subject_levels.get(area)
        label = SUBJECT_LEVEL_LABELS[level] if level else "unknown level"
        lines.append(f"  - {SUBJECT_AREA_LABELS[area]}: {label}")
    return "\n".join(lines)


def build_study_plan_prompt(
    survey: SurveyInput,
    horizon: PlanHorizon,
    material: Optional[LearningMaterial] = None,
    *,
    reference_date: date,
) -> str:
    """
    Build the single user prompt for a provider.

    ``horizon`` decides between a full daily plan (exam within the day cap)
    and a near-term plan with monthly phase outlines and follow-up guidance.
    """
    days = horizon.plan_days
    phase_ranges = _phase_ranges(days)
    exam_status = "first attempt" if survey.exam_status is ExamStatus.FIRST else "some subjects already passed"

    if horizon.is_long_term:
        scope_block = (
            f"### PLAN SCOPE\n"
            f"The exam is {horizon.days_until_exam} days away. Only plan the next {days} days in detail: "
            f"dailyPlans must contain exactly {days} entries (day 1 to day {days}). "
            "Give every phase a `monthlyPlan` outlining the longer arc, and add a `nextSteps` field "
            "explaining what to do once these days are finished.\n\n"
        )
    else:
        scope_block = (
            f"### PLAN SCOPE\n"
            f"The exam is {horizon.days_until_exam} days away. dailyPlans must contain exactly {days} entries "
            f"(day 1 to day {days}), one per day until the exam.\n\n"
        )

    material_block = ""
    if material is not None and material.subjects:
        material_json = json.dumps(material.model_dump(mode="json", by_alias=True), ensure_ascii=False, indent=2)
        material_block = (
            "### LEARNING MATERIAL\n"
            "Ground subjects, chapters and resources in this material where possible:\n"
            f"{material_json}\n\n"
        )

    return (
        f"{SYSTEM_ROLE}\n\n"
        "### LEARNER PROFILE\n"
        f"- Target title: {survey.title_label}\n"
        f"- Exam status: {exam_status}\n"
        f"- Study base: {study_base_description(survey)}\n"
        "- Available time:\n"
        f"  * {WEEKDAYS_COUNT_LABELS[survey.weekdays_count]}\n"
        f"  * {WEEKDAY_HOURS_LABELS[survey.weekday_hours]}\n"
        f"  * {WEEKEND_HOURS_LABELS[survey.weekend_hours]}\n"
        f"- Today: {reference_date.isoformat()}; exam date: {survey.resolved_exam_date.isoformat()}\n\n"
        f"{scope_block}"
        f"{material_block}"
        "### RULES\n"
        f"1. Split the plan into phases: {phase_ranges}, "
        "roughly 4:3:3. Phases must be contiguous and together cover every planned day.\n"
        "2. Weekdays and weekends get different workloads that respect the available time.\n"
        "3. Task durations (minutes) must fit within the time available that day.\n"
        "4. Resources must be concrete, such as a named textbook chapter or a skills video.\n"
        "5. Every dailyPlans entry needs a date (YYYY-MM-DD) starting from today and a phaseId from phases.\n\n"
        "### OUTPUT REQUIREMENT\n"
        "Return one strictly valid JSON object with this shape:\n"
        f"{json.dumps(_response_shape(horizon), indent=2)}"
    )


def build_provider_payload(
    prompt: str,
    model: str,
    *,
    temperature: float,
    max_tokens: int,
) -> Dict[str, Any]:
    """Chat-completions request body for an OpenAI-compatible provider."""
    return {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": temperature,
        "max_tokens": max_tokens,
        "response_format": {"type": "json_object"},
    }


def _response_shape(horizon: PlanHorizon) -> Dict[str, Any]:
    phase: Dict[str, Any] = {
        "id": 1,
        "name": "Foundation",
        "description": "phase description",
        "startDay": 1,
        "endDay": "<last day of the phase>",
        "focusAreas": ["focus area"],
        "learningGoals": ["learning goal"],
        "recommendedResources": ["resource"],
    }
    if horizon.is_long_term:
        phase["monthlyPlan"] = "month-by-month outline for this phase"
    tasks: List[Dict[str, Any]] = [
        {
            "title": "task title",
            "description": "task description",
            "durationMinutes": 60,
            "resources": ["resource"],
        }
    ]
    shape: Dict[str, Any] = {
        "overview": "overall strategy and key advice",
        "phases": [phase],
        "dailyPlans": [
            {
                "day": 1,
                "date": "YYYY-MM-DD",
                "phaseId": 1,
                "title": "day title",
                "subjects": ["subject"],
                "tasks": tasks,
                "reviewTips": "review advice for the day",
            }
        ],
    }
    if horizon.is_long_term:
        shape["nextSteps"] = "what to do after the planned days"
    return shape


def _phase_ranges(days: int) -> str:
    ranges = []
    start = 1
    for template, length in zip(PHASE_TEMPLATES, split_phase_days(days)):
        if length == 0:
            continue
        ranges.append(f"{template['name']} (days {start}-{start + length - 1})")
        start += length
    return ", ".join(ranges)
