"""Deterministic repair of partial plan candidates into complete study plans."""
from __future__ import annotations

import logging
import math
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from app.services.plan_models import DailyPlan, LearningMaterial, Phase, StudyPlanResult, Task
from app.services.plan_phases import (
    build_phases,
    daily_task_count,
    day_date,
    phase_for_day,
    phases_cover_days,
)
from app.services.plan_recovery import PlanCandidate

logger = logging.getLogger(__name__)

GENERIC_SUBJECTS: List[str] = [
    "Fundamentals of Nursing",
    "Health Assessment",
    "Medical Nursing",
    "Surgical Nursing",
    "Obstetric and Gynecological Nursing",
    "Pediatric Nursing",
    "Emergency and Critical Care Nursing",
    "Geriatric Nursing",
    "Basic Pharmacology",
    "Nursing Management",
]

REVIEW_TIPS = (
    "Spend ten minutes tonight recalling today's {subject} points without your notes.",
    "Mark every {subject} question you missed and revisit it tomorrow morning.",
    "Summarize today's key ideas in three sentences before bed.",
    "Steady progress beats cramming. Keep today's pace tomorrow.",
    "Link today's {subject} content to a patient case you have seen.",
)


def pluralize(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def knowledge_pace(knowledge_points: int, days: int) -> int:
    """Knowledge points to cover per day so that ``knowledge_points`` fit in ``days``."""
    return max(1, math.ceil(max(0, knowledge_points) / max(1, days)))


def complete_plan(
    candidate: PlanCandidate,
    days: int,
    knowledge_points: int,
    *,
    start_date: date,
    material: Optional[LearningMaterial] = None,
    title_label: str = "certification",
    long_term: bool = False,
) -> StudyPlanResult:
    """
    Turn a possibly partial candidate into a plan covering days 1..days.

    Candidate phases are kept only when they validate and cover the range
    exactly; otherwise the canonical split replaces them wholesale. Candidate
    daily plans are kept where usable and every missing day is synthesized.
    """
    phases = _accept_candidate_phases(candidate.phases, days)
    if phases is None:
        if candidate.phases:
            logger.info("Replacing %s candidate phases that do not cover days 1..%s", len(candidate.phases), days)
        phases = build_phases(days, material=material, title_label=title_label, long_term=long_term)

    kept = _keep_candidate_days(candidate.daily_plans, days, phases, start_date)
    subjects = (material.subject_names() if material else []) or GENERIC_SUBJECTS
    point_names = material.knowledge_point_names() if material else []
    pace = knowledge_pace(knowledge_points, days)

    daily_plans: List[DailyPlan] = []
    for day in range(1, days + 1):
        if day in kept:
            daily_plans.append(kept[day])
            continue
        daily_plans.append(
            synthesize_daily_plan(
                day,
                phase_for_day(phases, day),
                plan_date=day_date(start_date, day),
                subjects=subjects,
                pace=pace,
                point_names=point_names,
            )
        )
    logger.info(
        "Completed plan: %s/%s days from candidate, %s synthesized (pace=%s)",
        len(kept),
        days,
        days - len(kept),
        pace,
    )

    result = StudyPlanResult(
        overview=candidate.overview or default_overview(days, title_label),
        phases=phases,
        daily_plans=daily_plans,
        next_steps=candidate.next_steps,
    )
    problems = check_plan_invariants(result, days)
    if problems:
        logger.error("Completed plan violates invariants: %s", "; ".join(problems))
    return result


def default_overview(days: int, title_label: str) -> str:
    return (
        f"A {days}-day study plan for the {title_label} exam, moving from foundations "
        "through intensive review to a final sprint."
    )


def synthesize_daily_plan(
    day: int,
    phase: Phase,
    *,
    plan_date: date,
    subjects: Sequence[str],
    pace: int,
    point_names: Sequence[str] = (),
) -> DailyPlan:
    subject = subjects[(day - 1) % len(subjects)]
    next_subject = subjects[day % len(subjects)]
    scope = _day_scope(day, pace, point_names)

    tasks = [
        Task(
            title=f"Study {pluralize(pace, 'knowledge point')} in {subject}",
            description=f"Work through {scope} and note anything unclear.",
            duration_minutes=60,
            resources=[subject],
        ),
        Task(
            title=f"{subject} practice questions",
            description=f"Answer practice questions on the {pluralize(pace, 'knowledge point')} studied today.",
            duration_minutes=30,
            resources=[f"{subject} question bank"],
        ),
    ]
    task_count = daily_task_count(plan_date)
    if task_count >= 3:
        if next_subject != subject:
            tasks.append(
                Task(
                    title=f"Preview {next_subject}",
                    description=f"Skim the opening sections of {next_subject} ahead of next week.",
                    duration_minutes=45,
                    resources=[next_subject],
                )
            )
        else:
            tasks.append(
                Task(
                    title=f"Consolidate {subject}",
                    description=f"Rework the hardest {subject} points from this week.",
                    duration_minutes=45,
                    resources=[subject],
                )
            )
    if task_count >= 4:
        tasks.append(
            Task(
                title="Weekly recap",
                description="Review this week's notes and wrong answers, then list next week's weak spots.",
                duration_minutes=40,
                resources=["Error notebook"],
            )
        )

    day_subjects = [subject]
    if task_count >= 3 and next_subject != subject:
        day_subjects.append(next_subject)
    return DailyPlan(
        day=day,
        plan_date=plan_date.isoformat(),
        phase_id=phase.id,
        title=f"Day {day}: {phase.name} - {subject}",
        subjects=day_subjects,
        tasks=tasks,
        review_tips=REVIEW_TIPS[(day - 1) % len(REVIEW_TIPS)].format(subject=subject),
    )


def check_plan_invariants(plan: StudyPlanResult, days: int) -> List[str]:
    """Return human-readable invariant violations; an empty list means the plan is consistent."""
    problems: List[str] = []
    if not plan.overview.strip():
        problems.append("overview is empty")
    if not phases_cover_days(plan.phases, days):
        problems.append(f"phases do not cover days 1..{days} contiguously")
    day_values = [entry.day for entry in plan.daily_plans]
    if day_values != list(range(1, days + 1)):
        problems.append(f"daily plan days are not the contiguous run 1..{days}")
    phase_ids = {phase.id for phase in plan.phases}
    for entry in plan.daily_plans:
        if entry.phase_id not in phase_ids:
            problems.append(f"day {entry.day} references unknown phase {entry.phase_id}")
        if not entry.tasks:
            problems.append(f"day {entry.day} has no tasks")
    return problems


def _day_scope(day: int, pace: int, point_names: Sequence[str]) -> str:
    if not point_names:
        return f"{pluralize(pace, 'knowledge point')} from the syllabus"
    start = ((day - 1) * pace) % len(point_names)
    picked = [point_names[(start + offset) % len(point_names)] for offset in range(min(pace, len(point_names)))]
    return ", ".join(picked)


def _accept_candidate_phases(raw_phases: Sequence[Dict[str, Any]], days: int) -> Optional[List[Phase]]:
    if not raw_phases:
        return None
    try:
        phases = [Phase.model_validate(raw) for raw in raw_phases]
    except ValidationError as exc:
        logger.info("Candidate phases failed validation: %s", exc.error_count())
        return None
    phases.sort(key=lambda phase: phase.start_day)
    if len({phase.id for phase in phases}) != len(phases):
        return None
    if not phases_cover_days(phases, days):
        return None
    return phases


def _keep_candidate_days(
    raw_plans: Sequence[Dict[str, Any]],
    days: int,
    phases: Sequence[Phase],
    start_date: date,
) -> Dict[int, DailyPlan]:
    kept: Dict[int, DailyPlan] = {}
    for raw in raw_plans:
        day = _coerce_day(raw.get("day"))
        if day is None or not 1 <= day <= days or day in kept:
            continue
        entry = _normalize_daily_plan(raw, day, phases, start_date)
        if entry is not None:
            kept[day] = entry
    return kept


def _coerce_day(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _normalize_daily_plan(
    raw: Dict[str, Any],
    day: int,
    phases: Sequence[Phase],
    start_date: date,
) -> Optional[DailyPlan]:
    tasks: List[Task] = []
    for raw_task in raw.get("tasks") or []:
        try:
            tasks.append(Task.model_validate(raw_task))
        except ValidationError:
            continue
    if not tasks:
        return None

    phase = phase_for_day(phases, day)
    phase_id = raw.get("phaseId")
    if not any(p.id == phase_id and p.start_day <= day <= p.end_day for p in phases):
        phase_id = phase.id

    plan_date = raw.get("date")
    if not isinstance(plan_date, str) or not plan_date.strip():
        plan_date = day_date(start_date, day).isoformat()

    title = raw.get("title")
    subjects = raw.get("subjects")
    review_tips = raw.get("reviewTips")
    return DailyPlan(
        day=day,
        plan_date=plan_date,
        phase_id=phase_id,
        title=title if isinstance(title, str) and title.strip() else f"Day {day}: {phase.name}",
        subjects=[s for s in subjects if isinstance(s, str)] if isinstance(subjects, list) else [],
        tasks=tasks,
        review_tips=review_tips if isinstance(review_tips, str) else "",
    )
