"""Local study plan generator used when no provider produces a usable plan."""
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Sequence

from app.services.plan_completion import GENERIC_SUBJECTS, pluralize
from app.services.plan_models import DailyPlan, LearningMaterial, Phase, PlanHorizon, StudyPlanResult, SurveyInput, Task
from app.services.plan_phases import build_phases, daily_task_count, day_date, phase_for_day

logger = logging.getLogger(__name__)

DEFAULT_CHAPTERS = ("Core theory", "Key concepts", "Clinical application")


def follow_up_guidance(plan_days: int) -> str:
    """Advice shown when the detailed plan stops before the exam."""
    return (
        f"After finishing the first {pluralize(plan_days, 'day')}:\n"
        "1. Assess your progress and how well you have mastered each subject.\n"
        "2. Take a stage test to find weak areas.\n"
        "3. Use the test results to request a plan for the next stage.\n"
        "4. Adjust your study methods and time allocation.\n"
        "5. Rebalance the remaining phases to match your actual pace."
    )


def generate_local_study_plan(
    survey: SurveyInput,
    material: Optional[LearningMaterial],
    days: int,
    *,
    reference_date: date,
) -> StudyPlanResult:
    """
    Build a complete plan without any network access.

    Output depends only on the arguments, so two calls with the same survey,
    material and reference date produce identical plans.
    """
    horizon = PlanHorizon(days_until_exam=max(days, survey.days_until_exam(reference_date)), plan_days=days)
    title = survey.title_label
    logger.info(
        "Generating local study plan (days=%s, days_until_exam=%s, long_term=%s)",
        days,
        horizon.days_until_exam,
        horizon.is_long_term,
    )

    phases = build_phases(days, material=material, title_label=title, long_term=horizon.is_long_term)
    subjects = (material.subject_names() if material else []) or list(GENERIC_SUBJECTS)
    chapters = _available_chapters(material, subjects)

    daily_plans = [
        _local_daily_plan(
            day,
            phase_for_day(phases, day),
            plan_date=day_date(reference_date, day),
            subjects=subjects,
            chapters=chapters,
            plan_days=days,
            title=title,
        )
        for day in range(1, days + 1)
    ]

    overview = (
        f"This plan is built around your {title} exam goal, your current knowledge base and the time you "
        f"have available. It splits the {pluralize(days, 'day')} of preparation into foundation, intensive "
        "review and final sprint stages, each with its own focus, goals and daily tasks."
    )
    if horizon.is_long_term:
        overview += (
            f" With {horizon.days_until_exam} days until the exam, only the next {pluralize(days, 'day')} "
            "are planned in detail; adjust the rest as you progress."
        )
    overview += " Follow the schedule closely and review regularly."

    return StudyPlanResult(
        overview=overview,
        phases=phases,
        daily_plans=daily_plans,
        next_steps=follow_up_guidance(days) if horizon.is_long_term else None,
    )


def _available_chapters(material: Optional[LearningMaterial], subjects: Sequence[str]) -> List[str]:
    labels = material.chapter_labels() if material else []
    if labels:
        return labels
    return [f"{subject} - {chapter}" for subject in subjects for chapter in DEFAULT_CHAPTERS]


def _local_daily_plan(
    day: int,
    phase: Phase,
    *,
    plan_date: date,
    subjects: Sequence[str],
    chapters: Sequence[str],
    plan_days: int,
    title: str,
) -> DailyPlan:
    task_count = daily_task_count(plan_date)
    weekend = task_count > 2
    main_subject = subjects[(day - 1) % len(subjects)]
    day_subjects = [main_subject]
    if weekend and len(subjects) > 1:
        day_subjects.append(subjects[day % len(subjects)])

    # Earlier days map to earlier (foundational) chapters.
    chapter_index = (day - 1) * len(chapters) // plan_days
    chapter_resources = list(chapters[chapter_index : chapter_index + 2])

    long_minutes = 120 if weekend else 90
    short_minutes = 90 if weekend else 60
    if phase.id == 1:
        tasks = [
            Task(
                title=f"Learn the core concepts of {main_subject}",
                description=f"Study the basic theory and core concepts of {main_subject} to build a framework.",
                duration_minutes=long_minutes,
                resources=chapter_resources,
            ),
            Task(
                title="Chapter exercises",
                description="Complete the end-of-chapter exercises to consolidate what you learned.",
                duration_minutes=short_minutes,
                resources=[f"{main_subject} exercise book"],
            ),
        ]
        if len(day_subjects) > 1:
            tasks.append(
                Task(
                    title=f"Preview {day_subjects[1]}",
                    description=f"Preview the fundamentals of {day_subjects[1]} and its core concepts.",
                    duration_minutes=60,
                    resources=[day_subjects[1]],
                )
            )
    elif phase.id == 2:
        tasks = [
            Task(
                title=f"Key topics in {main_subject}",
                description=f"Work through the key and difficult topics of {main_subject} in depth.",
                duration_minutes=long_minutes,
                resources=chapter_resources,
            ),
            Task(
                title="Case analysis practice",
                description="Use typical clinical cases to deepen understanding and application.",
                duration_minutes=short_minutes,
                resources=[f"{main_subject} case collection"],
            ),
        ]
        if weekend:
            tasks.append(
                Task(
                    title="Integrated review",
                    description="Connect the knowledge points of recent subjects into one network.",
                    duration_minutes=60,
                    resources=["Integrated knowledge summary"],
                )
            )
    else:
        tasks = [
            Task(
                title="Mock exam practice",
                description=f"Complete a full {title} mock paper and practise answering technique.",
                duration_minutes=long_minutes,
                resources=["Mock exam papers", "Past exam papers"],
            ),
            Task(
                title=f"Review key points of {main_subject}",
                description=f"Revisit the error-prone and high-yield points of {main_subject} to close gaps.",
                duration_minutes=short_minutes,
                resources=[f"{main_subject} key point summary", "Exam focus notes"],
            ),
        ]
        if weekend:
            tasks.append(
                Task(
                    title="Timed mock exam",
                    description="Simulate real exam conditions with a timed mock covering every subject.",
                    duration_minutes=120,
                    resources=["Full-length mock paper"],
                )
            )
    if task_count >= 4:
        tasks.append(
            Task(
                title="Weekly recap",
                description="Summarize this week's work and list the weak spots for next week.",
                duration_minutes=30,
                resources=["Error notebook"],
            )
        )

    tips = f"After today's session, spend 15 minutes reviewing the core concepts of {' and '.join(day_subjects)}."
    if weekend:
        tips += " Use the extra weekend time to summarize everything from this week."
    return DailyPlan(
        day=day,
        plan_date=plan_date.isoformat(),
        phase_id=phase.id,
        title=f"Day {day} study plan",
        subjects=day_subjects,
        tasks=tasks[:task_count],
        review_tips=tips,
    )
