"""Three-stage phase layout shared by plan completion and the local fallback."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.services.plan_models import LearningMaterial, Phase

PHASE_TEMPLATES: Tuple[Dict[str, Any], ...] = (
    {
        "name": "Foundation",
        "description": (
            "Build the knowledge framework for the {title} exam over {length} days, "
            "working through the core theory of every subject."
        ),
        "focus_areas": ["Basic medical knowledge", "Nursing fundamentals", "Core clinical skills"],
        "learning_goals": [
            "Build a complete nursing knowledge framework",
            "Master the core concepts of basic medicine and nursing",
            "Get familiar with the main content of every exam subject",
        ],
        "resources": ["Basic medicine", "Fundamentals of Nursing", "Medical Nursing"],
        "monthly_plan": (
            "Month 1: study the foundational theory of each subject. "
            "Following months: finish the core chapters and consolidate before moving on."
        ),
    },
    {
        "name": "Intensive review",
        "description": (
            "Spend {length} days on the difficult and high-yield topics of the {title} exam "
            "to deepen understanding."
        ),
        "focus_areas": ["Key chapters", "Difficult topics", "Clinical case application"],
        "learning_goals": [
            "Resolve the hardest knowledge points",
            "Deepen understanding of core knowledge",
            "Apply knowledge to clinical cases",
        ],
        "resources": ["Medical Nursing", "Surgical Nursing", "Obstetric and Gynecological Nursing"],
        "monthly_plan": (
            "Month 1: target difficult chapters. "
            "Month 2: strengthen the professional subjects. "
            "Afterwards: combine every topic with practice questions."
        ),
    },
    {
        "name": "Final sprint",
        "description": (
            "Use the last {length} days for mock exams and past papers for the {title} exam, "
            "closing remaining gaps."
        ),
        "focus_areas": ["Mock exams", "Past exam papers", "Exam technique"],
        "learning_goals": [
            "Get comfortable with question types and answering technique",
            "Find and fix weak areas",
            "Build confidence under exam conditions",
        ],
        "resources": ["Past exam papers", "Mock exam sets", "Knowledge point summaries"],
        "monthly_plan": (
            "Start with mock questions to find gaps, run full timed mock exams in the last month, "
            "and review key points in the final two weeks."
        ),
    },
)


def split_phase_days(days: int) -> Tuple[int, int, int]:
    """Return the 40/30/30 split of ``days``; the last stage absorbs rounding."""
    if days < 1:
        raise ValueError(f"plan length must be positive, got {days}")
    foundation = (days * 4) // 10
    intensive = (days * 3) // 10
    return foundation, intensive, days - foundation - intensive


def build_phases(
    days: int,
    *,
    material: Optional[LearningMaterial] = None,
    title_label: str = "certification",
    long_term: bool = False,
) -> List[Phase]:
    """
    Lay out the contiguous phases covering days 1..days.

    Phase ids always name the stage (1 foundation, 2 intensive, 3 sprint). A
    stage whose share rounds down to zero days is omitted, so very short plans
    (fewer than four days) carry fewer than three phases.
    """
    phases: List[Phase] = []
    start = 1
    for stage, (template, length) in enumerate(zip(PHASE_TEMPLATES, split_phase_days(days)), start=1):
        if length == 0:
            continue
        end = start + length - 1
        phases.append(
            Phase(
                id=stage,
                name=template["name"],
                description=template["description"].format(title=title_label, length=length),
                start_day=start,
                end_day=end,
                focus_areas=list(template["focus_areas"]),
                learning_goals=list(template["learning_goals"]),
                recommended_resources=_stage_resources(stage, template, material),
                monthly_plan=template["monthly_plan"] if long_term else None,
            )
        )
        start = end + 1
    return phases


def _stage_resources(stage: int, template: Dict[str, Any], material: Optional[LearningMaterial]) -> List[str]:
    if material is not None:
        if stage == 1 and material.subject_names():
            return material.subject_names()[:3]
        if stage == 2 and material.discipline_names():
            return material.discipline_names()[:3]
    return list(template["resources"])


def phase_for_day(phases: Sequence[Phase], day: int) -> Phase:
    for phase in phases:
        if phase.start_day <= day <= phase.end_day:
            return phase
    return phases[-1]


def phases_cover_days(phases: Sequence[Phase], days: int) -> bool:
    """True when the phases are ordered, contiguous and span exactly 1..days."""
    if not phases:
        return False
    expected_start = 1
    for phase in phases:
        if phase.start_day != expected_start or phase.end_day < phase.start_day:
            return False
        expected_start = phase.end_day + 1
    return expected_start == days + 1


def is_weekend(plan_date: date) -> bool:
    return plan_date.weekday() >= 5


def daily_task_count(plan_date: date) -> int:
    """Two tasks on weekdays, three on Saturday, four on Sunday."""
    weekday = plan_date.weekday()
    if weekday == 6:
        return 4
    if weekday == 5:
        return 3
    return 2


def day_date(start_date: date, day: int) -> date:
    return start_date + timedelta(days=day - 1)
