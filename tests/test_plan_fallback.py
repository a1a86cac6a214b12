from __future__ import annotations

import json

import pytest

from app.services.plan_completion import GENERIC_SUBJECTS, check_plan_invariants
from app.services.plan_fallback import generate_local_study_plan


def test_same_inputs_produce_identical_output(make_survey, material, reference_date) -> None:
    survey = make_survey(days_until_exam=90)

    first = generate_local_study_plan(survey, material, 30, reference_date=reference_date)
    second = generate_local_study_plan(survey, material, 30, reference_date=reference_date)

    assert json.dumps(first.to_payload(), sort_keys=True) == json.dumps(second.to_payload(), sort_keys=True)


@pytest.mark.parametrize("days", [1, 2, 3, 7, 10, 30])
def test_fallback_satisfies_plan_invariants(days: int, make_survey, reference_date) -> None:
    survey = make_survey(days_until_exam=days)

    result = generate_local_study_plan(survey, None, days, reference_date=reference_date)

    assert check_plan_invariants(result, days) == []


def test_short_horizon_has_no_next_steps(make_survey, reference_date) -> None:
    result = generate_local_study_plan(make_survey(days_until_exam=20), None, 20, reference_date=reference_date)

    assert result.next_steps is None
    assert all(phase.monthly_plan is None for phase in result.phases)
    assert "nextSteps" not in result.to_payload()


def test_long_horizon_adds_next_steps_and_monthly_plans(make_survey, reference_date) -> None:
    result = generate_local_study_plan(make_survey(days_until_exam=120), None, 30, reference_date=reference_date)

    assert result.next_steps and "first 30 days" in result.next_steps
    assert all(phase.monthly_plan for phase in result.phases)
    assert "120 days" in result.overview


def test_generic_subjects_without_material(make_survey, reference_date) -> None:
    result = generate_local_study_plan(make_survey(), None, 10, reference_date=reference_date)

    assert result.daily_plans[0].subjects == [GENERIC_SUBJECTS[0]]
    assert result.daily_plans[0].tasks[0].resources == [
        "Fundamentals of Nursing - Core theory",
        "Fundamentals of Nursing - Key concepts",
    ]


def test_material_chapters_weighted_toward_early_days(make_survey, material, reference_date) -> None:
    result = generate_local_study_plan(make_survey(), material, 10, reference_date=reference_date)

    assert result.daily_plans[0].tasks[0].resources[0] == "Anatomy - Cells"
    assert result.phases[0].recommended_resources == ["Basic Knowledge", "Professional Knowledge"]


def test_stage_tasks_follow_phase(make_survey, reference_date) -> None:
    result = generate_local_study_plan(make_survey(), None, 10, reference_date=reference_date)
    by_day = {entry.day: entry for entry in result.daily_plans}

    assert by_day[1].tasks[0].title.startswith("Learn the core concepts of")
    assert by_day[5].tasks[1].title == "Case analysis practice"
    assert by_day[10].tasks[0].title == "Mock exam practice"
    assert "Junior Nurse" in by_day[10].tasks[0].description


def test_weekend_days_get_longer_and_extra_tasks(make_survey, reference_date) -> None:
    result = generate_local_study_plan(make_survey(), None, 7, reference_date=reference_date)

    monday, saturday, sunday = result.daily_plans[0], result.daily_plans[5], result.daily_plans[6]
    assert len(monday.tasks) == 2
    assert monday.tasks[0].duration_minutes == 90
    assert saturday.tasks[0].duration_minutes == 120
    assert len(saturday.tasks) == 3
    assert len(sunday.tasks) == 4
    assert sunday.tasks[-1].title == "Weekly recap"
    assert len(saturday.subjects) == 2


def test_dates_follow_reference_date(make_survey, reference_date) -> None:
    result = generate_local_study_plan(make_survey(), None, 3, reference_date=reference_date)

    assert [entry.plan_date for entry in result.daily_plans] == ["2026-03-02", "2026-03-03", "2026-03-04"]
