from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Callable

import pytest

from app.services.plan_models import LearningMaterial, SurveyInput

# A Monday, so day 6 of a plan is a Saturday and day 7 a Sunday.
REFERENCE_DATE = date(2026, 3, 2)


@pytest.fixture()
def reference_date() -> date:
    return REFERENCE_DATE


@pytest.fixture()
def make_survey() -> Callable[..., SurveyInput]:
    def _make(days_until_exam: int = 20, **overrides: Any) -> SurveyInput:
        data = {
            "titleLevel": "junior",
            "examStatus": "first",
            "examDate": (REFERENCE_DATE + timedelta(days=days_until_exam)).isoformat(),
            "subjects": {"basic": True, "related": False, "professional": True, "practical": False},
            "overallLevel": "medium",
            "subjectLevels": {"basic": "low", "professional": "medium"},
            "weekdaysCount": "5",
            "weekdayHours": "1-2",
            "weekendHours": "2-4",
        }
        data.update(overrides)
        return SurveyInput.model_validate(data)

    return _make


def _chapter(chapter_id: int, name: str, first_point: int) -> dict:
    return {
        "id": chapter_id,
        "name": name,
        "knowledgePoints": [
            {"id": first_point + offset, "name": f"{name} point {offset + 1}"} for offset in range(5)
        ],
    }


@pytest.fixture()
def material() -> LearningMaterial:
    """Two subjects, two disciplines, four chapters, twenty knowledge points."""
    return LearningMaterial.model_validate(
        {
            "subjects": [
                {
                    "id": 1,
                    "name": "Basic Knowledge",
                    "disciplines": [
                        {
                            "id": 10,
                            "name": "Anatomy",
                            "chapters": [_chapter(100, "Cells", 1000), _chapter(101, "Tissues", 1005)],
                        }
                    ],
                },
                {
                    "id": 2,
                    "name": "Professional Knowledge",
                    "disciplines": [
                        {
                            "id": 20,
                            "name": "Medical Nursing",
                            "chapters": [_chapter(200, "Respiratory", 2000), _chapter(201, "Cardiac", 2005)],
                        }
                    ],
                },
            ]
        }
    )
