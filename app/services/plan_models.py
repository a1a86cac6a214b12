"""Study plan domain models shared by the generation pipeline."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_MAX_PLAN_DAYS = 30
EXAM_MONTH = 4
EXAM_DAY = 13


class CamelModel(BaseModel):
    """Models exchanged with providers and the frontend use camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TitleLevel(str, Enum):
    JUNIOR = "junior"
    MID = "mid"
    OTHER = "other"


class ExamStatus(str, Enum):
    FIRST = "first"
    PARTIAL = "partial"


class OverallLevel(str, Enum):
    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"


class SubjectLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ExamSubjectArea(str, Enum):
    BASIC = "basic"
    RELATED = "related"
    PROFESSIONAL = "professional"
    PRACTICAL = "practical"


TITLE_LABELS: Dict[TitleLevel, str] = {
    TitleLevel.JUNIOR: "Junior Nurse",
    TitleLevel.MID: "Charge Nurse",
}

SUBJECT_AREA_LABELS: Dict[ExamSubjectArea, str] = {
    ExamSubjectArea.BASIC: "Basic knowledge",
    ExamSubjectArea.RELATED: "Related professional knowledge",
    ExamSubjectArea.PROFESSIONAL: "Professional knowledge",
    ExamSubjectArea.PRACTICAL: "Practical competence",
}


class SurveyInput(CamelModel):
    """Questionnaire answers describing the learner's exam target and time budget."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    title_level: TitleLevel
    other_title_level: Optional[str] = None
    exam_status: ExamStatus = ExamStatus.FIRST
    exam_year: Optional[int] = Field(default=None, ge=2000, le=2100)
    exam_date: Optional[date] = None
    subjects: List[ExamSubjectArea] = Field(default_factory=list)
    overall_level: OverallLevel = OverallLevel.MEDIUM
    subject_levels: Dict[ExamSubjectArea, SubjectLevel] = Field(default_factory=dict)
    weekdays_count: Literal["1-2", "3-4", "5"] = "3-4"
    weekday_hours: Literal["<1", "1-2", "2-3", "3+"] = "1-2"
    weekend_hours: Literal["<2", "2-4", "4-6", "6+"] = "2-4"

    @field_validator("subjects", mode="before")
    @classmethod
    def _selected_subjects(cls, value: Any) -> Any:
        # The questionnaire posts checkboxes as {"basic": true, "related": false, ...}.
        if isinstance(value, dict):
            return [key for key, selected in value.items() if selected]
        return value

    @model_validator(mode="after")
    def _require_exam_timing(self) -> "SurveyInput":
        if self.exam_date is None and self.exam_year is None:
            raise ValueError("either exam_date or exam_year is required")
        return self

    @property
    def resolved_exam_date(self) -> date:
        if self.exam_date is not None:
            return self.exam_date
        return date(self.exam_year, EXAM_MONTH, EXAM_DAY)

    @property
    def title_label(self) -> str:
        if self.title_level is TitleLevel.OTHER:
            return (self.other_title_level or "").strip() or "Nurse"
        return TITLE_LABELS[self.title_level]

    def days_until_exam(self, reference_date: date) -> int:
        return max(1, (self.resolved_exam_date - reference_date).days)


class KnowledgePoint(CamelModel):
    id: Union[int, str]
    name: str


class Chapter(CamelModel):
    id: Union[int, str]
    name: str
    knowledge_points: List[KnowledgePoint] = Field(default_factory=list)


class Discipline(CamelModel):
    id: Union[int, str]
    name: str
    chapters: List[Chapter] = Field(default_factory=list)


class ExamSubject(CamelModel):
    id: Union[int, str]
    name: str
    disciplines: List[Discipline] = Field(default_factory=list)


class LearningMaterial(CamelModel):
    """Read-only subject -> discipline -> chapter -> knowledge point tree."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    subjects: List[ExamSubject] = Field(default_factory=list)

    def subject_names(self) -> List[str]:
        return [subject.name for subject in self.subjects]

    def discipline_names(self) -> List[str]:
        return [discipline.name for subject in self.subjects for discipline in subject.disciplines]

    def chapter_labels(self) -> List[str]:
        return [
            f"{discipline.name} - {chapter.name}"
            for subject in self.subjects
            for discipline in subject.disciplines
            for chapter in discipline.chapters
        ]

    def knowledge_point_names(self) -> List[str]:
        return [
            point.name
            for subject in self.subjects
            for discipline in subject.disciplines
            for chapter in discipline.chapters
            for point in chapter.knowledge_points
        ]

    def knowledge_point_count(self) -> int:
        return len(self.knowledge_point_names())


class Phase(CamelModel):
    id: int = Field(..., ge=1, le=3)
    name: str
    description: str = ""
    start_day: int = Field(..., ge=1)
    end_day: int = Field(..., ge=1)
    focus_areas: List[str] = Field(default_factory=list)
    learning_goals: List[str] = Field(default_factory=list)
    recommended_resources: List[str] = Field(default_factory=list)
    monthly_plan: Optional[str] = None


class Task(CamelModel):
    title: str
    description: str = ""
    duration_minutes: int = Field(..., gt=0)
    resources: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_duration(cls, data: Any) -> Any:
        if isinstance(data, dict) and "duration" in data:
            if "durationMinutes" not in data and "duration_minutes" not in data:
                data = {**data, "durationMinutes": data["duration"]}
        return data


class DailyPlan(CamelModel):
    day: int = Field(..., ge=1)
    plan_date: str = Field(..., alias="date")
    phase_id: int
    title: str
    subjects: List[str] = Field(default_factory=list)
    tasks: List[Task] = Field(..., min_length=1)
    review_tips: str = ""


class StudyPlanResult(CamelModel):
    """Terminal artifact returned to callers; always structurally complete."""

    overview: str = Field(..., min_length=1)
    phases: List[Phase]
    daily_plans: List[DailyPlan]
    next_steps: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class PlanHorizon:
    """Selects between a full daily plan and a capped near-term plan."""

    days_until_exam: int
    plan_days: int

    @property
    def is_long_term(self) -> bool:
        return self.plan_days < self.days_until_exam

    @classmethod
    def from_days_until_exam(cls, days_until_exam: int, max_plan_days: int = DEFAULT_MAX_PLAN_DAYS) -> "PlanHorizon":
        days = max(1, days_until_exam)
        return cls(days_until_exam=days, plan_days=min(days, max(1, max_plan_days)))
