from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# Python-Felder in snake_case, auf dem Draht und auf der Platte in camelCase
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(CamelModel):
    model_config = ConfigDict(frozen=True)


# --- Schemas für Umfrage-Definitionen (nur lesend) ---


class QuestionType(str, Enum):
    FREE_FORM = "free-form"
    MULTIPLE_CHOICE = "multiple-choice"
    MULTIPLE_SELECT = "multiple-select"
    RATING_SCALE = "rating-scale"
    EMAIL = "email"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    MATRIX = "matrix"


class QuestionOption(FrozenCamelModel):
    value: str
    label: str


class RatingScale(FrozenCamelModel):
    min: int
    max: int
    step: int = Field(default=1, gt=0)


class MatrixRow(FrozenCamelModel):
    id: str
    label: str


class MatrixColumn(FrozenCamelModel):
    value: str
    label: str


class MatrixConfig(FrozenCamelModel):
    rows: List[MatrixRow] = Field(..., min_length=1)
    columns: List[MatrixColumn] = Field(..., min_length=1)
    allow_multiple_per_row: bool = False


class ValidationRules(FrozenCamelModel):
    """Optionale Regeln; welche greifen, hängt vom Fragetyp ab."""

    required: Optional[bool] = None
    min_length: Optional[int] = Field(default=None, ge=0)
    max_length: Optional[int] = Field(default=None, ge=0)
    pattern: Optional[str] = None  # Regex oder eingebauter Name wie "email"
    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None
    integer: Optional[bool] = None
    min_selections: Optional[int] = Field(default=None, ge=0)
    max_selections: Optional[int] = Field(default=None, ge=0)

    # Zeitliche Regeln für date/datetime/time
    min_date: Optional[date] = None
    max_date: Optional[date] = None
    allow_weekends: bool = True
    allow_past: bool = True
    allow_future: bool = True
    excluded_dates: List[date] = Field(default_factory=list)
    min_time: Optional[time] = None
    max_time: Optional[time] = None


ConditionValue = Union[bool, int, float, str]


class SingleCondition(FrozenCamelModel):
    depends_on: str = Field(..., min_length=1)
    show_if: List[ConditionValue]


class CompoundCondition(FrozenCamelModel):
    operator: Literal["AND", "OR"]
    conditions: List[SingleCondition] = Field(..., min_length=1)


ConditionalLogic = Union[SingleCondition, CompoundCondition]


class QuestionDefinition(FrozenCamelModel):
    id: str = Field(..., min_length=1)
    type: QuestionType
    text: str
    required: bool = False
    options: Optional[List[QuestionOption]] = None
    scale: Optional[RatingScale] = None
    matrix: Optional[MatrixConfig] = None
    conditional: Optional[ConditionalLogic] = None
    validation: Optional[ValidationRules] = None

    def dependencies(self) -> List[str]:
        """IDs der Fragen, von deren Antworten diese Frage abhängt."""
        if self.conditional is None:
            return []
        if isinstance(self.conditional, CompoundCondition):
            return [c.depends_on for c in self.conditional.conditions]
        return [self.conditional.depends_on]


class SurveyMetadata(FrozenCamelModel):
    title: str
    description: str
    estimated_duration: Optional[str] = None  # z.B. "5-7 minutes"
    tags: Optional[List[str]] = None


class SurveySettings(FrozenCamelModel):
    allow_skip: bool = True
    allow_resume: bool = True
    shuffle_questions: bool = False
    max_attempts: Optional[int] = Field(default=None, ge=1)


class SurveyDefinition(FrozenCamelModel):
    id: str = Field(..., min_length=1)
    version: str = "1.0"
    metadata: SurveyMetadata
    questions: List[QuestionDefinition] = Field(..., min_length=1)
    settings: SurveySettings = Field(default_factory=SurveySettings)

    @model_validator(mode="after")
    def check_question_references(self):
        ids = [q.id for q in self.questions]
        duplicates = sorted({qid for qid in ids if ids.count(qid) > 1})
        if duplicates:
            raise ValueError(f"Duplicate question ids: {', '.join(duplicates)}")

        known = set(ids)
        for question in self.questions:
            for dependency in question.dependencies():
                if dependency == question.id:
                    raise ValueError(f"Question {question.id} depends on itself")
                if dependency not in known:
                    raise ValueError(
                        f"Question {question.id} depends on unknown question {dependency}"
                    )
        return self

    def get_question(self, question_id: str) -> Optional[QuestionDefinition]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


# --- Schemas für Teilnehmer-Sessions ---


class SurveyResponse(CamelModel):
    question_id: str
    value: Any = None
    answered_at: datetime
    attempt_count: int = Field(default=1, ge=1)


class SessionProgress(CamelModel):
    total_questions: int = Field(..., ge=0)
    answered_questions: int = Field(..., ge=0)
    required_answered: int = Field(default=0, ge=0)
    required_remaining: int = Field(..., ge=0)
    percent_complete: int = Field(..., ge=0, le=100)
    estimated_time_remaining: Optional[str] = None


class SessionStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class ParticipantSession(CamelModel):
    session_id: str
    survey_id: str
    survey_version: str
    participant_id: str
    tenant_id: str
    status: SessionStatus = SessionStatus.IN_PROGRESS
    started_at: datetime
    last_activity_at: datetime
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    responses: Dict[str, SurveyResponse] = Field(default_factory=dict)
    progress: SessionProgress
    # Optimistischer Versionszähler, wird bei jedem Schreiben erhöht
    version: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_completion_timestamp(self):
        completed = self.status == SessionStatus.COMPLETED
        if completed and self.completed_at is None:
            raise ValueError("completedAt is required for completed sessions")
        if not completed and self.completed_at is not None:
            raise ValueError("completedAt is only allowed for completed sessions")
        return self


class EnrichedQuestion(QuestionDefinition):
    currently_eligible: bool
    eligibility_reason: Optional[str] = None
    already_answered: bool = False


# --- Ergebnisse der Engine ---


class ValidationErrorDetail(CamelModel):
    field: str
    message: str
    constraint: str
    expected: Optional[Any] = None
    actual: Optional[Any] = None


class ValidationResult(CamelModel):
    valid: bool
    errors: List[ValidationErrorDetail] = Field(default_factory=list)


class EligibilityChange(CamelModel):
    question_id: str
    now_eligible: bool
    reason: Optional[str] = None


class CompletionBlocker(CamelModel):
    type: Literal["required-question", "validation-error", "conditional-incomplete"]
    message: str
    question_id: Optional[str] = None


class SurveySummary(CamelModel):
    id: str
    title: str
    description: str
    estimated_duration: Optional[str] = None
    question_count: int


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


class DateRange(CamelModel):
    start: datetime
    end: datetime


class ExportFilters(CamelModel):
    status: Optional[SessionStatus] = None
    date_range: Optional[DateRange] = None
    participant_ids: Optional[List[str]] = None


class StartSessionResult(CamelModel):
    session: ParticipantSession
    survey: SurveyDefinition
    all_questions: List[EnrichedQuestion]
    next_suggested_questions: List[EnrichedQuestion]


class SubmitResponseResult(CamelModel):
    success: bool
    validation: ValidationResult
    progress: Optional[SessionProgress] = None
    updated_eligibility: Optional[List[EligibilityChange]] = None
    next_suggested_questions: Optional[List[EnrichedQuestion]] = None


class ProgressReport(CamelModel):
    session: ParticipantSession
    unanswered_required: List[EnrichedQuestion]
    unanswered_optional: List[EnrichedQuestion]
    can_complete: bool
    completion_blockers: List[CompletionBlocker] = Field(default_factory=list)


class CompletionSummary(CamelModel):
    total_questions: int
    answered_questions: int
    duration: str


class CompleteSessionResult(CamelModel):
    success: bool
    session: ParticipantSession
    summary: CompletionSummary


class AnsweredQuestion(CamelModel):
    id: str
    text: str
    answer: Any = None


class ResumeSessionResult(CamelModel):
    session: ParticipantSession
    survey: SurveyDefinition
    last_activity_at: datetime  # Zeitpunkt vor der Wiederaufnahme
    answered_questions: List[AnsweredQuestion]
    next_suggested_questions: List[EnrichedQuestion]
    elapsed_time_since_last_activity: str


class ExportResult(CamelModel):
    format: ExportFormat
    data: str
    record_count: int
    generated_at: datetime


# --- Schemas für die HTTP-Schnittstelle ---


class StartSessionRequest(CamelModel):
    survey_id: str = Field(..., min_length=1)
    participant_id: str = Field(..., min_length=1)
    metadata: Optional[Dict[str, Any]] = None


class SubmitResponseRequest(CamelModel):
    question_id: str = Field(..., min_length=1)
    value: Any = None


class ExportRequest(CamelModel):
    format: ExportFormat = ExportFormat.CSV
    filters: Optional[ExportFilters] = None


class SurveyOverview(CamelModel):
    id: str
    title: str
    description: str
    total_questions: int
    estimated_duration: Optional[str] = None


class StartSessionResponse(CamelModel):
    session_id: str
    survey: SurveyOverview
    all_questions: List[EnrichedQuestion]
    next_suggested_questions: List[EnrichedQuestion]
    guidance_for_llm: str = Field(alias="guidanceForLLM")


class QuestionResponse(CamelModel):
    question: EnrichedQuestion
    guidance_for_llm: str = Field(alias="guidanceForLLM")


class SubmitResponseResponse(SubmitResponseResult):
    guidance_for_llm: str = Field(alias="guidanceForLLM")


class ProgressResponse(ProgressReport):
    guidance_for_llm: str = Field(alias="guidanceForLLM")


class CompleteSessionResponse(CompleteSessionResult):
    guidance_for_llm: str = Field(alias="guidanceForLLM")


class ResumeSessionResponse(ResumeSessionResult):
    guidance_for_llm: str = Field(alias="guidanceForLLM")


class HealthResponse(BaseModel):
    status: str
    storage: str


class AdminLoginRequest(BaseModel):
    """Schema für die Admin-Login-Anfrage."""

    username: str
    password: str


class Token(BaseModel):
    """Schema für das Access Token."""

    access_token: str
    token_type: str  # Üblicherweise "bearer"
