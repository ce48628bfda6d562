import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..errors import InternalError, InvalidRequestError, NotFoundError
from ..providers.base import SurveyProvider
from ..schemas import (
    AnsweredQuestion,
    CompleteSessionResult,
    CompletionBlocker,
    CompletionSummary,
    EligibilityChange,
    EnrichedQuestion,
    ExportFilters,
    ExportFormat,
    ExportResult,
    ParticipantSession,
    ProgressReport,
    ResumeSessionResult,
    SessionStatus,
    StartSessionResult,
    SubmitResponseResult,
    SurveyDefinition,
    SurveyResponse,
    SurveySummary,
)
from .eligibility import enrich_questions, evaluate_question
from .progress import calculate_progress, initial_progress, round_half_up
from .suggestions import DEFAULT_MAX_SUGGESTIONS, DEFAULT_MIN_SUGGESTIONS, suggest_questions
from .validation import validate_response

Clock = Callable[[], datetime]
IdFactory = Callable[[], str]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _random_id() -> str:
    return uuid.uuid4().hex


def format_elapsed(delta_seconds: float) -> str:
    """Coarse elapsed text: minutes below one hour, whole hours after."""
    minutes = round_half_up(max(0.0, delta_seconds) / 60)
    if minutes < 60:
        return f"{minutes} minutes"
    return f"{minutes // 60} hours"


class SurveyService:
    """Runs survey sessions against a storage provider.

    Each mutating operation reads the session once, works on a copy and
    writes it back once. The provider rejects stale writes, so two parallel
    submissions for the same session cannot silently overwrite each other.
    """

    def __init__(
        self,
        provider: SurveyProvider,
        *,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Clock] = None,
        id_factory: Optional[IdFactory] = None,
        suggestion_min: int = DEFAULT_MIN_SUGGESTIONS,
        suggestion_max: int = DEFAULT_MAX_SUGGESTIONS,
    ):
        if suggestion_min > suggestion_max:
            raise ValueError("suggestion_min must not exceed suggestion_max")
        self.provider = provider
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock or _utc_now
        self.id_factory = id_factory or _random_id
        self.suggestion_min = suggestion_min
        self.suggestion_max = suggestion_max

    async def initialize(self) -> None:
        await self.provider.initialize()

    async def health_check(self) -> bool:
        return await self.provider.health_check()

    # --- Umfragen ---

    async def list_available_surveys(self, tenant_id: str) -> List[SurveySummary]:
        self._require_tenant(tenant_id)
        surveys = await self.provider.get_all_surveys(tenant_id)
        return [
            SurveySummary(
                id=survey.id,
                title=survey.metadata.title,
                description=survey.metadata.description,
                estimated_duration=survey.metadata.estimated_duration,
                question_count=len(survey.questions),
            )
            for survey in surveys
        ]

    # --- Session-Lebenszyklus ---

    async def start_session(
        self,
        survey_id: str,
        participant_id: str,
        tenant_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StartSessionResult:
        self._require_tenant(tenant_id)
        if not participant_id or not participant_id.strip():
            raise InvalidRequestError("Participant ID is required", {"surveyId": survey_id})

        survey = await self._get_survey_or_raise(survey_id, tenant_id)
        now = self.clock()
        session = ParticipantSession(
            session_id=f"sess_{self.id_factory()}",
            survey_id=survey.id,
            survey_version=survey.version,
            participant_id=participant_id,
            tenant_id=tenant_id,
            status=SessionStatus.IN_PROGRESS,
            started_at=now,
            last_activity_at=now,
            metadata=dict(metadata or {}),
            responses={},
            progress=initial_progress(survey),
        )
        created = await self.provider.create_session(session)

        all_questions = enrich_questions(survey.questions, created)
        self.logger.info(
            "Session %s gestartet (Survey %s, Teilnehmer %s, %d Fragen)",
            created.session_id,
            survey.id,
            participant_id,
            len(survey.questions),
        )
        return StartSessionResult(
            session=created,
            survey=survey,
            all_questions=all_questions,
            next_suggested_questions=self._suggest(all_questions),
        )

    async def get_question(self, session_id: str, question_id: str, tenant_id: str) -> EnrichedQuestion:
        self._require_tenant(tenant_id)
        session = await self._get_session_or_raise(session_id, tenant_id)
        survey = await self._get_survey_or_raise(session.survey_id, tenant_id)
        question = survey.get_question(question_id)
        if question is None:
            raise NotFoundError(
                f"Question not found: {question_id}",
                {"questionId": question_id, "surveyId": survey.id},
            )

        enriched = enrich_questions([question], session)
        if not enriched:
            raise InternalError("Failed to enrich question", {"questionId": question_id})
        return enriched[0]

    async def submit_response(
        self, session_id: str, question_id: str, value: Any, tenant_id: str
    ) -> SubmitResponseResult:
        self._require_tenant(tenant_id)
        stored = await self._get_session_or_raise(session_id, tenant_id)
        survey = await self._get_survey_or_raise(stored.survey_id, tenant_id)

        if stored.status == SessionStatus.COMPLETED:
            raise InvalidRequestError(
                "Cannot submit response to completed session", {"sessionId": session_id}
            )

        question = survey.get_question(question_id)
        if question is None:
            raise NotFoundError(
                f"Question not found: {question_id}",
                {"questionId": question_id, "surveyId": survey.id},
            )

        # Eligibility wird beim Absenden neu geprüft, nicht nur beim letzten Lesen
        decision = evaluate_question(question, stored.responses)
        if not decision.eligible:
            raise InvalidRequestError(
                f"Question not currently eligible: {decision.reason}",
                {"questionId": question_id, "sessionId": session_id, "reason": decision.reason},
            )

        now = self.clock()
        validation = validate_response(question, value, today=now.date())
        if not validation.valid:
            self.logger.info(
                "Antwort auf %s in Session %s ungültig (%d Fehler)",
                question_id,
                session_id,
                len(validation.errors),
            )
            return SubmitResponseResult(success=False, validation=validation)

        eligible_before = {
            q.id: evaluate_question(q, stored.responses).eligible for q in survey.questions
        }

        session = stored.model_copy(deep=True)
        previous = session.responses.get(question_id)
        session.responses[question_id] = SurveyResponse(
            question_id=question_id,
            value=value,
            answered_at=now,
            attempt_count=(previous.attempt_count if previous else 0) + 1,
        )
        session.last_activity_at = now
        session.progress = calculate_progress(survey, session)

        updated = await self.provider.update_session(session)

        all_questions = enrich_questions(survey.questions, updated)
        changes = [
            EligibilityChange(
                question_id=q.id,
                now_eligible=q.currently_eligible,
                reason=q.eligibility_reason,
            )
            for q in all_questions
            if eligible_before[q.id] != q.currently_eligible
        ]

        self.logger.info(
            "Antwort auf %s in Session %s gespeichert (%d%%, %d Eligibility-Änderungen)",
            question_id,
            session_id,
            updated.progress.percent_complete,
            len(changes),
        )
        return SubmitResponseResult(
            success=True,
            validation=validation,
            progress=updated.progress,
            updated_eligibility=changes,
            next_suggested_questions=self._suggest(all_questions),
        )

    async def get_progress(self, session_id: str, tenant_id: str) -> ProgressReport:
        self._require_tenant(tenant_id)
        session = await self._get_session_or_raise(session_id, tenant_id)
        survey = await self._get_survey_or_raise(session.survey_id, tenant_id)
        return self._progress_report(survey, session)

    async def complete_session(self, session_id: str, tenant_id: str) -> CompleteSessionResult:
        self._require_tenant(tenant_id)
        stored = await self._get_session_or_raise(session_id, tenant_id)

        if stored.status == SessionStatus.COMPLETED:
            raise InvalidRequestError("Session already completed", {"sessionId": session_id})

        survey = await self._get_survey_or_raise(stored.survey_id, tenant_id)
        report = self._progress_report(survey, stored)
        if not report.can_complete:
            raise InvalidRequestError(
                "Cannot complete session: required questions remaining",
                {
                    "sessionId": session_id,
                    "blockers": [b.model_dump(mode="json", by_alias=True) for b in report.completion_blockers],
                },
            )

        now = self.clock()
        session = stored.model_copy(deep=True)
        session.status = SessionStatus.COMPLETED
        session.completed_at = now
        session.last_activity_at = now
        updated = await self.provider.update_session(session)

        duration_minutes = round_half_up((now - stored.started_at).total_seconds() / 60)
        self.logger.info(
            "Session %s abgeschlossen nach %d Minuten", session_id, duration_minutes
        )
        return CompleteSessionResult(
            success=True,
            session=updated,
            summary=CompletionSummary(
                total_questions=updated.progress.total_questions,
                answered_questions=updated.progress.answered_questions,
                duration=f"{duration_minutes} minutes",
            ),
        )

    async def resume_session(self, session_id: str, tenant_id: str) -> ResumeSessionResult:
        self._require_tenant(tenant_id)
        stored = await self._get_session_or_raise(session_id, tenant_id)
        survey = await self._get_survey_or_raise(stored.survey_id, tenant_id)

        if stored.status == SessionStatus.COMPLETED:
            raise InvalidRequestError("Cannot resume completed session", {"sessionId": session_id})
        if not survey.settings.allow_resume:
            raise InvalidRequestError(
                "Survey does not allow resuming sessions",
                {"sessionId": session_id, "surveyId": survey.id},
            )

        now = self.clock()
        elapsed = format_elapsed((now - stored.last_activity_at).total_seconds())

        answered = []
        for question_id, response in stored.responses.items():
            question = survey.get_question(question_id)
            answered.append(
                AnsweredQuestion(
                    id=question_id,
                    text=question.text if question else "Unknown question",
                    answer=response.value,
                )
            )

        session = stored.model_copy(deep=True)
        session.last_activity_at = now
        updated = await self.provider.update_session(session)

        all_questions = enrich_questions(survey.questions, updated)
        self.logger.info("Session %s fortgesetzt nach %s", session_id, elapsed)
        return ResumeSessionResult(
            session=updated,
            survey=survey,
            last_activity_at=stored.last_activity_at,
            answered_questions=answered,
            next_suggested_questions=self._suggest(all_questions),
            elapsed_time_since_last_activity=elapsed,
        )

    # --- Export ---

    async def export_results(
        self,
        survey_id: str,
        tenant_id: str,
        format: ExportFormat,
        filters: Optional[ExportFilters] = None,
    ) -> ExportResult:
        self._require_tenant(tenant_id)
        data, record_count = await self.provider.export_results(survey_id, tenant_id, format, filters)
        self.logger.info(
            "Export für Survey %s erstellt (%s, %d Datensätze)", survey_id, format.value, record_count
        )
        return ExportResult(
            format=format,
            data=data,
            record_count=record_count,
            generated_at=self.clock(),
        )

    # --- Hilfsfunktionen ---

    def _suggest(self, enriched: List[EnrichedQuestion]) -> List[EnrichedQuestion]:
        return suggest_questions(enriched, self.suggestion_min, self.suggestion_max)

    def _progress_report(self, survey: SurveyDefinition, session: ParticipantSession) -> ProgressReport:
        all_questions = enrich_questions(survey.questions, session)
        open_questions = [q for q in all_questions if q.currently_eligible and not q.already_answered]
        unanswered_required = [q for q in open_questions if q.required]
        unanswered_optional = [q for q in open_questions if not q.required]

        # Nicht erreichbare Pflichtfragen (unerfüllte Bedingung) blockieren nicht
        blockers = [
            CompletionBlocker(
                type="required-question",
                question_id=q.id,
                message=f"Required question {q.id} has not been answered",
            )
            for q in unanswered_required
        ]
        return ProgressReport(
            session=session,
            unanswered_required=unanswered_required,
            unanswered_optional=unanswered_optional,
            can_complete=not blockers,
            completion_blockers=blockers,
        )

    @staticmethod
    def _require_tenant(tenant_id: Optional[str]) -> None:
        if not tenant_id or not tenant_id.strip():
            raise InvalidRequestError("Tenant ID is required for this operation")

    async def _get_session_or_raise(self, session_id: str, tenant_id: str) -> ParticipantSession:
        session = await self.provider.get_session(session_id, tenant_id)
        if session is None:
            raise NotFoundError("Session not found", {"sessionId": session_id, "tenantId": tenant_id})
        return session

    async def _get_survey_or_raise(self, survey_id: str, tenant_id: str) -> SurveyDefinition:
        survey = await self.provider.get_survey_by_id(survey_id, tenant_id)
        if survey is None:
            raise NotFoundError(f"Survey not found: {survey_id}", {"surveyId": survey_id})
        return survey
