from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Mapping, Optional, Tuple

from ..errors import InternalError, NotFoundError
from ..schemas import (
    ExportFilters,
    ExportFormat,
    ParticipantSession,
    SurveyDefinition,
)
from .export import BASE_HEADERS, sessions_to_csv, sessions_to_json


class SurveyProvider(ABC):
    """Storage port of the survey engine.

    Survey definitions are read-only and come from a registry built once at
    startup; sessions are read and written per ``(tenant_id, session_id)``.
    ``update_session`` rejects stale writes: the stored version must equal the
    version of the session passed in, and the stored copy gets ``version + 1``.
    """

    def __init__(self, surveys: Mapping[str, SurveyDefinition]):
        self._surveys = surveys
        self._initialized = False

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend (directories, tables, connections)."""

    async def get_all_surveys(self, tenant_id: Optional[str] = None) -> List[SurveyDefinition]:
        self._ensure_initialized()
        return list(self._surveys.values())

    async def get_survey_by_id(
        self, survey_id: str, tenant_id: Optional[str] = None
    ) -> Optional[SurveyDefinition]:
        self._ensure_initialized()
        return self._surveys.get(survey_id)

    @abstractmethod
    async def create_session(self, session: ParticipantSession) -> ParticipantSession:
        ...

    @abstractmethod
    async def get_session(self, session_id: str, tenant_id: str) -> Optional[ParticipantSession]:
        ...

    @abstractmethod
    async def update_session(self, session: ParticipantSession) -> ParticipantSession:
        ...

    @abstractmethod
    async def get_sessions_by_survey(
        self,
        survey_id: str,
        tenant_id: str,
        filters: Optional[ExportFilters] = None,
    ) -> List[ParticipantSession]:
        ...

    @abstractmethod
    async def export_results(
        self,
        survey_id: str,
        tenant_id: str,
        format: ExportFormat,
        filters: Optional[ExportFilters] = None,
    ) -> Tuple[str, int]:
        """Return the rendered export and the number of exported sessions."""

    @abstractmethod
    async def health_check(self) -> bool:
        ...

    async def render_export(
        self,
        survey_id: str,
        tenant_id: str,
        format: ExportFormat,
        sessions: List[ParticipantSession],
    ) -> Tuple[str, int]:
        if format == ExportFormat.JSON:
            return sessions_to_json(sessions), len(sessions)
        if not sessions:
            return ",".join(BASE_HEADERS), 0

        survey = await self.get_survey_by_id(survey_id, tenant_id)
        if survey is None:
            raise NotFoundError(f"Survey not found: {survey_id}", {"surveyId": survey_id})
        return sessions_to_csv(survey, sessions), len(sessions)

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise InternalError("Survey provider not initialized")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def matches_filters(session: ParticipantSession, filters: Optional[ExportFilters]) -> bool:
    """Shared filter semantics for all providers; unmatched filters just exclude."""
    if filters is None:
        return True

    if filters.status is not None and session.status != filters.status:
        return False

    if filters.date_range is not None:
        moment = _as_utc(session.completed_at or session.started_at)
        start = _as_utc(filters.date_range.start)
        end = _as_utc(filters.date_range.end)
        if moment < start or moment > end:
            return False

    if filters.participant_ids is not None and session.participant_id not in filters.participant_ids:
        return False

    return True
