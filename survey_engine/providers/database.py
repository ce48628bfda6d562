import logging
from datetime import datetime
from typing import List, Mapping, Optional, Tuple

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from ..database import Base, build_session_factory
from ..errors import InternalError, NotFoundError, SessionConflictError
from ..models import ParticipantSessionRecord, SessionResponseRecord
from ..schemas import (
    ExportFilters,
    ExportFormat,
    ParticipantSession,
    SessionProgress,
    SessionStatus,
    SurveyDefinition,
    SurveyResponse,
)
from .base import SurveyProvider, _as_utc, matches_filters

logger = logging.getLogger(__name__)


def _optional_utc(value: Optional[datetime]) -> Optional[datetime]:
    return _as_utc(value) if value is not None else None


def _record_to_session(record: ParticipantSessionRecord) -> ParticipantSession:
    responses = {
        r.question_id: SurveyResponse(
            question_id=r.question_id,
            value=r.response_value,
            answered_at=_as_utc(r.answered_at),
            attempt_count=r.attempt_count,
        )
        for r in sorted(record.responses, key=lambda r: r.id)
    }
    return ParticipantSession(
        session_id=record.session_id,
        survey_id=record.survey_id,
        survey_version=record.survey_version,
        participant_id=record.participant_id,
        tenant_id=record.tenant_id,
        status=SessionStatus(record.status),
        started_at=_as_utc(record.started_at),
        last_activity_at=_as_utc(record.last_activity_at),
        completed_at=_optional_utc(record.completed_at),
        metadata=record.session_metadata or {},
        responses=responses,
        progress=SessionProgress.model_validate(record.progress),
        version=record.version,
    )


def _session_columns(session: ParticipantSession) -> dict:
    return {
        "survey_id": session.survey_id,
        "survey_version": session.survey_version,
        "participant_id": session.participant_id,
        "status": session.status.value,
        "started_at": session.started_at,
        "last_activity_at": session.last_activity_at,
        "completed_at": session.completed_at,
        "session_metadata": session.model_dump(mode="json")["metadata"],
        "progress": session.progress.model_dump(mode="json", by_alias=True),
    }


def _response_records(session_pk: int, session: ParticipantSession) -> List[SessionResponseRecord]:
    dumped = session.model_dump(mode="json")["responses"]
    return [
        SessionResponseRecord(
            session_pk=session_pk,
            question_id=question_id,
            response_value=dumped[question_id]["value"],
            answered_at=response.answered_at,
            attempt_count=response.attempt_count,
        )
        for question_id, response in session.responses.items()
    ]


class DatabaseSurveyProvider(SurveyProvider):
    """Sessions in relational tables via async SQLAlchemy.

    Definitions still come from the in-memory registry; only participant
    sessions and their responses are persisted.
    """

    def __init__(
        self,
        surveys: Mapping[str, SurveyDefinition],
        engine: AsyncEngine,
        create_tables: bool = True,
    ):
        super().__init__(surveys)
        self.engine = engine
        self.create_tables = create_tables
        self._session_factory = build_session_factory(engine)

    async def initialize(self) -> None:
        if self._initialized:
            return
        if self.create_tables:
            # Für Produktion übernimmt Alembic das Schema (DATABASE_CREATE_TABLES=false)
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Datenbanktabellen sichergestellt")
        self._initialized = True

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def _load(self, db, session_id: str, tenant_id: str) -> Optional[ParticipantSessionRecord]:
        result = await db.execute(
            select(ParticipantSessionRecord).where(
                ParticipantSessionRecord.tenant_id == tenant_id,
                ParticipantSessionRecord.session_id == session_id,
            )
        )
        return result.scalars().first()

    async def create_session(self, session: ParticipantSession) -> ParticipantSession:
        self._ensure_initialized()
        validated = ParticipantSession.model_validate(session.model_dump())
        context = {"sessionId": validated.session_id, "tenantId": validated.tenant_id}

        async with self._session_factory() as db:
            try:
                record = ParticipantSessionRecord(
                    session_id=validated.session_id,
                    tenant_id=validated.tenant_id,
                    version=validated.version,
                    **_session_columns(validated),
                )
                db.add(record)
                await db.flush()
                db.add_all(_response_records(record.id, validated))
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise SessionConflictError("Session already exists", context)
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error("Session %s konnte nicht gespeichert werden: %s", validated.session_id, e)
                raise InternalError("Failed to store session", context) from e

        logger.debug("Session %s angelegt", validated.session_id)
        return validated

    async def get_session(self, session_id: str, tenant_id: str) -> Optional[ParticipantSession]:
        self._ensure_initialized()
        async with self._session_factory() as db:
            record = await self._load(db, session_id, tenant_id)
            if record is None:
                return None
            return _record_to_session(record)

    async def update_session(self, session: ParticipantSession) -> ParticipantSession:
        self._ensure_initialized()
        validated = ParticipantSession.model_validate(session.model_dump())
        context = {"sessionId": validated.session_id, "tenantId": validated.tenant_id}
        new_version = validated.version + 1

        async with self._session_factory() as db:
            try:
                # Bedingtes UPDATE: greift nur, wenn niemand zwischendurch geschrieben hat
                result = await db.execute(
                    update(ParticipantSessionRecord)
                    .where(
                        ParticipantSessionRecord.tenant_id == validated.tenant_id,
                        ParticipantSessionRecord.session_id == validated.session_id,
                        ParticipantSessionRecord.version == validated.version,
                    )
                    .values(
                        {
                            getattr(ParticipantSessionRecord, key): value
                            for key, value in {"version": new_version, **_session_columns(validated)}.items()
                        }
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    await db.rollback()
                    stored = await self._load(db, validated.session_id, validated.tenant_id)
                    if stored is None:
                        raise NotFoundError("Session not found", context)
                    raise SessionConflictError(
                        "Session was modified concurrently, reload and retry",
                        {**context, "expectedVersion": validated.version, "storedVersion": stored.version},
                    )

                pk_result = await db.execute(
                    select(ParticipantSessionRecord.id).where(
                        ParticipantSessionRecord.tenant_id == validated.tenant_id,
                        ParticipantSessionRecord.session_id == validated.session_id,
                    )
                )
                session_pk = pk_result.scalar_one()
                await db.execute(
                    delete(SessionResponseRecord).where(SessionResponseRecord.session_pk == session_pk)
                )
                db.add_all(_response_records(session_pk, validated))
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error("Session %s konnte nicht aktualisiert werden: %s", validated.session_id, e)
                raise InternalError("Failed to update session", context) from e

        logger.debug("Session %s aktualisiert (Version %d)", validated.session_id, new_version)
        return validated.model_copy(update={"version": new_version})

    async def get_sessions_by_survey(
        self,
        survey_id: str,
        tenant_id: str,
        filters: Optional[ExportFilters] = None,
    ) -> List[ParticipantSession]:
        self._ensure_initialized()
        query = select(ParticipantSessionRecord).where(
            ParticipantSessionRecord.tenant_id == tenant_id,
            ParticipantSessionRecord.survey_id == survey_id,
        )
        if filters is not None and filters.status is not None:
            query = query.where(ParticipantSessionRecord.status == filters.status.value)
        if filters is not None and filters.participant_ids is not None:
            query = query.where(ParticipantSessionRecord.participant_id.in_(filters.participant_ids))
        query = query.order_by(ParticipantSessionRecord.started_at, ParticipantSessionRecord.id)

        async with self._session_factory() as db:
            result = await db.execute(query)
            sessions = [_record_to_session(r) for r in result.scalars().all()]

        # Zeitraum in Python, damit completedAt/startedAt-Fallback überall gleich greift
        return [s for s in sessions if matches_filters(s, filters)]

    async def export_results(
        self,
        survey_id: str,
        tenant_id: str,
        format: ExportFormat,
        filters: Optional[ExportFilters] = None,
    ) -> Tuple[str, int]:
        sessions = await self.get_sessions_by_survey(survey_id, tenant_id, filters)
        return await self.render_export(survey_id, tenant_id, format, sessions)

    async def health_check(self) -> bool:
        if not self._initialized:
            return False
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("Datenbank nicht erreichbar: %s", e)
            return False
        return True
