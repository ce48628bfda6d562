import asyncio
import json
import logging
from pathlib import Path
from typing import List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from ..errors import InvalidRequestError, NotFoundError, SessionConflictError
from ..schemas import (
    ExportFilters,
    ExportFormat,
    ParticipantSession,
    SurveyDefinition,
)
from .base import SurveyProvider, matches_filters

logger = logging.getLogger(__name__)


def _is_safe_name(part: str) -> bool:
    return bool(part) and "/" not in part and "\\" not in part and part not in (".", "..")


class FilesystemSurveyProvider(SurveyProvider):
    """Sessions as JSON documents under ``<responses_path>/<tenant_id>/<session_id>.json``."""

    def __init__(
        self,
        surveys: Mapping[str, SurveyDefinition],
        definitions_path: Union[str, Path],
        responses_path: Union[str, Path],
    ):
        super().__init__(surveys)
        self.definitions_path = Path(definitions_path)
        self.responses_path = Path(responses_path)
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        if self._initialized:
            return
        self.responses_path.mkdir(parents=True, exist_ok=True)
        logger.info("Antwort-Verzeichnis sichergestellt: %s", self.responses_path.resolve())
        self._initialized = True

    def _session_path(self, session_id: str, tenant_id: str) -> Path:
        # IDs landen im Dateinamen, Pfadtrenner sind daher nicht erlaubt
        if not _is_safe_name(session_id) or not _is_safe_name(tenant_id):
            raise InvalidRequestError(
                "Invalid session or tenant identifier",
                {"sessionId": session_id, "tenantId": tenant_id},
            )
        return self._tenant_dir(tenant_id) / f"{session_id}.json"

    def _tenant_dir(self, tenant_id: str) -> Path:
        if not _is_safe_name(tenant_id):
            raise InvalidRequestError("Invalid tenant identifier", {"tenantId": tenant_id})
        return self.responses_path / tenant_id

    def _read(self, path: Path) -> Optional[ParticipantSession]:
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return ParticipantSession.model_validate(json.load(f))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            logger.error("Session-Datei %s konnte nicht gelesen werden: %s", path, e)
            return None

    def _write(self, path: Path, session: ParticipantSession) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        document = session.model_dump(mode="json", by_alias=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)

    async def create_session(self, session: ParticipantSession) -> ParticipantSession:
        self._ensure_initialized()
        validated = ParticipantSession.model_validate(session.model_dump())
        path = self._session_path(validated.session_id, validated.tenant_id)
        async with self._write_lock:
            if path.exists():
                raise SessionConflictError(
                    "Session already exists",
                    {"sessionId": validated.session_id, "tenantId": validated.tenant_id},
                )
            await asyncio.to_thread(self._write, path, validated)
        logger.debug("Session %s angelegt", validated.session_id)
        return validated

    async def get_session(self, session_id: str, tenant_id: str) -> Optional[ParticipantSession]:
        self._ensure_initialized()
        return await asyncio.to_thread(self._read, self._session_path(session_id, tenant_id))

    async def update_session(self, session: ParticipantSession) -> ParticipantSession:
        self._ensure_initialized()
        validated = ParticipantSession.model_validate(session.model_dump())
        path = self._session_path(validated.session_id, validated.tenant_id)
        context = {"sessionId": validated.session_id, "tenantId": validated.tenant_id}

        async with self._write_lock:
            stored = await asyncio.to_thread(self._read, path)
            if stored is None:
                raise NotFoundError("Session not found", context)
            if stored.version != validated.version:
                raise SessionConflictError(
                    "Session was modified concurrently, reload and retry",
                    {**context, "expectedVersion": validated.version, "storedVersion": stored.version},
                )
            updated = validated.model_copy(update={"version": validated.version + 1})
            await asyncio.to_thread(self._write, path, updated)

        logger.debug("Session %s aktualisiert (Version %d)", updated.session_id, updated.version)
        return updated

    async def get_sessions_by_survey(
        self,
        survey_id: str,
        tenant_id: str,
        filters: Optional[ExportFilters] = None,
    ) -> List[ParticipantSession]:
        self._ensure_initialized()
        tenant_dir = self._tenant_dir(tenant_id)
        if not tenant_dir.is_dir():
            return []

        sessions = []
        for file_path in sorted(tenant_dir.glob("*.json")):
            session = await asyncio.to_thread(self._read, file_path)
            if session is None:
                logger.warning("Ungültige Session-Datei übersprungen: %s", file_path)
                continue
            if session.survey_id != survey_id:
                continue
            if matches_filters(session, filters):
                sessions.append(session)
        return sessions

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
        return self._initialized and self.definitions_path.is_dir()
