import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from ...core.config import Settings
from ...engine.service import SurveyService
from ...schemas import (
    AdminLoginRequest,
    ExportFilters,
    ExportFormat,
    ExportRequest,
    ExportResult,
    SessionStatus,
    Token,
)
from ..deps import get_settings, get_survey_service, get_tenant_id, verify_admin_token

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Admin Login Endpunkt ---
@router.post("/login", response_model=Token)
async def login_for_admin_access_token(
    admin_credentials: AdminLoginRequest,
    settings: Settings = Depends(get_settings),
):
    if (
        admin_credentials.username == settings.admin_username
        and admin_credentials.password == settings.admin_password
    ):
        logger.info("Admin '%s' erfolgreich eingeloggt.", admin_credentials.username)
        return {"access_token": settings.admin_token, "token_type": "bearer"}

    logger.warning("Fehlgeschlagener Admin-Login für Benutzer: '%s'", admin_credentials.username)
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Ungültiger Benutzername oder Passwort",
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post(
    "/surveys/{survey_id}/export",
    response_model=ExportResult,
    dependencies=[Depends(verify_admin_token)],
)
async def export_results(
    survey_id: str,
    request: ExportRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: SurveyService = Depends(get_survey_service),
):
    return await service.export_results(survey_id, tenant_id, request.format, request.filters)


@router.get(
    "/surveys/{survey_id}/export/csv",
    response_description="CSV file of survey results",
    dependencies=[Depends(verify_admin_token)],
)
async def export_results_to_csv(
    survey_id: str,
    status_filter: Optional[SessionStatus] = Query(None, alias="status"),
    participant_ids: Optional[List[str]] = Query(None, alias="participantId"),
    tenant_id: str = Depends(get_tenant_id),
    service: SurveyService = Depends(get_survey_service),
):
    filters = None
    if status_filter is not None or participant_ids:
        filters = ExportFilters(status=status_filter, participant_ids=participant_ids or None)

    result = await service.export_results(survey_id, tenant_id, ExportFormat.CSV, filters)

    safe_survey_id = "".join(c if c.isalnum() else "_" for c in survey_id)
    filename = f"survey_{safe_survey_id}_export.csv"
    return StreamingResponse(
        iter([result.data]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
