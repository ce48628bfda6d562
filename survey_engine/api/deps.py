import logging
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from ..core.config import Settings
from ..engine.service import SurveyService

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_survey_service(request: Request) -> SurveyService:
    return request.app.state.survey_service


async def get_tenant_id(x_tenant_id: Optional[str] = Header(None)) -> str:
    # Leerer Tenant wird vom Service mit InvalidRequest abgelehnt
    return (x_tenant_id or "").strip()


# --- Dependency-Funktion zur Admin-Token-Verifizierung ---
async def verify_admin_token(request: Request, authorization: Optional[str] = Header(None)):
    """
    Überprüft das Admin-Token im Authorization-Header.
    Erwartet wird das statische Token aus /api/admin/login.
    """
    settings = get_settings(request)
    if authorization is None:
        logger.warning("Admin-Zugriff verweigert: Kein Authorization-Header.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Nicht autorisiert: Token erforderlich.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    # Erwartetes Format: "Bearer <token>"
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.warning("Admin-Zugriff verweigert: Ungültiges Token-Format im Header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Ungültiges Token-Format. Erwartet: 'Bearer <token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if parts[1] != settings.admin_token:
        logger.warning("Admin-Zugriff verweigert: Ungültiges Token empfangen")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Ungültiges oder abgelaufenes Token.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {"username": settings.admin_username, "token_status": "verified"}
