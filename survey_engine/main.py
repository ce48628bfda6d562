import logging
import os
from contextlib import asynccontextmanager
from typing import Mapping, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.deps import get_survey_service
from .api.endpoints import admin, sessions, surveys
from .core.config import STORAGE_DATABASE, Settings
from .database import build_engine
from .definitions import load_survey_definitions
from .engine.service import SurveyService
from .errors import SurveyError
from .providers.base import SurveyProvider
from .providers.database import DatabaseSurveyProvider
from .providers.filesystem import FilesystemSurveyProvider
from .schemas import HealthResponse, SurveyDefinition

logger = logging.getLogger(__name__)


def build_provider(settings: Settings, registry: Mapping[str, SurveyDefinition]) -> SurveyProvider:
    if settings.storage == STORAGE_DATABASE:
        engine = build_engine(settings.database_url, echo=settings.database_echo)
        return DatabaseSurveyProvider(
            registry, engine, create_tables=settings.database_create_tables
        )
    return FilesystemSurveyProvider(registry, settings.definitions_path, settings.responses_path)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    # --- Lifecycle Events ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Anwendung startet (Storage: %s)...", settings.storage)
        registry = load_survey_definitions(settings.definitions_path)
        provider = build_provider(settings, registry)
        service = SurveyService(
            provider,
            suggestion_min=settings.suggestion_min,
            suggestion_max=settings.suggestion_max,
        )
        await service.initialize()
        app.state.survey_service = service
        yield
        logger.info("Anwendung fährt herunter...")
        if isinstance(provider, DatabaseSurveyProvider):
            await provider.dispose()

    app = FastAPI(title="Survey Session Engine", lifespan=lifespan)
    app.state.settings = settings

    # --- CORS Middleware ---
    logger.info("CORS: Erlaubte Origins: %s", settings.allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SurveyError)
    async def survey_error_handler(request: Request, exc: SurveyError):
        if exc.status_code >= 500:
            logger.error("%s bei %s: %s %s", exc.code, request.url.path, exc.message, exc.context)
        else:
            logger.info("%s bei %s: %s", exc.code, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # --- API Endpunkte ---
    @app.get("/")
    async def read_root():
        return {"message": "Willkommen zur Survey Session Engine!"}

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        service = get_survey_service(request)
        healthy = await service.health_check()
        payload = HealthResponse(status="ok" if healthy else "unavailable", storage=settings.storage)
        if healthy:
            return payload
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=payload.model_dump()
        )

    app.include_router(surveys.router, prefix="/api/surveys", tags=["surveys"])
    app.include_router(sessions.router, prefix="/api/sessions", tags=["sessions"])
    app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
    return app


_settings = Settings.from_env()
logging.basicConfig(
    level=_settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = create_app(_settings)


# --- Starten der Anwendung ---

if __name__ == "__main__":
    import uvicorn

    # Lese Host und Port aus Umgebungsvariablen, mit Fallbacks
    APP_HOST = os.getenv("APP_HOST", "127.0.0.1")
    APP_PORT = int(os.getenv("APP_PORT", "8000"))
    RELOAD_APP = os.getenv("RELOAD_APP", "True").lower() == "true"

    uvicorn.run("survey_engine.main:app", host=APP_HOST, port=APP_PORT, reload=RELOAD_APP)
