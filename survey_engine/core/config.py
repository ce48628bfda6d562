import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

PROJECT_ROOT_DIR = Path(__file__).resolve().parents[2]

# Lade Umgebungsvariablen aus der .env Datei im Projekt-Root
dotenv_path = PROJECT_ROOT_DIR / ".env"
if dotenv_path.exists():
    load_dotenv(dotenv_path)
else:
    load_dotenv()

FALLBACK_ORIGINS = [
    "http://127.0.0.1:5173",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://localhost:3000",
]

STORAGE_FILESYSTEM = "filesystem"
STORAGE_DATABASE = "database"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} muss eine ganze Zahl sein, nicht {value!r}")


def default_database_url() -> str:
    # Fallback auf eine lokale SQLite-Datenbank im Projekt-Root
    sqlite_db_path = PROJECT_ROOT_DIR / "survey_engine.db"
    return f"sqlite+aiosqlite:///{sqlite_db_path}"


class Settings(BaseModel):
    """Laufzeit-Konfiguration, aus Umgebungsvariablen bzw. .env gelesen."""

    storage: str = STORAGE_FILESYSTEM
    definitions_path: Path = Path("./surveys")
    responses_path: Path = Path("./responses")
    database_url: str = Field(default_factory=default_database_url)
    database_echo: bool = False
    database_create_tables: bool = True
    admin_username: str = "admin"
    admin_password: str = "secret"
    allowed_origins: List[str] = Field(default_factory=lambda: list(FALLBACK_ORIGINS))
    suggestion_min: int = 3
    suggestion_max: int = 5
    log_level: str = "INFO"

    @model_validator(mode="after")
    def check_values(self):
        if self.storage not in (STORAGE_FILESYSTEM, STORAGE_DATABASE):
            raise ValueError(
                f"Unbekannter Storage-Typ {self.storage!r}, erlaubt: filesystem, database"
            )
        if self.suggestion_min < 0 or self.suggestion_max < 1:
            raise ValueError("SUGGESTION_MIN muss >= 0 und SUGGESTION_MAX >= 1 sein")
        if self.suggestion_min > self.suggestion_max:
            raise ValueError("SUGGESTION_MIN darf nicht größer als SUGGESTION_MAX sein")
        return self

    @property
    def admin_token(self) -> str:
        return f"static-admin-token-for-{self.admin_username}"

    @classmethod
    def from_env(cls) -> "Settings":
        env_origins = os.getenv("BACKEND_ALLOWED_ORIGINS")
        origins = [o.strip() for o in env_origins.split(",") if o.strip()] if env_origins else []

        return cls(
            storage=os.getenv("SURVEY_STORAGE", STORAGE_FILESYSTEM).strip().lower(),
            definitions_path=Path(os.getenv("SURVEY_DEFINITIONS_PATH", "./surveys")),
            responses_path=Path(os.getenv("SURVEY_RESPONSES_PATH", "./responses")),
            database_url=os.getenv("DATABASE_URL") or default_database_url(),
            database_echo=_env_bool("DATABASE_ECHO", False),
            database_create_tables=_env_bool("DATABASE_CREATE_TABLES", True),
            admin_username=os.getenv("ADMIN_USERNAME", "admin"),
            admin_password=os.getenv("ADMIN_PASSWORD", "secret"),
            allowed_origins=origins or list(FALLBACK_ORIGINS),
            suggestion_min=_env_int("SUGGESTION_MIN", 3),
            suggestion_max=_env_int("SUGGESTION_MAX", 5),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
