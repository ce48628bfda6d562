# alembic/env.py
import os
import sys
from logging.config import fileConfig

from sqlalchemy import create_engine

from alembic import context

# Projekt-Root in den Python-Pfad, damit 'survey_engine' gefunden wird.
# Das 'alembic'-Verzeichnis ist eine Ebene unter dem Projekt-Root.
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Lädt beim Import auch die .env im Projekt-Root
from survey_engine.core.config import Settings  # noqa: E402
from survey_engine.database import Base, sync_database_url  # noqa: E402
from survey_engine import models  # noqa: E402,F401  registriert die Tabellen an Base

config = context.config

# Logging aus der alembic.ini
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# Alembic migriert synchron, daher ohne +aiosqlite/+asyncpg
DATABASE_URL = sync_database_url(Settings.from_env().database_url)


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    Configures the context with just a URL; calls to context.execute()
    emit the given string to the script output.
    """
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a synchronous engine."""
    connectable = create_engine(DATABASE_URL)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
