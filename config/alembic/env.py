"""Alembic environment for the loss signal store.

The database URL comes from ``ALEMBIC_DATABASE_URL`` when set, otherwise
from the application settings (``LOSS_DEDUP_DATABASE_URL_SYNC``).
"""

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import create_engine, pool

# src/ layout: make loss_dedup importable from a plain checkout
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from loss_dedup.config.settings import get_settings  # noqa: E402
from loss_dedup.models import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def database_url() -> str:
    return os.environ.get("ALEMBIC_DATABASE_URL") or get_settings().database_url_sync


def run_migrations_offline() -> None:
    """Render the migration SQL to stdout."""
    context.configure(
        url=database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(database_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
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
