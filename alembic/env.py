"""
Alembic environment for the dosing schema

Migrations run on a sync driver; the service URL is mapped from its
async driver (asyncpg -> psycopg2, aiosqlite -> pysqlite).
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

# Keep the async engine out of migration runs
os.environ.setdefault("ALEMBIC_MODE", "1")

from pooldose.config import settings  # noqa: E402
from pooldose.infrastructure.db import models  # noqa: E402,F401
from pooldose.infrastructure.db.database import Base  # noqa: E402

_SYNC_DRIVERS = {
    "postgres://": "postgresql://",
    "+asyncpg": "+psycopg2",
    "+aiosqlite": "",
}

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def sync_database_url(url: str) -> str:
    for async_part, sync_part in _SYNC_DRIVERS.items():
        url = url.replace(async_part, sync_part, 1)
    return url


def include_object(obj, name, type_, reflected, compare_to):
    # Reflected tables the dosing models do not declare are left alone
    if type_ == "table" and reflected and compare_to is None:
        return name in target_metadata.tables
    return True


def _context_options(is_sqlite: bool) -> dict:
    return {
        "target_metadata": target_metadata,
        "include_object": include_object,
        "compare_type": True,
        # SQLite has no ALTER COLUMN; rebuild tables instead
        "render_as_batch": is_sqlite,
    }


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_context_options(url.startswith("sqlite")),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            **_context_options(connection.dialect.name == "sqlite"),
        )
        with context.begin_transaction():
            context.run_migrations()


config.set_main_option("sqlalchemy.url", sync_database_url(settings.DATABASE_URL))

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
