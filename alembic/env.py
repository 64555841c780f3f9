"""Alembic environment for the credential manager schema.

Database URL, first match wins:
  1. DATABASE_URL_MIGRATIONS (a migration role with DDL rights)
  2. the application's DATABASE_URL resolution (get_database_url)
  3. sqlalchemy.url from alembic.ini

Online runs build their engine through build_engine() so pool settings and
URL handling match the API process.
"""

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context

sys.path.insert(0, str(Path(__file__).parent.parent / "apps" / "api"))

from credman_api.config.env import get_database_url  # noqa: E402
from credman_api.db.engine import build_engine  # noqa: E402
from credman_api.db.models import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def resolve_migration_url() -> str:
    url = os.getenv("DATABASE_URL_MIGRATIONS")
    if url:
        return url
    if os.getenv("DATABASE_URL") or not config.get_main_option("sqlalchemy.url"):
        return get_database_url()
    return config.get_main_option("sqlalchemy.url")


database_url = resolve_migration_url()
config.set_main_option("sqlalchemy.url", database_url)


def _configure_kwargs() -> dict:
    # SQLite cannot ALTER most constraints in place
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": database_url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit SQL without connecting."""
    context.configure(
        url=database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = build_engine(database_url)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **_configure_kwargs())
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
