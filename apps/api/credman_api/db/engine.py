"""Database engine construction.

All engines (API requests, health checks, Alembic) come from build_engine():

- CREDMAN_DB_POOL=nullpool (default): no client-side pooling; connections are
  opened per checkout and pooling is left to PgBouncer or the platform pooler
- CREDMAN_DB_POOL=queuepool: SQLAlchemy QueuePool sized by
  CREDMAN_DB_POOL_SIZE / CREDMAN_DB_MAX_OVERFLOW
- sqlite URLs get check_same_thread=False, since FastAPI runs sync work in a
  threadpool
"""

import logging
import os
import re
from typing import Any

from sqlalchemy import Engine, NullPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from credman_api.config.env import get_database_url

logger = logging.getLogger(__name__)

POOL_MODES = ("nullpool", "queuepool")


def _mask_password(url: str) -> str:
    """Replace the password part of a database URL with ***."""
    return re.sub(r"://([^:/@]*):([^@]+)@", r"://\1:***@", url)


def _pool_options(pool_mode: str) -> dict[str, Any]:
    if pool_mode == "nullpool":
        return {"poolclass": NullPool}
    if pool_mode == "queuepool":
        return {
            "pool_size": int(os.getenv("CREDMAN_DB_POOL_SIZE", "5")),
            "max_overflow": int(os.getenv("CREDMAN_DB_MAX_OVERFLOW", "10")),
        }
    raise ValueError(
        f"Invalid CREDMAN_DB_POOL value: {pool_mode}. Must be one of: {', '.join(POOL_MODES)}."
    )


def build_engine(database_url: str | None = None) -> Engine:
    """Build the SQLAlchemy engine.

    Args:
        database_url: Explicit URL; resolved from DATABASE_URL when omitted

    Raises:
        ValueError: Unknown CREDMAN_DB_POOL value
        RuntimeError: DATABASE_URL missing in production
    """
    url = database_url or get_database_url()
    pool_mode = (os.getenv("CREDMAN_DB_POOL") or "nullpool").lower()

    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(
        url,
        pool_pre_ping=True,
        connect_args=connect_args,
        **_pool_options(pool_mode),
    )

    logger.debug(
        "Database engine created: pool=%s, url=%s",
        engine.pool.__class__.__name__,
        _mask_password(url),
    )
    return engine


def build_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
