"""Database session management.

The engine is built lazily on first use so importing the application (or
the test suite) never opens a connection.
"""

from typing import Generator, Optional

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from credman_api.db.engine import build_engine, build_sessionmaker

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker[Session]] = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    global _session_factory
    if _session_factory is None:
        _session_factory = build_sessionmaker(get_engine())
    return _session_factory


def get_db() -> Generator[Session, None, None]:
    """
    Get database session.

    Yields:
        Session: SQLAlchemy session
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
