"""Database session management.

The SQLite file location comes from GROWTHLAB_DB_PATH, falling back to
data/growthlab.db. Engines and session factories are cached per
resolved path.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from growthlab.db.schema import Base

logger = logging.getLogger(__name__)

DB_PATH_ENV = "GROWTHLAB_DB_PATH"
DEFAULT_DB_PATH = Path("data/growthlab.db")

_engine_cache: dict[str, Engine] = {}
_session_factory_cache: dict[str, sessionmaker] = {}


def resolve_db_path(db_path: Path | None = None) -> Path:
    """Pick the database file: explicit argument, then env, then default."""
    if db_path is not None:
        return Path(db_path)
    env_path = os.environ.get(DB_PATH_ENV)
    return Path(env_path) if env_path else DEFAULT_DB_PATH


def get_engine(db_path: Path | None = None) -> Engine:
    """Get the cached SQLAlchemy engine for a database file.

    Uses StaticPool and check_same_thread=False so FastAPI worker
    threads can share the SQLite connection.

    Args:
        db_path: Path to SQLite database file.

    Returns:
        SQLAlchemy engine instance (cached).
    """
    path = resolve_db_path(db_path)
    cache_key = str(path.resolve())

    engine = _engine_cache.get(cache_key)
    if engine is None:
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Opening database at {path}")
        engine = create_engine(
            f"sqlite:///{path}",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        _engine_cache[cache_key] = engine
    return engine


def get_session(db_path: Path | None = None) -> Session:
    """Get a database session. Caller closes it."""
    cache_key = str(resolve_db_path(db_path).resolve())
    factory = _session_factory_cache.get(cache_key)
    if factory is None:
        factory = sessionmaker(bind=get_engine(db_path))
        _session_factory_cache[cache_key] = factory
    return factory()


@contextmanager
def get_db_session(db_path: Path | None = None) -> Generator[Session, None, None]:
    """Session scope: commit on success, roll back on error, always close.

    Example:
        with get_db_session() as session:
            repo.create_test(session, entity)
    """
    session = get_session(db_path)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(db_path: Path | None = None) -> None:
    """Create tables if they do not exist."""
    Base.metadata.create_all(get_engine(db_path))
