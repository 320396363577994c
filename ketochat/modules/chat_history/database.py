"""Database engine factory for thread persistence.

Supports DuckDB (default, local file) and any other SQLAlchemy URL.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ketochat.domain.errors import PersistenceError

from .models import Base

logger = logging.getLogger(__name__)

DEFAULT_DB_URL = "duckdb:///data/ketochat.db"

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _resolve_db_url(db_url: str) -> str:
    """Resolve the database URL, creating directories for file databases if needed."""
    for scheme in ("duckdb:///", "sqlite:///"):
        if not db_url.startswith(scheme):
            continue
        db_path = db_url[len(scheme):]
        if not db_path or db_path == ":memory:":
            return db_url
        if not os.path.isabs(db_path):
            # Relative paths are relative to the project root
            project_root = Path(__file__).resolve().parents[3]
            full_path = project_root / db_path
        else:
            full_path = Path(db_path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        db_url = f"{scheme}{full_path}"
        logger.info("Database path resolved to: %s", full_path)
    return db_url


def get_engine(db_url: Optional[str] = None) -> Engine:
    """Get or create the SQLAlchemy engine.

    Args:
        db_url: Database URL. If None, uses CHAT_HISTORY_DB_URL env var
                or defaults to DuckDB.
    """
    global _engine
    if _engine is not None:
        return _engine

    if db_url is None:
        db_url = os.environ.get("CHAT_HISTORY_DB_URL", DEFAULT_DB_URL)

    db_url = _resolve_db_url(db_url)

    if db_url.startswith("postgresql"):
        _engine = create_engine(
            db_url,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            echo=False,
        )
    elif db_url.startswith("sqlite"):
        _engine = create_engine(db_url, connect_args={"check_same_thread": False}, echo=False)
    else:
        _engine = create_engine(db_url, echo=False)

    logger.info("Chat history database engine created: %s", db_url.split("@")[-1] if "@" in db_url else db_url)
    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """Get or create the session factory."""
    global _session_factory
    if _session_factory is not None:
        return _session_factory

    if engine is None:
        engine = get_engine()

    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    return _session_factory


def init_database(db_url: Optional[str] = None) -> Engine:
    """Initialize the database, creating tables if they don't exist.

    The store cannot work without its tables, so failure here is raised as
    PersistenceError and treated as fatal by the process bootstrap.
    """
    engine = get_engine(db_url)
    try:
        Base.metadata.create_all(engine)
    except SQLAlchemyError as exc:
        logger.critical("Failed to create chat history tables: %s", exc, exc_info=True)
        raise PersistenceError(f"Could not initialize chat history database: {exc}") from exc
    logger.info("Chat history database tables created/verified")
    return engine


def reset_engine():
    """Reset the global engine (for testing)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
