from __future__ import annotations

from typing import Iterator, Optional
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import get_settings
from .models import Base


logger = logging.getLogger(__name__)

# Singletons, created on first use
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Engine:
    global _engine

    if _engine is not None:
        return _engine

    settings = get_settings()
    # Log the target without credentials
    logger.info("[DB] Creating engine for %s", settings.database_url.split("@")[-1])

    _engine = create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_recycle=300,
        future=True,
    )
    return _engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_session_factory() -> sessionmaker:
    global _session_factory

    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())
    return _session_factory


def check_connection(engine: Engine) -> bool:
    """Runs ``SELECT 1``; logs and returns False on failure."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("[DB] Connection check failed")
        return False


def init_schema(engine: Engine) -> None:
    """Creates missing tables. Development and tests only; not a migration tool."""
    Base.metadata.create_all(engine)
    logger.info("[DB] Schema ensured (%d tables)", len(Base.metadata.tables))


def get_db() -> Iterator[Session]:
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
