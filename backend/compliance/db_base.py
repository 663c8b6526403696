"""
SQLAlchemy declarative base and session helpers.

All ledger models register on ``Base.metadata``. Workers build their own
session through ``get_database_session`` (one session per job run).
"""

import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from compliance.config.settings import get_database_url

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_db_engine(database_url: Optional[str] = None) -> Engine:
    """Create an engine for the ledger database."""
    return create_engine(database_url or get_database_url(), pool_pre_ping=True)


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """Return a session factory bound to ``engine`` (or a fresh engine)."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine or create_db_engine(),
    )


def get_database_session() -> Session:
    """Create database session for a lifecycle job."""
    return get_session_factory()()


def init_db(engine: Optional[Engine] = None) -> None:
    """
    Create all ledger tables that do not exist yet.

    Args:
        engine: Engine to create tables on (defaults to DATABASE_URL)
    """
    # Register every model on the metadata before create_all
    import compliance.models  # noqa: F401

    engine = engine or create_db_engine()
    Base.metadata.create_all(engine)
    logger.info("Database schema initialized", extra={"tables": sorted(Base.metadata.tables)})
