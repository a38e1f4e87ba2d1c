"""
Database connection and session management.
Uses SQLAlchemy for Postgres (production) and SQLite (local/dev) connections.
"""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront_search.core.config import get_config
from storefront_search.utils.logger import get_logger

logger = get_logger("data.database")

# Base class for all our database models (must be defined before engine)
Base = declarative_base()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine, adding the SQLite thread flag when needed."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Facet queries run on worker threads, each with its own session
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=echo, pool_pre_ping=True, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Return a session factory bound to ``engine``."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


_config = get_config()
engine: Optional[Engine] = None
SessionLocal: Optional[sessionmaker] = None

try:
    engine = create_db_engine(_config.database_url, echo=_config.database_echo)
    SessionLocal = create_session_factory(engine)
except Exception as e:
    logger.warning(f"Failed to create DB engine: {e}; search endpoints disabled")
    engine = None
    SessionLocal = None


def get_session_factory() -> Optional[sessionmaker]:
    """
    Dependency function that provides the session factory.
    The search engine opens its own sessions so facet queries can fan out.
    """
    return SessionLocal
