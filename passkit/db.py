"""
Database configuration with lazy initialization.

The engine is created on first access so importing the package never
touches the database.
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool

from .config import settings

logger = logging.getLogger(__name__)

# Global engine instance (lazily initialized)
_engine = None
_SessionLocal = None

Base = declarative_base()


def get_engine():
    """
    Get or create the database engine (lazy initialization).

    SQLite is only accepted outside production.
    """
    global _engine
    if _engine is None:
        if settings.ENV == "prod" and settings.database_url.startswith("sqlite"):
            raise ValueError(
                "SQLite database is not supported in production. "
                "Please use PostgreSQL so pass records can be row-locked."
            )

        db_url_safe = settings.database_url[:30] + "..." if len(settings.database_url) > 30 else settings.database_url
        logger.info(f"Creating database engine for: {db_url_safe}")

        if settings.database_url.startswith("sqlite"):
            # SQLite: minimal pooling for dev
            _engine = create_engine(
                settings.database_url,
                poolclass=QueuePool,
                pool_size=5,
                max_overflow=0,
                connect_args={"check_same_thread": False},
            )
        else:
            _engine = create_engine(
                settings.database_url,
                poolclass=QueuePool,
                pool_size=20,
                max_overflow=10,
                pool_pre_ping=True,
                pool_recycle=3600,
            )
    return _engine


def get_session_local():
    """Get or create the SessionLocal class."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def init_db() -> None:
    """Create all tables registered on Base."""
    from . import models  # noqa: F401  (registers models with Base)

    Base.metadata.create_all(bind=get_engine())


def get_db():
    """
    Dependency that provides a database session.
    Used by FastAPI's dependency injection.
    """
    session_class = get_session_local()
    db = session_class()
    try:
        yield db
    finally:
        db.close()
