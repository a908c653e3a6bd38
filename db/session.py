# WORKFLOW: Database session management and connection handling.
# Used by: Rate catalog, audit store, tariff service factory
# Functions:
# 1. get_db() - Yield a session for one unit of work
# 2. init_db() - Initialize database tables
# 3. check_db_connection() - Health check for database connectivity
#
# Database lifecycle:
# Startup: init_db() -> Create tables -> Check connection
# Runtime: get_db() -> Session -> Query -> Close session

from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker
from core.config import settings
import logging

logger = logging.getLogger(__name__)

# Lazy-loaded database engine and session factory
_engine = None
_SessionLocal = None


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "pool_pre_ping": True,
        "connect_args": {"options": "-c timezone=utc"},
    }


def get_engine():
    """Get database engine (lazy-loaded)."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.database_url,
            echo=settings.debug,
            **_engine_kwargs(settings.database_url)
        )
    return _engine


def get_session_factory():
    """Get session factory (lazy-loaded)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def get_db():
    """
    Yield a database session and ensure it's closed after use.
    Rolls back and re-raises on error.
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine=None):
    """
    Initialize database tables.
    """
    from db.models import Base

    try:
        Base.metadata.create_all(bind=engine or get_engine())
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


def check_db_connection() -> bool:
    """
    Check if database connection is working.
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
