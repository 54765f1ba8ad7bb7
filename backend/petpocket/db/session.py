import logging
import re

from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from petpocket.core.config import get_database_url, get_pool_settings
from petpocket.core.db import enable_sqlite_foreign_keys, register_query_timing

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()

# Internal lazy globals
_engine = None
_SessionLocal = None
_database_url = None


def mask_url_password(url: str) -> str:
    """Hide the password component of a connection URL for logging."""
    return re.sub(r"(://[^:/?#]+):[^@]*@", r"\1:***@", url or "")


def _build_engine(database_url: str):
    engine = _create_engine(database_url)
    enable_sqlite_foreign_keys(engine)
    return engine


def _create_engine(database_url: str):
    url = make_url(database_url)

    if url.drivername.startswith("sqlite"):
        if url.database in (None, "", ":memory:"):
            # One shared in-memory database across the process so DDL persists
            # across connections.
            return create_engine(
                database_url,
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(
            database_url, echo=False, connect_args={"check_same_thread": False}
        )

    pool = get_pool_settings()
    return create_engine(
        database_url,
        pool_size=pool["pool_size"],
        max_overflow=pool["max_overflow"],
        pool_timeout=pool["pool_timeout"],  # acquire timeout
        pool_recycle=pool["pool_recycle"],
        pool_pre_ping=True,
        echo=False,
    )


def get_engine():
    """Return a cached SQLAlchemy engine, creating it from DATABASE_URL on
    first call. This allows tests to set DATABASE_URL before the engine is
    constructed."""
    global _engine, _SessionLocal, _database_url
    database_url = get_database_url()
    if _engine is None or _database_url != database_url:
        if _engine is not None:
            _engine.dispose()
        _engine = _build_engine(database_url)
        _SessionLocal = None
        register_query_timing(_engine)
        logger.info(
            "SQLAlchemy engine created",
            extra={
                "context": {
                    "url": mask_url_password(database_url),
                    "dialect": _engine.dialect.name,
                }
            },
        )
        _database_url = database_url
    return _engine


def get_sessionmaker():
    """Return a cached sessionmaker bound to the lazy engine."""
    global _SessionLocal
    engine = get_engine()
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
        )
    return _SessionLocal


def SessionLocal():
    """Return a new Session. Callers own it and must close it."""
    return get_sessionmaker()()


def get_db():
    """Yield a session that is closed when the caller is done with it."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create all tables in database using the lazy engine."""
    # Models register themselves on Base.metadata at import time.
    from petpocket.db import base  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def check_database_connection() -> bool:
    """Run ``SELECT 1`` against the relational store."""
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.error(
            "Database connection failed",
            extra={"context": {"error": str(e)}},
            exc_info=True,
        )
        return False


def dispose_engine() -> None:
    """Release every pooled connection. Called on process shutdown."""
    global _engine, _SessionLocal, _database_url
    if _engine is not None:
        _engine.dispose()
        logger.info("SQLAlchemy engine disposed")
    _engine = None
    _SessionLocal = None
    _database_url = None
