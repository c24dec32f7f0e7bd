"""
Engine and session handling.

Every authorization operation is a plain synchronous SQLAlchemy call.
Services never reach for a global session; they receive one, wrapped in a
repository, from whoever handles the request.

Usage:
    # Scripts and CLI tools
    with get_db_session() as session:
        seed_rbac(session)

    # FastAPI routes
    def handler(session: Session = Depends(get_session)):
        ...
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, QueuePool

from config.database import DatabaseSettings, get_database_settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite ignores foreign keys unless each connection opts in."""

    @event.listens_for(engine, "connect")
    def _foreign_keys_on(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _pool_options(settings: DatabaseSettings) -> Dict[str, Any]:
    if settings.is_sqlite:
        return {"poolclass": NullPool}
    return {
        "poolclass": QueuePool,
        "pool_size": settings.pool_size,
        "max_overflow": settings.max_overflow,
        "pool_timeout": settings.pool_timeout,
        "pool_recycle": settings.pool_recycle,
        "pool_pre_ping": settings.pool_pre_ping,
    }


def get_engine(settings: Optional[DatabaseSettings] = None) -> Engine:
    """Process-wide engine, built from ``DB_*`` settings on first use."""
    global _engine

    if _engine is None:
        settings = settings or get_database_settings()
        target = str(settings.sqlite_path) if settings.is_sqlite else f"{settings.host}/{settings.name}"
        logger.info(f"Opening {settings.driver} engine for {target}")

        _engine = create_engine(
            settings.url,
            echo=settings.echo_sql,
            connect_args=settings.get_connect_args(),
            **_pool_options(settings),
        )
        if settings.is_sqlite:
            enable_sqlite_foreign_keys(_engine)

    return _engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """
    Sessions keep loaded objects usable after commit, and never flush on
    their own; repositories flush explicitly when a read must see a write.
    """
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


def get_session_factory(settings: Optional[DatabaseSettings] = None) -> sessionmaker:
    global _session_factory

    if _session_factory is None:
        _session_factory = create_session_factory(get_engine(settings))
    return _session_factory


@contextmanager
def get_db_session(settings: Optional[DatabaseSettings] = None) -> Generator[Session, None, None]:
    """
    Session scope: commits leftovers on success, rolls back on error, always closes.

    Services commit their own units of work, so the final commit is usually
    a no-op.
    """
    session = get_session_factory(settings)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_schema(engine: Optional[Engine] = None) -> None:
    """Create every table known to the ORM metadata."""
    # Importing the RBAC models registers their tables on Base.metadata
    import core.rbac.models  # noqa: F401
    from database.models import Base

    Base.metadata.create_all(engine or get_engine())
    logger.info("Database schema ready")


def close_engine() -> None:
    """Dispose of pooled connections; called on application shutdown."""
    global _engine, _session_factory

    if _engine is not None:
        logger.info("Disposing database engine")
        _engine.dispose()
    _engine = None
    _session_factory = None


def get_session():
    """FastAPI dependency for request-scoped sessions."""
    with get_db_session() as session:
        yield session
