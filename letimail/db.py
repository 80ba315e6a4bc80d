"""
Database
========

SQLAlchemy engine and session management for the relational store.
Built once by the service container and disposed on shutdown.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from letimail.config import DatabaseSettings
from letimail.exceptions import ErrorContext, StoreError
from letimail.logging_config import get_logger

logger = get_logger(__name__)

Base = declarative_base()


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


class Database:
    """
    Owns the engine (connection pool) and hands out sessions.

    Example:
        >>> db = Database(DatabaseSettings(url="sqlite://"))
        >>> db.create_all()
        >>> with db.session() as session:
        ...     session.execute(text("SELECT 1"))
        >>> db.close()
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        self._settings = settings
        self.engine = self._create_engine(settings)
        self._session_factory = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    @staticmethod
    def _create_engine(settings: DatabaseSettings) -> Engine:
        url = settings.url
        kwargs: dict[str, Any] = {"echo": settings.echo, "pool_pre_ping": True}

        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if _is_memory_sqlite(url):
                # One shared connection, otherwise every checkout sees an empty database
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_timeout"] = settings.pool_timeout
            if url.startswith("postgresql"):
                kwargs["connect_args"] = {"connect_timeout": settings.pool_timeout}

        engine = create_engine(url, **kwargs)

        if url.startswith("sqlite"):
            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        return engine

    def create_all(self) -> None:
        """Create all tables (idempotent)."""
        # Models must be imported so they register with Base
        import letimail.entities  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables ensured", dialect=self.engine.dialect.name)

    def ping(self) -> bool:
        """
        Check store connectivity.

        Returns:
            True when a trivial query succeeds.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("Database ping failed", error=str(e))
            return False

    @contextmanager
    def session(self, operation: str = "") -> Iterator[Session]:
        """
        Transactional session scope.

        Commits on success, rolls back on any error. SQLAlchemy errors
        other than integrity violations are wrapped in StoreError.

        Args:
            operation: Name of the calling operation, for error context.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except IntegrityError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Database operation failed", operation=operation, error=str(e))
            raise StoreError(
                message=f"Database operation failed: {e}",
                context=ErrorContext(operation=operation),
                cause=e
            ) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Dispose the connection pool."""
        self.engine.dispose()
        logger.info("Database connection pool disposed")
