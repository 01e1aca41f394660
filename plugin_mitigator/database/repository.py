"""
Option store implementations.

The engine only needs ``get``/``set`` on named options; ``OptionStore``
is that interface and ``Repository`` backs it with SQLite through
SQLAlchemy, with transaction management per call.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base, Option, utcnow
from ..utils.exceptions import DatabaseError
from ..utils.logger import get_logger

logger = get_logger("database")

MEMORY_PATH = ":memory:"


class OptionStore(ABC):
    """Persisted key-value option store."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for key, or default when absent."""
        raise NotImplementedError("Store must implement 'get'")

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store value under key, overwriting any previous value."""
        raise NotImplementedError("Store must implement 'set'")


class Repository(OptionStore):
    """
    SQLite-backed option store.

    Values must be JSON serializable. Pass ``":memory:"`` as the path
    for a throwaway in-process database.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize repository with database connection.

        Args:
            db_path: Path to SQLite database file
        """
        if db_path is None:
            db_path = str(Path.home() / ".plugin_mitigator" / "options.db")

        if db_path == MEMORY_PATH:
            self._engine = create_engine(
                "sqlite://",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_engine(
                f"sqlite:///{db_path}",
                echo=False,
                pool_pre_ping=True,
            )

        self._db_path = db_path
        Base.metadata.create_all(self._engine)

        self._session_factory = sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
        )

        logger.debug(f"Option store initialized: {db_path}")

    @property
    def db_path(self) -> str:
        return self._db_path

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.

        Handles commit/rollback and proper cleanup.

        Yields:
            SQLAlchemy session
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise DatabaseError(f"Database operation failed: {e}")
        finally:
            session.close()

    def get(self, key: str, default: Any = None) -> Any:
        """Get option value by key."""
        with self.session() as session:
            option = session.scalars(
                select(Option).where(Option.key == key)
            ).first()
            if option is None or option.value is None:
                return default
            return option.value

    def set(self, key: str, value: Any) -> None:
        """Set or update an option."""
        with self.session() as session:
            option = session.scalars(
                select(Option).where(Option.key == key)
            ).first()
            if option:
                option.value = value
                option.updated_at = utcnow()
            else:
                session.add(Option(key=key, value=value))

    def close(self) -> None:
        """Dispose of the connection pool."""
        self._engine.dispose()
