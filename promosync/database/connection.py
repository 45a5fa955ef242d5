"""
Database connection management for promosync
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from promosync.config.settings import DatabaseSettings

logger = logging.getLogger(__name__)


# SQLAlchemy 2.0 base class for models
class Base(DeclarativeBase):
    pass


class DatabaseManager:
    """Database connection and session management"""

    def __init__(self, config: Optional[DatabaseSettings] = None):
        self.config = config or DatabaseSettings()
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    def initialize(self, database_url: Optional[str] = None) -> None:
        """Initialize database connection and session factory"""
        url = database_url or self.config.database_url
        try:
            if url.startswith('sqlite'):
                kwargs = {"connect_args": {"check_same_thread": False}}
                if url in ("sqlite://", "sqlite:///:memory:"):
                    # One shared connection so every session sees the same in-memory database
                    kwargs["poolclass"] = StaticPool
                self._engine = create_engine(url, echo=self.config.echo, **kwargs)
            else:
                self._engine = create_engine(url, echo=self.config.echo, pool_pre_ping=True)

            self._session_factory = sessionmaker(
                bind=self._engine,
                expire_on_commit=False
            )

            logger.info("Database connection initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database connection: {e}")
            raise

    def get_engine(self) -> Engine:
        """Get the database engine"""
        if self._engine is None:
            self.initialize()
        return self._engine

    def create_tables(self) -> None:
        """Create every table known to the declarative base"""
        # Registers the models on Base.metadata
        from promosync.database import models  # noqa: F401

        Base.metadata.create_all(self.get_engine())

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """Get a database session with automatic cleanup"""
        if self._session_factory is None:
            self.initialize()

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def test_connection(self) -> bool:
        """Test database connection"""
        try:
            with self.get_session() as session:
                result = session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    def close(self) -> None:
        """Close database connections"""
        if self._engine:
            self._engine.dispose()
            logger.info("Database connections closed")
