"""
Connection provider for the bus terminal services.

Supports SQLite (file or in-memory) and PostgreSQL. Every service
operation opens its own short-lived session here; sessions are released
on every exit path.
"""

import os
import logging
from typing import Optional, Dict, Any
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool, QueuePool
from sqlalchemy.exc import SQLAlchemyError
from contextlib import contextmanager
from pathlib import Path

from .models import create_all_tables, drop_all_tables

logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = ('sqlite', 'postgresql')


def database_url_from_env() -> str:
    """
    DATABASE_URL if set, otherwise a URL assembled from DB_TYPE, DB_HOST,
    DB_PORT, DB_NAME, DB_USER and DB_PASSWORD.
    """
    database_url = os.getenv('DATABASE_URL')
    if database_url:
        return database_url

    backend = os.getenv('DB_TYPE', 'sqlite').lower()
    if backend == 'sqlite':
        return f"sqlite:///{Path.cwd() / os.getenv('DB_NAME', 'bus_terminal.db')}"
    if backend == 'postgresql':
        return "postgresql://{user}:{password}@{host}:{port}/{name}".format(
            user=os.getenv('DB_USER', 'postgres'),
            password=os.getenv('DB_PASSWORD', ''),
            host=os.getenv('DB_HOST', 'localhost'),
            port=os.getenv('DB_PORT', '5432'),
            name=os.getenv('DB_NAME', 'bus_terminal'),
        )
    raise ValueError(f"Unsupported database type: {backend} (expected one of {', '.join(SUPPORTED_BACKENDS)})")


class DatabaseConfig:
    """
    Engine and session factory for one database.

    The engine is created lazily on first use. Services never share
    sessions: each get_session()/get_session_context() call hands out a
    new one.
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        self.database_url = database_url or database_url_from_env()
        self.echo = echo
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        self._is_initialized = False

        self.db_type = next(
            (backend for backend in SUPPORTED_BACKENDS if self.database_url.startswith(backend)),
            'unknown',
        )
        self.engine_kwargs = self._engine_kwargs()
        logger.info(f"Database configuration initialized for {self.db_type}")

    @property
    def is_in_memory(self) -> bool:
        return self.db_type == 'sqlite' and (
            ':memory:' in self.database_url or self.database_url.rstrip('/') == 'sqlite:'
        )

    def _engine_kwargs(self) -> Dict[str, Any]:
        kwargs = {'echo': self.echo, 'future': True, 'pool_pre_ping': True}

        if self.db_type == 'sqlite':
            # Services run on worker threads; wait out writer locks instead of failing
            kwargs['connect_args'] = {'check_same_thread': False, 'timeout': 30}
            if self.is_in_memory:
                # One shared connection, otherwise each connection sees its own empty database
                kwargs['poolclass'] = StaticPool

        elif self.db_type == 'postgresql':
            kwargs.update({
                'poolclass': QueuePool,
                'pool_size': int(os.getenv('DB_POOL_SIZE', '10')),
                'max_overflow': int(os.getenv('DB_MAX_OVERFLOW', '20')),
                'pool_timeout': int(os.getenv('DB_POOL_TIMEOUT', '30')),
                'pool_recycle': int(os.getenv('DB_POOL_RECYCLE', '3600')),
            })

        return kwargs

    def initialize(self) -> None:
        """
        Create the engine, check it answers, and build the session factory.

        Raises:
            SQLAlchemyError: If the database cannot be reached
        """
        if self._is_initialized:
            return

        try:
            self.engine = create_engine(self.database_url, **self.engine_kwargs)
            if self.db_type == 'sqlite':
                event.listen(self.engine, "connect", self._sqlite_pragmas)

            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))

            self.SessionLocal = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=self.engine,
                expire_on_commit=False,
            )
            self._is_initialized = True
            logger.info(f"Database engine initialized ({self.db_type})")

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise SQLAlchemyError(f"Database initialization failed: {e}")

    def _sqlite_pragmas(self, dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not self.is_in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    def create_tables(self) -> None:
        """Create every table and index that does not exist yet."""
        self.initialize()
        try:
            create_all_tables(self.engine)
            logger.info("Database tables created")
        except Exception as e:
            logger.error(f"Failed to create tables: {e}")
            raise SQLAlchemyError(f"Table creation failed: {e}")

    def drop_tables(self) -> None:
        self.initialize()
        drop_all_tables(self.engine)
        logger.info("Database tables dropped")

    def get_session(self) -> Session:
        """New session; the caller owns closing it."""
        self.initialize()
        return self.SessionLocal()

    @contextmanager
    def get_session_context(self):
        """
        Session that commits on success, rolls back on any exception and is
        always closed.

            with db.get_session_context() as session:
                session.add(row)
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.debug(f"Database session rolled back: {e}")
            raise
        finally:
            session.close()

    def get_connection_info(self) -> Dict[str, Any]:
        """Backend and location, credentials stripped."""
        return {
            'database_type': self.db_type,
            'database_url': self.database_url.split('@')[-1],
            'is_initialized': self._is_initialized,
        }

    def close(self) -> None:
        if self.engine:
            self.engine.dispose()
            logger.info("Database connections closed")


__all__ = [
    'DatabaseConfig',
    'database_url_from_env',
]
