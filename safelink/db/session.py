"""
Database Session Management with Connection Pooling

This module handles async database connections using SQLAlchemy's async engine.
Uses a database abstraction layer to support different database backends.

Key Features:
- Database abstraction: SQLite or PostgreSQL picked from DATABASE_URL
- Connection pooling: Configured per database type
- Async session management: sessions are opened per store/resolve call
"""

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from safelink.core.setting import settings
from safelink.db.interface import DatabaseAdapter
from safelink.db.postgres_adapter import PostgreSQLAdapter
from safelink.db.sqlite_adapter import SQLiteAdapter


def get_database_adapter(database_url: str) -> DatabaseAdapter:
    """
    Factory function to get the database adapter for a connection string.

    Returns:
        PostgreSQLAdapter for postgresql URLs, SQLiteAdapter otherwise
    """
    if database_url.startswith("postgresql"):
        return PostgreSQLAdapter(command_timeout=settings.DB_TIMEOUT_SECONDS)
    return SQLiteAdapter()


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=SQLModelAsyncSession,
        expire_on_commit=False,  # Prevents SQLAlchemy from expiring objects after commit
        autoflush=False,
    )


db_adapter = get_database_adapter(settings.DATABASE_URL)

# Creating the engine does not connect; the first session does
engine = db_adapter.create_engine(settings.DATABASE_URL)

async_session_maker = create_session_maker(engine)
