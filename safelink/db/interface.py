"""
Database Abstraction Interface

This module defines the database abstraction layer that allows switching between
different database backends (SQLite, PostgreSQL) without changing the
rest of the codebase.

The interface defines common database operations and behaviors that all database
adapters must implement. Dialect-specific SQL, such as the click counter upsert,
lives behind this interface so the link store stays dialect-agnostic.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import Pool
from sqlalchemy.sql.dml import Insert


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    To add a new database backend:
    1. Create a new class inheriting from DatabaseAdapter
    2. Implement all abstract methods
    3. Register it in get_database_adapter() (safelink.db.session)
    """

    def create_engine(self, database_url: str, **kwargs) -> AsyncEngine:
        """
        Create and configure the async database engine.

        Args:
            database_url: Connection string for the database
            **kwargs: Additional engine configuration options (merged over the adapter defaults)

        Returns:
            Configured AsyncEngine instance
        """
        engine_kwargs = self.get_engine_kwargs()
        poolclass = kwargs.pop("poolclass", self.get_pool_class())
        engine_kwargs.update(kwargs)
        if poolclass is not None:
            engine_kwargs["poolclass"] = poolclass

        return create_async_engine(
            database_url,
            connect_args=self.get_connect_args(),
            **engine_kwargs
        )

    @abstractmethod
    def get_pool_class(self) -> Optional[type[Pool]]:
        """
        Get the connection pool class for this database type.

        Returns:
            Pool class (e.g., NullPool for SQLite) or None to use the default queue pool
        """
        pass

    @abstractmethod
    def get_connect_args(self) -> dict[str, Any]:
        """Get driver connection arguments specific to this database type."""
        pass

    @abstractmethod
    def get_engine_kwargs(self) -> dict[str, Any]:
        """Get additional engine configuration specific to this database type."""
        pass

    @abstractmethod
    def click_upsert(self, link_id: int) -> Insert:
        """
        Build the insert-or-add-one statement for a link's click counter.

        Both supported dialects spell it INSERT ... ON CONFLICT (link_id)
        DO UPDATE SET clicks = clicks + 1, but through different constructs.
        """
        pass

    @abstractmethod
    def get_dialect_name(self) -> str:
        """Get the SQLAlchemy dialect name for this database."""
        pass
