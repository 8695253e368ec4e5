"""
SQLite Database Adapter

This module implements the DatabaseAdapter interface for SQLite.
All SQLite-specific configuration and behavior is encapsulated here.

SQLite is a file-based database that's perfect for:
- Local development
- Testing
- Single-instance deployments

Requires SQLite 3.35+ for RETURNING and ON CONFLICT DO UPDATE.
"""

from typing import Any

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.pool import NullPool
from sqlalchemy.sql.dml import Insert

from safelink.db.interface import DatabaseAdapter
from safelink.db.models import LinkClick


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter implementation.

    SQLite uses file-based storage and a single writer at a time, so each
    session gets its own short-lived connection (NullPool).
    """

    def get_pool_class(self) -> type[NullPool]:
        return NullPool

    def get_connect_args(self) -> dict[str, Any]:
        return {
            "check_same_thread": False
        }

    def get_engine_kwargs(self) -> dict[str, Any]:
        return {
            "echo": False  # Set to True only for SQL debugging in development
        }

    def click_upsert(self, link_id: int) -> Insert:
        statement = sqlite_insert(LinkClick).values(link_id=link_id, clicks=1)
        return statement.on_conflict_do_update(
            index_elements=["link_id"],
            set_={"clicks": LinkClick.clicks + 1},
        )

    def get_dialect_name(self) -> str:
        return "sqlite"
