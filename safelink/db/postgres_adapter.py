"""
PostgreSQL Database Adapter

This module implements the DatabaseAdapter interface for PostgreSQL (asyncpg).

Pool sizing mirrors a small service instance: 10 pooled connections,
recycled hourly, pinged before checkout so a restarted server doesn't surface
as a failed redirect.
"""

from typing import Any, Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.pool import Pool
from sqlalchemy.sql.dml import Insert

from safelink.db.interface import DatabaseAdapter
from safelink.db.models import LinkClick


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL adapter with a queue pool and per-command timeouts."""

    def __init__(self, command_timeout: float = 5.0, pool_size: int = 10, max_overflow: int = 20):
        self.command_timeout = command_timeout
        self.pool_size = pool_size
        self.max_overflow = max_overflow

    def get_pool_class(self) -> Optional[type[Pool]]:
        return None

    def get_connect_args(self) -> dict[str, Any]:
        return {
            "command_timeout": self.command_timeout,
        }

    def get_engine_kwargs(self) -> dict[str, Any]:
        return {
            "echo": False,
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
            "pool_timeout": self.command_timeout,
        }

    def click_upsert(self, link_id: int) -> Insert:
        statement = pg_insert(LinkClick).values(link_id=link_id, clicks=1)
        return statement.on_conflict_do_update(
            index_elements=["link_id"],
            set_={"clicks": LinkClick.clicks + 1},
        )

    def get_dialect_name(self) -> str:
        return "postgresql"
