"""
Tests for the database adapter layer.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.pool import NullPool

from safelink.db.postgres_adapter import PostgreSQLAdapter
from safelink.db.session import get_database_adapter
from safelink.db.sqlite_adapter import SQLiteAdapter


class TestAdapterSelection:

    def test_postgres_url(self):
        adapter = get_database_adapter("postgresql+asyncpg://user:pw@db:5432/safelink")
        assert isinstance(adapter, PostgreSQLAdapter)
        assert adapter.get_dialect_name() == "postgresql"

    def test_sqlite_is_default(self):
        adapter = get_database_adapter("sqlite+aiosqlite:///./safelink.db")
        assert isinstance(adapter, SQLiteAdapter)
        assert adapter.get_pool_class() is NullPool


class TestClickUpsert:
    """Both dialects increment the counter in place on conflict."""

    def test_sqlite(self):
        sql = str(SQLiteAdapter().click_upsert(7).compile(dialect=sqlite.dialect()))
        assert "ON CONFLICT (link_id) DO UPDATE" in sql
        assert "link_clicks.clicks +" in sql

    def test_postgres(self):
        sql = str(PostgreSQLAdapter().click_upsert(7).compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT (link_id) DO UPDATE" in sql
        assert "link_clicks.clicks +" in sql
