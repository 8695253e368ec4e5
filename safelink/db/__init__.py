"""
Database module with abstraction layer.

This module provides:
- DatabaseAdapter interface: Abstract base class for database implementations
- SQLiteAdapter / PostgreSQLAdapter: dialect-specific implementations
- Session management: engine and session factory built from settings
- KeyValueCache: Redis or in-memory store for cached redirects and rate windows
"""

from safelink.db.cache import KeyValueCache, MemoryCache, RedisCache, build_cache
from safelink.db.interface import DatabaseAdapter
from safelink.db.session import async_session_maker, engine, get_database_adapter

__all__ = [
    "DatabaseAdapter",
    "KeyValueCache",
    "MemoryCache",
    "RedisCache",
    "build_cache",
    "async_session_maker",
    "engine",
    "get_database_adapter",
]
