"""
Database connectivity module.

Provides PostgreSQL engines scoped to a single job invocation using
SQLAlchemy 2.x and psycopg3.
"""

from .connector import engine_scope, get_engine, normalize_dsn

__all__ = ["engine_scope", "get_engine", "normalize_dsn"]
