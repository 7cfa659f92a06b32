"""Dialect-specific INSERT constructs

PostgreSQL and SQLite both support INSERT ... ON CONFLICT, but SQLAlchemy
exposes it through each dialect's own `insert()`.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel.ext.asyncio.session import AsyncSession


def conflict_insert(session: AsyncSession, entity):
    """`insert(entity)` supporting on_conflict_do_update / on_conflict_do_nothing"""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(entity)
    if dialect == "sqlite":
        return sqlite.insert(entity)
    raise NotImplementedError(f"ON CONFLICT inserts are not supported for dialect {dialect}")
