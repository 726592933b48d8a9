from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession

from dbassist.settings import validate_schema_name


_LIST_TABLES = sa.text(
    "SELECT table_name FROM information_schema.tables WHERE table_schema = :schema ORDER BY table_name"
)

# One server-side statement: every table currently in the schema is dropped with CASCADE so
# dependent views/foreign keys do not block the drop.
_DROP_ALL_TEMPLATE = """
DO $$ DECLARE
  r RECORD;
BEGIN
  FOR r IN (SELECT tablename FROM pg_tables WHERE schemaname = '{schema}') LOOP
    EXECUTE 'DROP TABLE IF EXISTS ' || quote_ident('{schema}') || '.' || quote_ident(r.tablename) || ' CASCADE';
  END LOOP;
END $$;
"""


class TableCatalog(Protocol):
    schema_name: str

    async def list_tables(self) -> list[str]: ...

    async def drop_all_tables(self) -> None: ...


async def list_tables(conn: AsyncConnection | AsyncSession, schema_name: str = "public") -> list[str]:
    result = await conn.execute(_LIST_TABLES, {"schema": schema_name})
    return [row[0] for row in result.all()]


def drop_all_statement(schema_name: str) -> sa.TextClause:
    return sa.text(_DROP_ALL_TEMPLATE.format(schema=validate_schema_name(schema_name)))


class PgCatalog:
    def __init__(self, conn: AsyncConnection, schema_name: str = "public"):
        self._conn = conn
        self.schema_name = validate_schema_name(schema_name)

    async def list_tables(self) -> list[str]:
        return await list_tables(self._conn, self.schema_name)

    async def drop_all_tables(self) -> None:
        await self._conn.execute(drop_all_statement(self.schema_name))


def _unique(tables: Iterable[sa.Table]) -> list[sa.Table]:
    seen: dict[str, sa.Table] = {}
    for t in tables:
        seen.setdefault(t.fullname, t)
    return list(seen.values())


async def truncate_tables(session: AsyncSession, tables: Iterable[sa.Table]) -> list[str]:
    """Empty every given table in one statement; returns the truncated table names."""
    targets = _unique(tables)
    if not targets:
        return []
    preparer = session.bind.dialect.identifier_preparer
    names = ", ".join(preparer.format_table(t) for t in targets)
    await session.execute(sa.text(f"TRUNCATE TABLE {names} RESTART IDENTITY CASCADE"))
    await session.commit()
    return [t.fullname for t in targets]


def _create_missing(sync_conn: sa.Connection, tables: list[sa.Table]) -> None:
    by_metadata: dict[int, tuple[sa.MetaData, list[sa.Table]]] = {}
    for t in tables:
        by_metadata.setdefault(id(t.metadata), (t.metadata, []))[1].append(t)
    for metadata, group in by_metadata.values():
        metadata.create_all(sync_conn, tables=group, checkfirst=True)


async def create_tables(session: AsyncSession, tables: Iterable[sa.Table]) -> list[str]:
    """Create the given tables that do not exist yet; returns the table names handled."""
    targets = _unique(tables)
    conn = await session.connection()
    await conn.run_sync(_create_missing, targets)
    await session.commit()
    return [t.fullname for t in targets]
