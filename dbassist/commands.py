from __future__ import annotations

from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession
from structlog.typing import FilteringBoundLogger

from dbassist.catalog import create_tables, list_tables, truncate_tables
from dbassist.config import ResolvedConfig, resolve_config
from dbassist.core import Connector, Schema, execute_with_connection, execute_with_orm
from dbassist.db import open_connection
from dbassist.logging import configure_logging
from dbassist.settings import AssistOptions


async def check_database(
    options: AssistOptions | None = None,
    *,
    log: FilteringBoundLogger | None = None,
    cwd: Path | None = None,
    connect: Connector = open_connection,
) -> list[str]:
    """List the tables in the target schema."""
    options = options or AssistOptions()
    log = log or configure_logging(options.log_level)
    config = resolve_config(options, log=log, cwd=cwd)

    async def _action(conn: AsyncConnection, _config: ResolvedConfig) -> list[str]:
        log.info("checking_tables", schema=options.target_schema)
        tables = await list_tables(conn, options.target_schema)
        if not tables:
            log.info("no_tables_found", schema=options.target_schema)
        for i, name in enumerate(tables, start=1):
            print(f"{i}. {name}")
        return tables

    tables = await execute_with_connection(config, _action, log=log, connect=connect)
    log.info("database_check_completed", total=len(tables))
    return tables


async def clear_database(
    options: AssistOptions | None = None,
    *,
    log: FilteringBoundLogger | None = None,
    cwd: Path | None = None,
    connect: Connector = open_connection,
) -> list[str]:
    """Truncate every table described by the project's schema module."""
    options = options or AssistOptions()
    log = log or configure_logging(options.log_level)
    config = resolve_config(options, log=log, cwd=cwd)

    async def _action(session: AsyncSession, schema: Schema, _config: ResolvedConfig) -> list[str]:
        log.info("clearing_tables", total=len(schema))
        try:
            cleared = await truncate_tables(session, schema.values())
        except Exception as e:
            log.error("clear_failed", error=str(e))
            raise
        log.info("tables_cleared", tables=cleared)
        return cleared

    cleared = await execute_with_orm(config, _action, log=log, connect=connect)
    log.info("database_clear_finished")
    return cleared


async def push_schema(
    options: AssistOptions | None = None,
    *,
    log: FilteringBoundLogger | None = None,
    cwd: Path | None = None,
    connect: Connector = open_connection,
) -> list[str]:
    """Create every table described by the schema module that does not exist yet."""
    options = options or AssistOptions()
    log = log or configure_logging(options.log_level)
    config = resolve_config(options, log=log, cwd=cwd)

    async def _action(session: AsyncSession, schema: Schema, _config: ResolvedConfig) -> list[str]:
        log.info("pushing_schema", tables=sorted(schema))
        return await create_tables(session, schema.values())

    created = await execute_with_orm(config, _action, log=log, connect=connect)
    log.info("schema_push_finished", total=len(created))
    return created
