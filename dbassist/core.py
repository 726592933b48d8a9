from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Protocol, TypeVar

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession
from structlog.typing import FilteringBoundLogger

from dbassist.config import ResolvedConfig
from dbassist.db import close_connection, open_connection
from dbassist.schema_loader import load_schema


T = TypeVar("T")

Schema = dict[str, sa.Table]


class Connector(Protocol):
    def __call__(
        self, config: ResolvedConfig, log: FilteringBoundLogger, *, log_statements: bool = False
    ) -> Awaitable[AsyncConnection]: ...


class SchemaLoader(Protocol):
    def __call__(self, path: Path, *, log: FilteringBoundLogger, search_path: Path | None = None) -> Schema: ...


async def execute_with_connection(
    config: ResolvedConfig,
    action: Callable[[AsyncConnection, ResolvedConfig], Awaitable[T]],
    *,
    log: FilteringBoundLogger,
    connect: Connector = open_connection,
) -> T:
    """Run `action` with a raw connection that is closed exactly once, however the action exits."""
    log.debug("opening_connection")
    conn = await connect(config, log)
    try:
        log.debug("executing_action")
        return await action(conn, config)
    finally:
        log.debug("closing_connection")
        await close_connection(conn)


async def execute_with_orm(
    config: ResolvedConfig,
    action: Callable[[AsyncSession, Schema, ResolvedConfig], Awaitable[T]],
    *,
    log: FilteringBoundLogger,
    connect: Connector = open_connection,
    load: SchemaLoader = load_schema,
    session_factory: Callable[..., Any] = AsyncSession,
) -> T:
    """
    Run `action` with a session, the project's schema and the config.

    The schema is loaded before any connection is opened, so an invalid schema module never touches
    the database. The session and its connection are closed exactly once on every exit path.
    """
    schema = load(config.schema_path, log=log, search_path=config.project_root)

    log.debug("opening_connection", log_statements=config.verbose)
    conn = await connect(config, log, log_statements=config.verbose)
    try:
        session = session_factory(bind=conn, expire_on_commit=False)
        try:
            log.debug("executing_action")
            return await action(session, schema, config)
        finally:
            await session.close()
    finally:
        log.debug("closing_connection")
        await close_connection(conn)
