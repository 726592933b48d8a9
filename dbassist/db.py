from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool
from structlog.typing import FilteringBoundLogger

from dbassist.config import ResolvedConfig


ASYNC_DRIVER = "postgresql+asyncpg"


def to_async_url(url: str) -> str:
    """
    Point any PostgreSQL URL at the asyncpg driver.

    Config files usually carry a driver-less `postgres://` / `postgresql://` URL or one aimed at a
    sync driver; asyncpg also spells libpq's `sslmode` as `ssl`.
    """
    u = make_url(url)
    if u.drivername.split("+", 1)[0] in ("postgres", "postgresql"):
        u = u.set(drivername=ASYNC_DRIVER)
    if "sslmode" in u.query:
        mode = u.query["sslmode"]
        u = u.difference_update_query(["sslmode"]).update_query_dict({"ssl": mode})
    return u.render_as_string(hide_password=False)


def _forward_notices(engine: AsyncEngine, log: FilteringBoundLogger) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:  # noqa: ANN401
        dbapi_connection.driver_connection.add_log_listener(
            lambda _conn, message: log.debug("postgres_notice", message=message.message)
        )


def _mirror_statements(engine: AsyncEngine, log: FilteringBoundLogger) -> None:
    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _on_execute(_conn: Any, _cursor: Any, statement: str, parameters: Any, _context: Any, _many: bool) -> None:  # noqa: ANN401
        log.debug("sql", statement=" ".join(statement.split()), parameters=parameters)


async def open_connection(
    config: ResolvedConfig,
    log: FilteringBoundLogger,
    *,
    log_statements: bool = False,
) -> AsyncConnection:
    # NullPool: one invocation, one physical connection, closed together with the engine.
    engine = create_async_engine(to_async_url(config.connection_string), poolclass=NullPool, isolation_level="AUTOCOMMIT")
    _forward_notices(engine, log)
    if log_statements:
        _mirror_statements(engine, log)
    try:
        return await engine.connect()
    except BaseException:
        await engine.dispose()
        raise


async def close_connection(conn: AsyncConnection) -> None:
    engine = conn.engine
    try:
        await conn.close()
    finally:
        await engine.dispose()
