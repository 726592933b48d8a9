from __future__ import annotations

import enum
import functools
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncConnection
from structlog.typing import FilteringBoundLogger

from dbassist.catalog import PgCatalog, TableCatalog
from dbassist.config import ResolvedConfig, resolve_config
from dbassist.core import Connector, execute_with_connection
from dbassist.db import open_connection
from dbassist.errors import DropTablesError, SchemaRecreationError
from dbassist.logging import configure_logging
from dbassist.process import run_schema_push
from dbassist.settings import ResetOptions


# Called as push(config, log); reset_database also passes `log_level=` by keyword.
SchemaPush = Callable[..., Awaitable[None]]


class ResetStep(str, enum.Enum):
    SNAPSHOT_BEFORE = "snapshot_before"
    DROP_ALL = "drop_all"
    SNAPSHOT_AFTER = "snapshot_after"
    RECREATE_SCHEMA = "recreate_schema"
    DONE = "done"


class RecreateOutcome(str, enum.Enum):
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class TableSnapshot:
    schema_name: str
    tables: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.tables)

    @property
    def is_empty(self) -> bool:
        return not self.tables


@dataclass(frozen=True)
class ResetReport:
    before: TableSnapshot
    after: TableSnapshot
    steps: tuple[ResetStep, ...]
    recreate: RecreateOutcome
    elapsed_s: float
    recreate_error: str | None = field(default=None)


class ResetOrchestrator:
    """
    Destructive reset of one schema:

        snapshot_before -> drop_all -> snapshot_after -> recreate_schema (optional) -> done

    A failed drop is fatal and stops the sequence. Everything after the drop is advisory: leftover
    tables and a failed schema recreation are logged as warnings and the reset still completes.
    """

    def __init__(
        self,
        catalog: TableCatalog,
        config: ResolvedConfig,
        log: FilteringBoundLogger,
        *,
        skip_schema_recreation: bool = False,
        push: SchemaPush = run_schema_push,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self._catalog = catalog
        self._config = config
        self._log = log
        self._skip_schema_recreation = skip_schema_recreation
        self._push = push
        self._clock = clock
        self._steps: list[ResetStep] = []

    async def _snapshot(self) -> TableSnapshot:
        return TableSnapshot(self._catalog.schema_name, tuple(await self._catalog.list_tables()))

    async def snapshot_before(self) -> TableSnapshot:
        self._steps.append(ResetStep.SNAPSHOT_BEFORE)
        snap = await self._snapshot()
        if snap.is_empty:
            self._log.info("no_tables_found", schema=snap.schema_name)
        else:
            for i, name in enumerate(snap.tables, start=1):
                self._log.info("table_before_reset", index=i, table=name)
            self._log.info("tables_before_reset", schema=snap.schema_name, total=len(snap))
        return snap

    async def drop_all(self) -> None:
        self._steps.append(ResetStep.DROP_ALL)
        schema = self._catalog.schema_name
        self._log.info("dropping_all_tables", schema=schema)
        try:
            await self._catalog.drop_all_tables()
        except Exception as e:
            self._log.error("drop_tables_failed", schema=schema, error=str(e))
            raise DropTablesError(schema, e) from e
        self._log.info("all_tables_dropped", schema=schema)

    async def snapshot_after(self) -> TableSnapshot:
        self._steps.append(ResetStep.SNAPSHOT_AFTER)
        snap = await self._snapshot()
        if snap.is_empty:
            self._log.info("drop_verified", schema=snap.schema_name)
        else:
            # Usually a dependency CASCADE could not resolve, or missing privileges.
            self._log.warning(
                "tables_left_after_drop", schema=snap.schema_name, total=len(snap), tables=list(snap.tables)
            )
        return snap

    async def recreate_schema(self) -> tuple[RecreateOutcome, str | None]:
        if self._skip_schema_recreation:
            self._log.info("schema_recreation_skipped")
            return RecreateOutcome.SKIPPED, None
        self._steps.append(ResetStep.RECREATE_SCHEMA)
        self._log.info("recreating_schema", config=str(self._config.config_file_path))
        try:
            await self._push(self._config, self._log)
        except Exception as e:  # noqa: BLE001 - the drop is already committed; nothing to roll back
            err = SchemaRecreationError(e)
            self._log.warning("schema_recreation_failed", error=str(err))
            return RecreateOutcome.FAILED, str(err)
        self._log.info("schema_recreated")
        return RecreateOutcome.SUCCEEDED, None

    async def run(self) -> ResetReport:
        self._steps = []
        start = self._clock()
        self._log.info("reset_started", schema=self._catalog.schema_name)

        before = await self.snapshot_before()
        await self.drop_all()
        after = await self.snapshot_after()
        outcome, error = await self.recreate_schema()

        self._steps.append(ResetStep.DONE)
        elapsed = self._clock() - start
        self._log.info("reset_completed", elapsed_s=round(elapsed, 2), recreate=outcome.value)
        return ResetReport(
            before=before,
            after=after,
            steps=tuple(self._steps),
            recreate=outcome,
            elapsed_s=elapsed,
            recreate_error=error,
        )


async def reset_database(
    options: ResetOptions | None = None,
    *,
    log: FilteringBoundLogger | None = None,
    cwd: Path | None = None,
    connect: Connector = open_connection,
    push: SchemaPush = run_schema_push,
) -> ResetReport:
    options = options or ResetOptions()
    log = log or configure_logging(options.log_level)
    log.debug("reset_database_started", skip_schema_recreation=options.skip_schema_recreation)
    config = resolve_config(options, log=log, cwd=cwd)

    async def _action(conn: AsyncConnection, cfg: ResolvedConfig) -> ResetReport:
        orchestrator = ResetOrchestrator(
            PgCatalog(conn, options.target_schema),
            cfg,
            log,
            skip_schema_recreation=options.skip_schema_recreation,
            # The push child logs at the same level as this invocation.
            push=functools.partial(push, log_level=options.log_level),
        )
        return await orchestrator.run()

    report = await execute_with_connection(config, _action, log=log, connect=connect)
    log.info("reset_database_finished")
    return report
