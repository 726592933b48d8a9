from __future__ import annotations

import asyncio
import contextlib
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from structlog.typing import FilteringBoundLogger

from dbassist.config import ResolvedConfig
from dbassist.errors import ProcessExitError, ProcessSpawnError


SCHEMA_PUSH_PREFIX = "[dbassist push]"
# Lines are split here rather than by StreamReader.readline, which caps a line at its buffer limit.
_CHUNK_SIZE = 64 * 1024


async def _pump(stream: asyncio.StreamReader | None, emit: Callable[..., Any], event: str, prefix: str) -> None:
    if stream is None:
        return

    def _emit(raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").rstrip()
        if line:
            emit(event, source=prefix, line=line)

    pending = bytearray()
    while chunk := await stream.read(_CHUNK_SIZE):
        pending += chunk
        *lines, rest = pending.split(b"\n")
        for raw in lines:
            _emit(raw)
        pending = bytearray(rest)
    _emit(bytes(pending))


async def run_command(
    command: str,
    args: Sequence[str],
    *,
    log: FilteringBoundLogger,
    cwd: Path | str | None = None,
    prefix: str | None = None,
) -> None:
    """
    Run `command` with an explicit argument list and stream its output through `log`.

    stdout lines are logged at info, stderr lines at error. Returns on exit code 0, otherwise raises
    ProcessExitError; a command that cannot be started raises ProcessSpawnError.
    """
    prefix = prefix or f"[{command}]"
    log.debug("running_command", command=command, args=list(args), cwd=str(cwd) if cwd else None)
    try:
        process = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except OSError as e:
        log.error("command_spawn_failed", command=command, error=str(e))
        raise ProcessSpawnError(command, e) from e

    try:
        await asyncio.gather(
            _pump(process.stdout, log.info, "process_stdout", prefix),
            _pump(process.stderr, log.error, "process_stderr", prefix),
        )
        returncode = await process.wait()
    except BaseException:
        # Never leave the child running (or unreaped) when streaming fails or is cancelled.
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
        raise
    if returncode != 0:
        log.error("command_failed", command=command, args=list(args), returncode=returncode)
        raise ProcessExitError(command, returncode)
    log.debug("command_succeeded", command=command, args=list(args))


def schema_push_args(config_file_path: Path | None = None, log_level: str | None = None) -> list[str]:
    args = ["-m", "dbassist", "push"]
    if config_file_path is not None:
        args += ["--config", str(config_file_path)]
    if log_level is not None:
        args += ["--log-level", log_level]
    return args


async def run_schema_push(config: ResolvedConfig, log: FilteringBoundLogger, *, log_level: str | None = None) -> None:
    # Run from the project root with the same interpreter, so the child sees the same install.
    await run_command(
        sys.executable,
        schema_push_args(config.config_file_path, log_level),
        log=log,
        cwd=config.project_root,
        prefix=SCHEMA_PUSH_PREFIX,
    )
