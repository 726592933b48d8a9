from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

from dbassist import process
from dbassist.errors import ProcessExitError, ProcessSpawnError
from dbassist.process import run_command, run_schema_push, schema_push_args


@pytest.mark.asyncio
async def test_streams_stdout_at_info_and_stderr_at_error(log, capture) -> None:
    script = "import sys; print('hello'); print('careful', file=sys.stderr); print('bye')"

    await run_command(sys.executable, ["-c", script], log=log, prefix="[child]")

    out = [(m, kw["line"]) for m, e, kw in capture.records if e == "process_stdout"]
    err = [(m, kw["line"]) for m, e, kw in capture.records if e == "process_stderr"]
    assert out == [("info", "hello"), ("info", "bye")]
    assert err == [("error", "careful")]
    assert {kw["source"] for _, e, kw in capture.records if e.startswith("process_")} == {"[child]"}


@pytest.mark.asyncio
async def test_default_prefix_is_command_name(log, capture) -> None:
    await run_command(sys.executable, ["-c", "print('x')"], log=log)

    sources = [kw["source"] for _, e, kw in capture.records if e == "process_stdout"]
    assert sources == [f"[{sys.executable}]"]


@pytest.mark.asyncio
async def test_runs_in_given_directory(tmp_path: Path, log, capture) -> None:
    await run_command(sys.executable, ["-c", "import os; print(os.getcwd())"], log=log, cwd=tmp_path)

    lines = [kw["line"] for _, e, kw in capture.records if e == "process_stdout"]
    assert Path(lines[0]).resolve() == tmp_path.resolve()


@pytest.mark.asyncio
async def test_arguments_are_not_shell_interpreted(log, capture) -> None:
    await run_command(sys.executable, ["-c", "import sys; print(sys.argv[1])", "a b; echo c"], log=log)

    assert [kw["line"] for _, e, kw in capture.records if e == "process_stdout"] == ["a b; echo c"]


@pytest.mark.asyncio
async def test_non_zero_exit_raises_with_code(log, capture) -> None:
    with pytest.raises(ProcessExitError) as exc:
        await run_command(sys.executable, ["-c", "raise SystemExit(3)"], log=log)

    assert exc.value.returncode == 3
    assert "command_failed" in capture.events("error")


@pytest.mark.asyncio
async def test_missing_command_raises_spawn_error(log, capture) -> None:
    with pytest.raises(ProcessSpawnError) as exc:
        await run_command("dbassist-no-such-command-xyz", ["push"], log=log)

    assert exc.value.command == "dbassist-no-such-command-xyz"
    assert capture.events("error") == ["command_spawn_failed"]


def test_schema_push_args() -> None:
    assert schema_push_args() == ["-m", "dbassist", "push"]
    assert schema_push_args(Path("/p/dbassist.config.py")) == ["-m", "dbassist", "push", "--config", "/p/dbassist.config.py"]
    assert schema_push_args(log_level="verbose") == ["-m", "dbassist", "push", "--log-level", "verbose"]


@pytest.mark.asyncio
async def test_run_schema_push_uses_project_root(resolved_config, log, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    async def fake_run_command(command, args, *, log, cwd=None, prefix=None):
        seen.update(command=command, args=list(args), cwd=cwd, prefix=prefix)

    monkeypatch.setattr(process, "run_command", fake_run_command)

    await run_schema_push(resolved_config, log)

    assert seen == {
        "command": sys.executable,
        "args": ["-m", "dbassist", "push", "--config", str(resolved_config.config_file_path)],
        "cwd": resolved_config.project_root,
        "prefix": "[dbassist push]",
    }


@pytest.mark.asyncio
async def test_run_schema_push_forwards_log_level(resolved_config, log, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    async def fake_run_command(command, args, *, log, cwd=None, prefix=None):
        seen["args"] = list(args)

    monkeypatch.setattr(process, "run_command", fake_run_command)

    await run_schema_push(resolved_config, log, log_level="verbose")

    assert seen["args"][-2:] == ["--log-level", "verbose"]


@pytest.mark.asyncio
async def test_lines_longer_than_the_stream_buffer_are_streamed_whole(log, capture) -> None:
    script = "import sys; print('x' * 200000); print('tail'); sys.stdout.write('no newline')"

    await run_command(sys.executable, ["-c", script], log=log)

    lines = [kw["line"] for _, e, kw in capture.records if e == "process_stdout"]
    assert lines == ["x" * 200000, "tail", "no newline"]


class _FailingLogger:
    def debug(self, *args, **kwargs) -> None:
        pass

    def error(self, *args, **kwargs) -> None:
        pass

    def info(self, *args, **kwargs) -> None:
        raise RuntimeError("log sink closed")


@pytest.mark.asyncio
async def test_child_is_killed_and_reaped_when_streaming_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    spawned = []
    real_exec = asyncio.create_subprocess_exec

    async def recording_exec(*args, **kwargs):
        proc = await real_exec(*args, **kwargs)
        spawned.append(proc)
        return proc

    monkeypatch.setattr(asyncio, "create_subprocess_exec", recording_exec)
    script = "import time; print('started', flush=True); time.sleep(60)"

    with pytest.raises(RuntimeError, match="log sink closed"):
        await asyncio.wait_for(run_command(sys.executable, ["-c", script], log=_FailingLogger()), timeout=30)

    assert spawned[0].returncode is not None
