from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
import structlog
from structlog.testing import CapturingLogger


# Ensure the repo root is importable when running without an editable install.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))


@dataclass
class LogCapture:
    logger: CapturingLogger

    @property
    def records(self) -> list[tuple[str, str, dict[str, Any]]]:
        out = []
        for call in self.logger.calls:
            kw = dict(call.kwargs)
            out.append((call.method_name, kw.pop("event"), kw))
        return out

    def events(self, level: str | None = None) -> list[str]:
        return [event for method, event, _ in self.records if level is None or method == level]


@pytest.fixture()
def capture() -> LogCapture:
    return LogCapture(CapturingLogger())


@pytest.fixture()
def log(capture: LogCapture):
    # Unfiltered and unrendered: every call lands in `capture` as (level, event, kwargs).
    return structlog.wrap_logger(
        capture.logger,
        processors=[],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
    )


@pytest.fixture(scope="session")
def postgres_url() -> str:
    from testcontainers.postgres import PostgresContainer

    try:
        container = PostgresContainer("postgres:16")
        container.start()
    except Exception as e:  # noqa: BLE001 - no docker daemon, no image pull, ...
        pytest.skip(f"PostgreSQL container unavailable: {e}")
    try:
        # testcontainers may hand out postgresql+psycopg2://; dbassist normalizes it to asyncpg.
        yield container.get_connection_url()
    finally:
        container.stop()
