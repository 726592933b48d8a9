"""
Database maintenance for PostgreSQL projects that declare their schema in Python.

- `check`: list the tables in the target schema
- `clear`: truncate the tables the schema module defines
- `reset`: drop every table, then recreate the schema with `push`
- `push`: create the schema module's tables that are missing
"""

from __future__ import annotations

__version__ = "0.1.0"

from dbassist.commands import check_database, clear_database, push_schema  # noqa: E402
from dbassist.reset import reset_database  # noqa: E402
from dbassist.settings import AssistOptions, ResetOptions  # noqa: E402

__all__ = [
    "AssistOptions",
    "ResetOptions",
    "check_database",
    "clear_database",
    "push_schema",
    "reset_database",
]
