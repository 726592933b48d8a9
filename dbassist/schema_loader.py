from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

import sqlalchemy as sa
from structlog.typing import FilteringBoundLogger

from dbassist.errors import SchemaModuleInvalidError
from dbassist.module_loader import exec_module, public_attributes


def _as_table(obj: object) -> sa.Table | None:
    if isinstance(obj, sa.Table):
        return obj
    # Declarative model classes carry their Table on `__table__`.
    table = getattr(obj, "__table__", None) if isinstance(obj, type) else None
    return table if isinstance(table, sa.Table) else None


def _tables_from(obj: object, path: Path) -> dict[str, sa.Table]:
    if isinstance(obj, sa.MetaData):
        return dict(obj.tables)
    if not isinstance(obj, Mapping):
        raise SchemaModuleInvalidError(path, f"expected a mapping or MetaData, got {type(obj).__name__}")
    tables: dict[str, sa.Table] = {}
    for key, value in obj.items():
        table = _as_table(value)
        if table is None:
            raise SchemaModuleInvalidError(path, f"entry {key!r} is not a Table or mapped class")
        tables[str(key)] = table
    return tables


def load_schema(path: Path, *, log: FilteringBoundLogger, search_path: Path | None = None) -> dict[str, sa.Table]:
    """
    Load the table descriptions a project's schema module exposes.

    Looked up in order: a `schema` attribute (mapping of name to Table/model, or MetaData), a
    `metadata` attribute, then every public Table or mapped class defined in the module.
    """
    log.debug("loading_schema", path=str(path))
    try:
        module = exec_module(path, "dbassist_schema", search_path=search_path or path.parent)
    except Exception as e:  # noqa: BLE001 - user code can raise anything
        log.error("schema_module_import_failed", path=str(path), error=f"{type(e).__name__}: {e}")
        raise SchemaModuleInvalidError(path, f"import failed: {type(e).__name__}: {e}") from e

    try:
        if getattr(module, "schema", None) is not None:
            tables = _tables_from(module.schema, path)
        elif isinstance(getattr(module, "metadata", None), sa.MetaData):
            tables = dict(module.metadata.tables)
        else:
            tables = {}
            for name, value in public_attributes(module).items():
                table = _as_table(value)
                if table is not None:
                    tables[name] = table
        if not tables:
            raise SchemaModuleInvalidError(path, "no tables found; export `schema`, `metadata` or model classes")
    except SchemaModuleInvalidError as e:
        log.error("schema_module_invalid", path=str(path), reason=e.reason)
        raise

    log.debug("schema_loaded", path=str(path), tables=sorted(tables))
    return tables
