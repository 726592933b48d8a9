from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from structlog.typing import FilteringBoundLogger

from dbassist.config_models import POSTGRES_DIALECT, parse_project_config
from dbassist.errors import (
    ConfigLoadError,
    ConfigNotFoundError,
    ConnectionStringMissingError,
    SchemaFileMissingError,
    SchemaPathInvalidError,
    UnsupportedDialectError,
)
from dbassist.module_loader import exec_module, public_attributes
from dbassist.settings import AssistOptions


# Checked in this order in every directory: the executable variant wins over the plain one.
CONFIG_FILE_NAMES = ("dbassist.config.py", "dbassist.config.toml")


@dataclass(frozen=True)
class ResolvedConfig:
    connection_string: str = field(repr=False)
    schema_path: Path
    dialect: str | None
    config_file_path: Path
    project_root: Path
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.connection_string:
            raise ConnectionStringMissingError("empty connection string")
        if self.dialect is not None and self.dialect != POSTGRES_DIALECT:
            raise UnsupportedDialectError(self.dialect)
        if not self.schema_path.exists():
            raise SchemaFileMissingError(self.schema_path)


def find_config_file(start: Path | str) -> Path | None:
    current = Path(start).resolve()
    while True:
        for name in CONFIG_FILE_NAMES:
            candidate = current / name
            if candidate.is_file():
                return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config_object(path: Path) -> Mapping[str, Any]:
    """
    Load a config file into a plain mapping.

    Python configs expose either a `config` mapping or plain module-level names; TOML configs are
    the document itself.
    """
    if path.suffix == ".toml":
        try:
            with path.open("rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigLoadError(path, str(e)) from e

    if path.suffix != ".py":
        raise ConfigLoadError(path, f"unsupported config file type {path.suffix!r}")
    try:
        module = exec_module(path, "dbassist_config", search_path=path.parent, keep=False)
    except Exception as e:  # noqa: BLE001 - user code can raise anything
        raise ConfigLoadError(path, f"{type(e).__name__}: {e}") from e

    obj = getattr(module, "config", None)
    if obj is None:
        return public_attributes(module)
    if not isinstance(obj, Mapping):
        raise ConfigLoadError(path, f"`config` must be a mapping, got {type(obj).__name__}")
    return obj


def _schema_path(raw: Mapping[str, Any], project_root: Path) -> Path:
    value = raw.get("schema")
    if isinstance(value, (list, tuple)):
        # Multiple schema files: only the first one is used.
        value = value[0] if value else None
    if not isinstance(value, str) or not value:
        raise SchemaPathInvalidError("schema", value)
    path = (project_root / value).resolve()
    if not path.exists():
        raise SchemaFileMissingError(path)
    return path


def normalize_config(raw: Mapping[str, Any], config_file_path: Path, *, log: FilteringBoundLogger) -> ResolvedConfig:
    dialect = raw.get("dialect")
    if dialect and dialect != POSTGRES_DIALECT:
        log.error("unsupported_dialect", dialect=dialect, config=str(config_file_path))
        raise UnsupportedDialectError(dialect)

    project_root = config_file_path.parent
    try:
        schema_path = _schema_path(raw, project_root)
    except (SchemaPathInvalidError, SchemaFileMissingError) as e:
        log.error("schema_path_invalid", error=str(e), config=str(config_file_path))
        raise

    try:
        parsed = parse_project_config(raw)
    except ValidationError as e:
        log.error("connection_string_missing", error=str(e), config=str(config_file_path))
        raise ConnectionStringMissingError(f"{e.error_count()} invalid credential field(s)") from e

    connection_string = parsed.resolve_connection_string()
    if not connection_string:
        log.error("connection_string_missing", config=str(config_file_path))
        raise ConnectionStringMissingError()

    resolved = ResolvedConfig(
        connection_string=connection_string,
        schema_path=schema_path,
        dialect=parsed.dialect,
        config_file_path=config_file_path,
        project_root=project_root,
        verbose=parsed.verbose,
    )
    log.debug(
        "config_resolved",
        connection_string="********",
        schema_path=str(resolved.schema_path),
        dialect=resolved.dialect,
        project_root=str(resolved.project_root),
    )
    return resolved


def resolve_config(
    options: AssistOptions | None,
    *,
    log: FilteringBoundLogger,
    cwd: Path | None = None,
) -> ResolvedConfig:
    options = options or AssistOptions()
    log.debug("resolving_config")

    start = cwd or Path.cwd()
    if options.config_path:
        config_path: Path | None = (start / options.config_path).resolve()
        searched: Path | str = options.config_path
    else:
        log.debug("searching_config_file", start=str(start), names=list(CONFIG_FILE_NAMES))
        config_path = find_config_file(start)
        searched = start

    if config_path is None or not config_path.exists():
        log.error("config_file_not_found", searched=str(config_path or searched))
        raise ConfigNotFoundError(config_path or searched)

    log.info("using_config_file", path=str(config_path))
    try:
        raw = load_config_object(config_path)
    except ConfigLoadError as e:
        log.error("config_load_failed", path=e.path, reason=e.reason)
        raise
    return normalize_config(raw, config_path, log=log)
