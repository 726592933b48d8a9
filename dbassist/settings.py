from __future__ import annotations

import re
from dataclasses import dataclass

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dbassist.logging import LogFormat, LogLevel


_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_schema_name(v: str) -> str:
    # Interpolated into a server-side DO block, so only plain identifiers are accepted.
    if not _IDENTIFIER_RE.match(v):
        raise ValueError(f"invalid schema name {v!r}")
    return v


class DbAssistSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DBASSIST_", extra="forbid")

    log_level: LogLevel = "info"
    log_format: LogFormat = "console"
    config_path: str | None = None
    target_schema: str = "public"

    @field_validator("target_schema")
    @classmethod
    def _check_target_schema(cls, v: str) -> str:
        return validate_schema_name(v)


@dataclass(frozen=True)
class AssistOptions:
    config_path: str | None = None
    log_level: LogLevel = "info"
    target_schema: str = "public"

    def __post_init__(self) -> None:
        validate_schema_name(self.target_schema)


@dataclass(frozen=True)
class ResetOptions(AssistOptions):
    skip_schema_recreation: bool = False
