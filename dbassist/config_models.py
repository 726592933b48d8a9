from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


POSTGRES_DIALECT = "postgresql"
# Top-level `driver` value used by configs written before `dialect` existed.
LEGACY_PG_DRIVER = "pg"


class Credentials(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str | None = None
    connection_string: str | None = Field(
        default=None, validation_alias=AliasChoices("connection_string", "connectionString")
    )

    def url_or_connection_string(self) -> str | None:
        return self.url or self.connection_string or None


class _ProjectConfigBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    db_credentials: str | Credentials | None = Field(
        default=None, validation_alias=AliasChoices("db_credentials", "dbCredentials")
    )
    verbose: bool = False

    @field_validator("verbose", mode="before")
    @classmethod
    def _truthy(cls, v: Any) -> bool:
        # Python configs often read this from the environment, so None and strings are common.
        return bool(v)


class PostgresDialectConfig(_ProjectConfigBase):
    dialect: Literal["postgresql"] = POSTGRES_DIALECT

    def resolve_connection_string(self) -> str | None:
        if isinstance(self.db_credentials, str):
            return self.db_credentials or None
        if isinstance(self.db_credentials, Credentials):
            return self.db_credentials.url_or_connection_string()
        return None


class LegacyConfig(_ProjectConfigBase):
    """Config shape that predates the `dialect` field."""

    dialect: None = None
    # Only consulted as a last resort; values of any other type are ignored rather than rejected.
    driver: Any = None
    connection_string: Any = Field(
        default=None, validation_alias=AliasChoices("connection_string", "connectionString")
    )

    def resolve_connection_string(self) -> str | None:
        if isinstance(self.db_credentials, Credentials):
            found = self.db_credentials.url_or_connection_string()
            if found:
                return found
        if isinstance(self.db_credentials, str) and self.db_credentials:
            return self.db_credentials
        if self.driver == LEGACY_PG_DRIVER and isinstance(self.connection_string, str):
            return self.connection_string or None
        return None


ProjectConfig = PostgresDialectConfig | LegacyConfig


def parse_project_config(raw: Mapping[str, Any]) -> ProjectConfig:
    """
    Parse a raw config mapping into one variant of the union.

    The dialect must already have been checked; anything other than `postgresql` is read as legacy.
    """
    data = dict(raw)
    if data.get("dialect") == POSTGRES_DIALECT:
        return PostgresDialectConfig.model_validate(data)
    data.pop("dialect", None)
    return LegacyConfig.model_validate(data)
