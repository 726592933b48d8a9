from __future__ import annotations

from pathlib import Path


class DbAssistError(RuntimeError):
    pass


class ConfigNotFoundError(DbAssistError):
    def __init__(self, searched: Path | str):
        self.searched = str(searched)
        super().__init__(f"config file (dbassist.config.py or dbassist.config.toml) not found from {self.searched}")


class ConfigLoadError(DbAssistError):
    def __init__(self, path: Path | str, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"failed to load config file {self.path}: {reason}")


class SchemaPathInvalidError(DbAssistError):
    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"schema path ({field}) not found or invalid in config: {value!r}")


class SchemaFileMissingError(DbAssistError):
    def __init__(self, path: Path | str):
        self.path = str(path)
        super().__init__(f"schema file not found: {self.path}")


class UnsupportedDialectError(DbAssistError):
    def __init__(self, dialect: object):
        self.dialect = dialect
        super().__init__(f"unsupported dialect {dialect!r}; only 'postgresql' is supported")


class ConnectionStringMissingError(DbAssistError):
    def __init__(self, detail: str = ""):
        msg = "database connection string (db_credentials.url or db_credentials.connection_string) not found in config"
        super().__init__(f"{msg}: {detail}" if detail else msg)


class SchemaModuleInvalidError(DbAssistError):
    def __init__(self, path: Path | str, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"could not load a valid schema from {self.path}: {reason}")


class DropTablesError(DbAssistError):
    def __init__(self, schema_name: str, cause: BaseException):
        self.schema_name = schema_name
        super().__init__(f"failed to drop tables in schema {schema_name!r}: {cause}")


class SchemaRecreationError(DbAssistError):
    def __init__(self, cause: BaseException):
        super().__init__(f"schema recreation failed: {cause}")


class ProcessError(DbAssistError):
    def __init__(self, command: str, message: str):
        self.command = command
        super().__init__(message)


class ProcessSpawnError(ProcessError):
    def __init__(self, command: str, cause: OSError):
        super().__init__(command, f"failed to start command {command!r}: {cause}")


class ProcessExitError(ProcessError):
    def __init__(self, command: str, returncode: int):
        self.returncode = returncode
        super().__init__(command, f"{command} exited with code {returncode}")
