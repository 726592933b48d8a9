from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

from pydantic import ValidationError
from structlog.typing import FilteringBoundLogger

from dbassist import __version__, commands, reset
from dbassist.errors import DbAssistError
from dbassist.logging import LEVELS, configure_logging
from dbassist.settings import AssistOptions, DbAssistSettings, ResetOptions


def build_parser(settings: DbAssistSettings) -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=settings.config_path, help="Path to dbassist.config.py / .toml.")
    common.add_argument(
        "-l",
        "--log-level",
        choices=list(LEVELS),
        default=settings.log_level,
        help="Log level (default: %(default)s).",
    )

    parser = argparse.ArgumentParser(
        prog="dbassist", description="Inspect, clear and reset the PostgreSQL database of a project."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("check", parents=[common], help="List the tables in the target schema.")
    sub.add_parser("clear", parents=[common], help="Truncate every table defined in the schema module.")
    sub.add_parser("push", parents=[common], help="Create the tables defined in the schema module that do not exist.")
    reset_parser = sub.add_parser(
        "reset", parents=[common], help="Drop every table in the target schema and recreate the schema."
    )
    reset_parser.add_argument(
        "-s",
        "--skip-schema-recreation",
        action="store_true",
        help="Only drop the tables; do not run `dbassist push` afterwards.",
    )
    return parser


async def _dispatch(args: argparse.Namespace, settings: DbAssistSettings, log: FilteringBoundLogger) -> None:
    if args.command == "reset":
        options = ResetOptions(
            config_path=args.config,
            log_level=args.log_level,
            target_schema=settings.target_schema,
            skip_schema_recreation=bool(args.skip_schema_recreation),
        )
        await reset.reset_database(options, log=log)
        return

    options = AssistOptions(config_path=args.config, log_level=args.log_level, target_schema=settings.target_schema)
    if args.command == "check":
        await commands.check_database(options, log=log)
    elif args.command == "clear":
        await commands.clear_database(options, log=log)
    elif args.command == "push":
        await commands.push_schema(options, log=log)
    else:
        raise ValueError(f"unknown command {args.command!r}")


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = DbAssistSettings()
    except ValidationError as e:
        print(f"dbassist: invalid DBASSIST_* environment: {e}", file=sys.stderr)
        return 2

    args = build_parser(settings).parse_args(argv)
    log = configure_logging(args.log_level, log_format=settings.log_format)

    if args.command == "clear":
        log.warning("destructive_command", command="clear", detail="all data in the schema tables will be deleted")
    elif args.command == "reset":
        log.warning(
            "destructive_command",
            command="reset",
            detail=f"every table in schema {settings.target_schema!r} will be dropped",
        )

    try:
        asyncio.run(_dispatch(args, settings, log))
    except DbAssistError as e:
        log.error("command_failed", command=args.command, error=str(e))
        return 1
    except Exception as e:  # noqa: BLE001 - anything unexpected still maps to a failing exit status
        log.exception("command_failed", command=args.command, error=f"{type(e).__name__}: {e}")
        return 1
    return 0


def run() -> None:
    raise SystemExit(main())
