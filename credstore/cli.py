from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from credstore.core.logging import configure_logging
from credstore.core.settings import get_settings
from credstore.db.session import get_engine
from credstore.queries.catalog import QueryCatalog
from credstore.schema.runner import MigrationRunner
from credstore.utils.errors import AppError


logger = logging.getLogger("credstore.cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage the credstore schema and queries")
    parser.add_argument("--migrations-dir", type=Path, help="Override the migrations directory")
    parser.add_argument("--queries-dir", type=Path, help="Override the queries directory")
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate = subparsers.add_parser("migrate", help="Apply pending migrations")
    migrate.add_argument("--target", type=int, help="Stop after this migration version")

    subparsers.add_parser("status", help="Show applied and pending migrations")
    subparsers.add_parser("queries", help="List named queries and their parameter counts")
    return parser.parse_args(argv)


def _runner(args: argparse.Namespace) -> MigrationRunner:
    settings = get_settings()
    return MigrationRunner(
        get_engine(),
        args.migrations_dir or settings.migrations_dir,
        validate_checksums=settings.migrations_validate_checksums,
        ignore_missing=settings.migrations_ignore_missing,
    )


def cmd_migrate(args: argparse.Namespace) -> int:
    applied = _runner(args).run(target_version=args.target)
    if not applied:
        print("Schema is up to date")
    for migration in applied:
        print(f"Applied {migration.name}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    status = _runner(args).status()
    for record in status.applied:
        print(f"applied  {record.version}  {record.description}  {record.applied_at}")
    for migration in status.pending:
        print(f"pending  {migration.version}  {migration.description}")
    print(f"current version: {status.current_version or '-'}")
    return 0


def cmd_queries(args: argparse.Namespace) -> int:
    catalog = QueryCatalog.load(args.queries_dir or get_settings().queries_dir)
    for query in catalog:
        print(f"{query.name}  ({query.param_count} parameter(s))")
    return 0


COMMANDS = {
    "migrate": cmd_migrate,
    "status": cmd_status,
    "queries": cmd_queries,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level, settings.app_name)
    try:
        return COMMANDS[args.command](args)
    except AppError as exc:
        logger.error(exc.detail.code, extra={"detail": exc.detail.message})
        print(exc.detail.message, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
