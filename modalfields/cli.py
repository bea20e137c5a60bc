"""Command line entry point: ``modalfields check|update|migration|dump``."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from modalfields.config import DEFAULT_CONFIG, build_registry, load_settings, schema_source
from modalfields.dump_schemas import dump_schema
from modalfields.errors import ConfigError
from modalfields.generate_migration import generate_migration
from modalfields.models import discover_models
from modalfields.tasks import check_equal, check_report, plan_updates, update


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="modalfields",
        description="Keep the fields blocks of model files in sync with the database schema",
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG, help="Settings file (default: modalfields.yml)")
    parser.add_argument("--root", default=None, help="Project root (default: directory of the settings file)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("check", help="Report the differences between declarations and schema")

    update_parser = sub.add_parser("update", help="Rewrite the fields blocks of out of date models")
    update_parser.add_argument(
        "--no-modify",
        action="store_true",
        help="Write each result next to the model as *_with_fields.rb instead of replacing it",
    )
    update_parser.add_argument("--check", action="store_true", help="Verify models are up-to-date without writing")

    sub.add_parser("migration", help="Print the migration that brings the schema to the declarations")

    dump_parser = sub.add_parser("dump", help="Dump a SQLite database schema to the YAML snapshot")
    dump_parser.add_argument("--database", default=None, help="SQLite database (default: the configured one)")
    dump_parser.add_argument("--output", default=None, help="Snapshot file (default: the configured one)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config_path = Path(args.config)
    root = Path(args.root) if args.root else None

    try:
        settings = load_settings(config_path, root)

        if args.command == "dump":
            database = Path(args.database) if args.database else settings.database_path
            output = Path(args.output) if args.output else settings.schema_path
            if database is None or output is None:
                raise ConfigError("dump needs a database and an output snapshot")
            count = dump_schema(database, output)
            print(f"Dumped {count} tables to {output}")
            return 0

        registry = build_registry(settings)
        models = discover_models(settings.models_dir, schema_source(settings), registry, settings.pattern)
        policy = settings.primary_key_policy

        if args.command == "check":
            print(check_report(models, registry, policy, settings.root))
            return 0

        if args.command == "migration":
            print(generate_migration(models, registry, policy))
            return 0

        if args.check:
            updates, failures = plan_updates(models, registry, policy)
            for failure in failures:
                print(f"[skip] {failure}", file=sys.stderr)
            ok = all([check_equal(item.path, item.updated) for item in updates])
            return 0 if ok and not failures else 1

        for path in update(models, registry, policy, modify=not args.no_modify):
            print(f"Updated {path}")
        return 0
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
