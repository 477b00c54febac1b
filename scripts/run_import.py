#!/usr/bin/env python3
"""
Run the import pipeline: upload a plan file into a session, validate it, and
optionally replace its (country, period, business unit) scope.

Scope entities are given by name. They must exist unless --create-scope is
passed. Tables are created on first use.

Usage:
    python3 scripts/run_import.py --profile <name> --file <path> --country <name> --period <name> [options]

Examples:
    # Validate only, print the first 20 issues
    python3 scripts/run_import.py --profile game_plan --file plan.xlsx \\
        --country Germany --period ABP2025 --business-unit Nivea --validate-only --show-issues 20

    # Full pipeline: upload, validate, scoped replace
    python3 scripts/run_import.py --profile digital_diminishing_returns --file curves.csv \\
        --country Germany --period ABP2025

    # Probe source file (row count, columns, sample) without creating a session
    python3 scripts/run_import.py --profile game_plan --file plan.csv --probe-only

Exit codes:
    0  success
    1  usage, configuration or malformed file
    2  validation found critical issues
    3  import finished with failed rows
    4  import failed and was rolled back
"""

from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_CRITICAL = 2
EXIT_PARTIAL = 3
EXIT_INTERNAL = 4


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run import pipeline: upload -> validate -> [scoped replace] using import profiles.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--profile", required=True, help="Import profile name (mediaplan_config/profiles).")
    parser.add_argument("--file", required=True, type=Path, help="Path to source file (CSV or XLSX).")
    parser.add_argument("--country", help="Scope country name.")
    parser.add_argument("--period", help="Scope financial cycle name (e.g. ABP2025).")
    parser.add_argument("--business-unit", default=None, help="Scope business unit name (optional).")
    parser.add_argument(
        "--create-scope",
        action="store_true",
        help="Create missing scope country, period and business unit.",
    )
    parser.add_argument("--actor", default=None, help="Actor recorded on the session and facts (default: OS user).")
    parser.add_argument("--db-url", default=None, help="Database URL (default: settings.yaml database_url).")
    parser.add_argument("--validate-only", action="store_true", help="Upload and validate; do not import.")
    parser.add_argument(
        "--probe-only",
        action="store_true",
        help="Probe source file (row count, columns, sample rows) and exit. No DB writes.",
    )
    parser.add_argument(
        "--show-issues",
        type=int,
        default=10,
        metavar="N",
        help="Print the first N validation issues (default: 10).",
    )
    args = parser.parse_args(argv)
    if not args.probe_only and (not args.country or not args.period):
        parser.error("--country and --period are required unless --probe-only is given")
    return args


def _resolve_scope(session_factory, args: argparse.Namespace):
    """Scope names -> ImportScope; None when a name is unknown and creation is off."""
    from mediaplan_kernel.db.engine import session_scope
    from mediaplan_ingestion.domain.types import ImportScope
    from mediaplan_ingestion.resolution import MasterDataResolver, ResolverContext

    wanted = {"country": args.country, "period": args.period, "business_unit": args.business_unit}
    ids: dict[str, int | None] = {}
    with session_scope(session_factory) as session:
        resolver = MasterDataResolver(session)
        ctx = ResolverContext(create_missing=True, actor=args.actor)
        for entity_type, name in wanted.items():
            if name is None:
                ids[entity_type] = None
                continue
            entity_id = resolver.find_id(entity_type, name)
            if entity_id is None and args.create_scope:
                entity_id = resolver.resolve_name(entity_type, name, ctx)
            if entity_id is None:
                print(
                    f"ERROR: Unknown {entity_type.replace('_', ' ')} {name!r} "
                    "(pass --create-scope to create it).",
                    file=sys.stderr,
                )
                return None
            ids[entity_type] = entity_id
    return ImportScope(
        country_id=ids["country"],
        period_id=ids["period"],
        business_unit_id=ids["business_unit"],
    )


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    args.actor = args.actor or getpass.getuser()
    source_path = args.file.resolve()
    if not source_path.is_file():
        print(f"ERROR: File not found: {source_path}", file=sys.stderr)
        return EXIT_USAGE

    # Lazy imports so we fail fast on args first
    from mediaplan_config import get_settings
    from mediaplan_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
    from mediaplan_kernel.exceptions import (
        ConfigError,
        CriticalValidationErrorsError,
        FileError,
        ImportFailedError,
        ScopeError,
    )
    from mediaplan_kernel.logging_config import LogContext, configure_logging
    from mediaplan_ingestion.domain.types import ImportOutcome
    from mediaplan_ingestion.services import ImportPipeline

    try:
        settings = get_settings()
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_USAGE
    configure_logging(level=settings.log_level)

    try:
        init_engine_from_url(args.db_url or settings.database_url)
        create_tables()
    except Exception as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return EXIT_USAGE

    session_factory = get_session_factory()
    pipeline = ImportPipeline(session_factory, settings=settings)

    if args.probe_only:
        try:
            probe = pipeline.probe(source_path, args.profile)
        except (ConfigError, FileError) as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return EXIT_USAGE
        print(f"Rows: {probe.row_count}")
        print(f"Columns: {list(probe.columns)}")
        print("Sample (first 3):")
        for i, row in enumerate(probe.sample_rows[:3], 1):
            print(f"  {i}: {row}")
        return EXIT_OK

    scope = _resolve_scope(session_factory, args)
    if scope is None:
        return EXIT_USAGE

    with LogContext.bind(actor_id=args.actor, producer="cli"):
        # Upload
        print(f"Uploading {source_path} with profile {args.profile}...")
        try:
            session_id = pipeline.upload(source_path, scope, args.profile, uploaded_by=args.actor)
        except (ConfigError, FileError, ScopeError) as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return EXIT_USAGE
        doc = pipeline.get_session(session_id)
        print(f"  Session {session_id}: {len(doc['rawRecords'])} rows, {len(doc['headers'])} columns")

        # Validate
        print("Validating...")
        summary = pipeline.validate(session_id)
        print(
            f"  Critical: {summary.critical}, Warning: {summary.warning}, "
            f"Suggestion: {summary.suggestion} (rows affected: {summary.affected_rows})"
        )
        issues = pipeline.get_session(session_id)["validationIssues"]
        for issue in issues[: max(args.show_issues, 0)]:
            row = f"Row {issue['rowIndex']}" if issue["rowIndex"] is not None else "File"
            print(f"  [{issue['severity']}] {row} {issue['fieldName']}: {issue['message']}")
        if len(issues) > args.show_issues >= 0:
            print(f"  ... and {len(issues) - args.show_issues} more issues.")

        if not summary.can_import:
            print("Import blocked: fix critical issues and upload again.")
            return EXIT_CRITICAL
        if args.validate_only:
            print("Skipping import (--validate-only).")
            return EXIT_OK

        # Import
        print("Replacing scope...")
        try:
            result = pipeline.import_session(session_id, actor=args.actor)
        except CriticalValidationErrorsError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return EXIT_CRITICAL
        except ImportFailedError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return EXIT_INTERNAL

    print(
        f"  Deleted: {result.deleted_count}, Imported: {result.success_count}/{result.total_records}, "
        f"Failed: {result.error_count}"
    )
    for kind, count in result.created_entities.items():
        print(f"  Created {count} {kind}")
    for err in result.errors:
        print(f"  Row {err.row_index}: {err.error}")
    if result.outcome == ImportOutcome.COMPLETE:
        return EXIT_OK
    return EXIT_PARTIAL


if __name__ == "__main__":
    sys.exit(main())
