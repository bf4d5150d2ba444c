"""
Command-line entry point.

Examples:
  roast-pipeline import roast.alog                     # Process into an in-memory store
  roast-pipeline import roast.alog --unit C --json     # Print the import summary as JSON
  roast-pipeline import roast.alog --database-url sqlite:///roasts.db --plot roast.png
  roast-pipeline validate roast.alog                   # Report problems without importing
  roast-pipeline backfill --database-url sqlite:///roasts.db
  roast-pipeline clear 12 --database-url sqlite:///roasts.db
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from roast_pipeline.alog import load_alog, validate_artisan_data
from roast_pipeline.backfill import BackfillService
from roast_pipeline.config import Settings
from roast_pipeline.errors import InvalidInput, RoastPipelineError
from roast_pipeline.pipeline import import_roast
from roast_pipeline.storage import InMemoryRoastStore, RoastStore

logger = logging.getLogger(__name__)


def open_store(database_url: Optional[str]) -> RoastStore:
    """SQL store for a URL, otherwise an in-memory store."""
    if not database_url:
        return InMemoryRoastStore()
    from roast_pipeline.sql_store import SqlRoastStore
    return SqlRoastStore(database_url)


def _print_phases(summary: dict) -> None:
    phases = summary["phases"]
    print(f"  - Total time: {phases['total_time_seconds']:.0f} seconds"
          + (" (fallback)" if phases["total_time_fallback"] else ""))
    print(f"  - Drying: {phases['drying_percent']:.1f}%")
    print(f"  - Maillard: {phases['maillard_percent']:.1f}%")
    print(f"  - Development: {phases['development_percent']:.1f}%")


def cmd_import(args: argparse.Namespace, settings: Settings) -> int:
    print(f"Loading {args.file}...")
    payload = load_alog(args.file)

    store = open_store(settings.database_url)
    try:
        result = import_roast(payload, store, roast_id=args.roast_id, user=args.user, settings=settings)
    finally:
        store.close()
    summary = result.summary()

    if args.json:
        print(json.dumps(summary, indent=2, default=str))
    else:
        print(f"✓ Imported '{summary['title']}' as roast {result.roast_id} ({summary['samples']} samples)")
        _print_phases(summary)
        for kind, count in summary["rows"].items():
            print(f"  - {kind}: {count}")
        if result.sanitized_count:
            print(f"  - {result.sanitized_count} implausible readings stored as null")
        for issue in result.issues:
            print(f"  ! {issue}")
        for warning in result.warnings:
            print(f"  ! {warning}")

    if args.export_csv:
        from roast_pipeline.reports import export_csv
        written = export_csv(result.processed.decomposition, args.export_csv)
        print(f"✓ Exported {len(written)} CSV files to {args.export_csv}")

    if args.plot:
        import matplotlib
        matplotlib.use("Agg")
        from roast_pipeline.plotting import plot_roast
        plot_roast(result.processed.decomposition, save_path=args.plot)
        print(f"✓ Plot saved to {args.plot}")

    return 0


def cmd_validate(args: argparse.Namespace, settings: Settings) -> int:
    payload = load_alog(args.file)
    report = validate_artisan_data(payload)
    for error in report.errors:
        print(f"ERROR: {error}")
    for warning in report.warnings:
        print(f"WARNING: {warning}")
    print("✓ Valid" if report.valid else "✗ Invalid")
    return 0 if report.valid else 1


def cmd_backfill(args: argparse.Namespace, settings: Settings) -> int:
    store = open_store(settings.database_url)
    try:
        report = BackfillService(store).run()
    finally:
        store.close()
    print(f"Scanned {report.scanned} roasts: {report.updated} updated, {report.failed} failed")
    for error in report.errors:
        print(f"  ! roast {error.roast_id}: {error}")
    return 0


def cmd_clear(args: argparse.Namespace, settings: Settings) -> int:
    store = open_store(settings.database_url)
    try:
        store.clear_roast_data(args.roast_id)
    finally:
        store.close()
    print(f"✓ Cleared data for roast {args.roast_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="roast-pipeline",
        description="Import Artisan roast logs and derive milestones and phases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:" + __doc__.split("Examples:", 1)[1],
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: ROAST_LOG_LEVEL or WARNING)",
    )

    database = argparse.ArgumentParser(add_help=False)
    database.add_argument(
        "--database-url",
        metavar="URL",
        help="SQLAlchemy database URL (default: ROAST_DATABASE_URL / DATABASE_URL, else in-memory)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_import = subparsers.add_parser("import", parents=[database], help="Import a roast log")
    p_import.add_argument("file", help="Path to an .alog, .json or Artisan .csv file")
    p_import.add_argument("--unit", choices=["F", "C"], help="Unit to store temperatures in")
    p_import.add_argument("--roast-id", type=int, help="Re-import into an existing roast")
    p_import.add_argument("--user", help="Owner recorded on a new profile")
    p_import.add_argument("--json", action="store_true", help="Print the import summary as JSON")
    p_import.add_argument("--export-csv", metavar="DIR", help="Export the decomposed rows as CSV files")
    p_import.add_argument("--plot", metavar="PNG", help="Save a roast curve plot")
    p_import.set_defaults(func=cmd_import)

    p_validate = subparsers.add_parser("validate", help="Validate a roast log without importing it")
    p_validate.add_argument("file", help="Path to an .alog, .json or Artisan .csv file")
    p_validate.set_defaults(func=cmd_validate)

    p_backfill = subparsers.add_parser("backfill", parents=[database], help="Fill null milestone and phase fields")
    p_backfill.set_defaults(func=cmd_backfill)

    p_clear = subparsers.add_parser("clear", parents=[database], help="Clear derived data for a roast")
    p_clear.add_argument("roast_id", type=int, help="Roast to clear")
    p_clear.set_defaults(func=cmd_clear)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env().override(
            database_url=getattr(args, "database_url", None),
            target_unit=getattr(args, "unit", None),
            log_level=args.log_level,
        )
    except InvalidInput as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        status = args.func(args, settings)
    except FileNotFoundError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    except RoastPipelineError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user.")
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error")
        print(f"\nUnexpected error: {e}")
        sys.exit(1)

    if status:
        sys.exit(status)


if __name__ == "__main__":
    main()
