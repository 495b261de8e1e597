"""
massimport command line. Usage:

    massimport --input parsed.json [--db PATH] [--user-id ID] [--verbose] [--dry-run]
               [--instance N] [--start N]
    massimport --cleanup [--db PATH] [--user-id ID]
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from .config import load_settings
from .exceptions import FatalImportError, InputError, StorageError
from .models import ImportStats
from .pipeline import cleanup_instances, load_instances, preview_import, run_import, select_instances
from .storage import Storage

logger = logging.getLogger("massimport")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="massimport", description="Import Project Mass training history.")
    parser.add_argument("--input", "-i", help="Parsed history JSON file")
    parser.add_argument("--db", help="SQLite database path (default: $MASSIMPORT_DB_PATH or massimport.db)")
    parser.add_argument("--user-id", help="Owner of the imported history (default: $MASSIMPORT_USER_ID)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every record")
    parser.add_argument("--dry-run", action="store_true", help="Preview without touching the database")
    parser.add_argument("--instance", type=int, help="Import only this instance number")
    parser.add_argument("--start", type=int, default=1, help="Skip instances numbered below this")
    parser.add_argument("--cleanup", action="store_true", help="Delete the user's imported program instances")
    return parser


def print_summary(stats: ImportStats, dry_run: bool = False) -> None:
    title = "DRY RUN PREVIEW" if dry_run else "IMPORT SUMMARY"
    print("=" * 60)
    print(title)
    print("=" * 60)
    rows = [
        ("Exercises", stats.exercises_created, stats.exercises_existing),
        ("Program templates", stats.programs_created, stats.programs_existing),
        ("Cycles", stats.cycles_created, stats.cycles_existing),
        ("Program workouts", stats.program_workouts_created, stats.program_workouts_existing),
        ("Template exercises", stats.template_exercises_created, stats.template_exercises_existing),
        ("Progressions", stats.progressions_created, stats.progressions_existing),
        ("Program instances", stats.program_instances_created, stats.program_instances_existing),
        ("Workout instances", stats.workout_instances_created, stats.workout_instances_existing),
        ("Exercise instances", stats.exercise_instances_created, stats.exercise_instances_existing),
        ("Set instances", stats.set_instances_created, stats.set_instances_existing),
    ]
    for label, created, existing in rows:
        print(f"  {label:<20} {created:>6} created {existing:>6} existing")
    print(f"  Ad hoc template exercises: {stats.template_exercises_ad_hoc}")
    print(f"  Sets: {stats.warmup_sets_created} warmup, {stats.working_sets_created} working")
    print(f"  Split workouts: {stats.split_workouts_detected}")
    if stats.workouts_skipped:
        print(f"  Workouts skipped: {stats.workouts_skipped}")
    if stats.exercises_failed:
        print(f"  Exercises failed: {stats.exercises_failed}")

    warnings = stats.unique_warnings()
    if warnings:
        print(f"\nWarnings ({len(warnings)}):")
        for w in warnings[:20]:
            print(f"  - {w}")
        if len(warnings) > 20:
            print(f"  ... and {len(warnings) - 20} more")
    errors = stats.unique_errors()
    if errors:
        print(f"\nErrors ({len(errors)}):")
        for e in errors[:20]:
            print(f"  - {e}")
        if len(errors) > 20:
            print(f"  ... and {len(errors) - 20} more")
    print("\nCompleted without errors." if stats.ok else f"\nCompleted with {len(errors)} errors.")


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.cleanup and not args.input:
        parser.error("--input is required unless --cleanup is given")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings(db_path=args.db, user_id=args.user_id)

    if args.cleanup:
        if not settings.user_id:
            parser.error("--user-id (or MASSIMPORT_USER_ID) is required for --cleanup")
        storage = Storage(settings.db_path)
        try:
            counts = cleanup_instances(storage, settings.user_id)
        except StorageError as e:
            logger.error("Cleanup failed: %s", e)
            return 1
        finally:
            storage.close()
        for table, n in counts.items():
            print(f"  {table}: {n} deleted")
        return 0

    load_stats = ImportStats()
    try:
        instances = load_instances(args.input, load_stats)
        if args.instance is not None:
            instances = select_instances(instances, args.instance)
    except InputError as e:
        logger.error("%s", e)
        return 1
    logger.info("Loaded %d program instances from %s", len(instances), args.input)

    if args.dry_run:
        print_summary(load_stats.merge(preview_import(instances)), dry_run=True)
        return 0

    if not settings.user_id:
        parser.error("--user-id (or MASSIMPORT_USER_ID) is required")

    storage = Storage(settings.db_path)
    try:
        stats = run_import(storage, instances, settings.user_id, stats=load_stats, start_from=args.start)
    except (FatalImportError, StorageError) as e:
        logger.error("Import aborted: %s", e)
        return 1
    finally:
        storage.close()
    print_summary(stats)
    return 0


if __name__ == "__main__":
    sys.exit(main())
