"""Import pipeline: load parsed history, build the template skeleton, import each run."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from .correlate import WorkoutBuilder, build_template_slots, collect_exercise_names, get_workout_builder
from .exceptions import InputError
from .exercises import resolve_exercises
from .importer import ImportContext, import_instance
from .models import ImportStats, ProgramInstanceData, WorkoutData
from .normalize import exercise_slug
from .storage import Storage
from .templates import (
    ensure_program_cycles,
    ensure_program_template,
    ensure_program_workouts,
    ensure_progressions,
    ensure_template_exercises,
)

logger = logging.getLogger(__name__)


def _validate_instance(index: int, raw: Any, stats: ImportStats) -> Optional[ProgramInstanceData]:
    """One instance, workout by workout: an invalid workout is dropped, an invalid instance returns None."""
    if not isinstance(raw, dict):
        stats.error(f"Instance #{index}: expected an object, got {type(raw).__name__}")
        return None
    label = raw.get("name") or f"#{index}"
    raw_workouts = raw.get("workouts") or []
    if not isinstance(raw_workouts, list):
        stats.error(f'Instance "{label}": workouts must be a list')
        return None

    workouts: list[WorkoutData] = []
    for n, raw_workout in enumerate(raw_workouts, start=1):
        try:
            workouts.append(WorkoutData.model_validate(raw_workout))
        except ValidationError as e:
            stats.error(f'Instance "{label}": skipping invalid workout #{n}: {e}')

    try:
        instance = ProgramInstanceData.model_validate({**raw, "workouts": []})
    except ValidationError as e:
        stats.error(f'Skipping invalid instance "{label}": {e}')
        return None
    instance.workouts = workouts
    return instance


def load_instances(path: str | Path, stats: Optional[ImportStats] = None) -> list[ProgramInstanceData]:
    """
    Read parser output: a JSON list of instances or {"instances": [...]}.

    An unreadable file or a wrong top-level shape raises InputError. Invalid instances
    and workouts are recorded on stats and skipped; the rest of the history loads.
    """
    stats = stats if stats is not None else ImportStats()
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise InputError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise InputError(f"Invalid JSON in {path}: {e}") from e
    if isinstance(raw, dict):
        raw = raw.get("instances")
    if not isinstance(raw, list):
        raise InputError(f"{path}: expected a list of instances or an object with an 'instances' list")

    instances = []
    for index, raw_instance in enumerate(raw, start=1):
        instance = _validate_instance(index, raw_instance, stats)
        if instance is not None:
            instances.append(instance)
    return instances


def select_instances(instances: list[ProgramInstanceData], number: int) -> list[ProgramInstanceData]:
    selected = [i for i in instances if i.instance_number == number]
    if not selected:
        raise InputError(f"Instance {number} not found")
    return selected


def run_import(
    storage: Storage,
    instances: list[ProgramInstanceData],
    user_id: str,
    builder: WorkoutBuilder | None = None,
    stats: Optional[ImportStats] = None,
    start_from: int = 1,
) -> ImportStats:
    """
    Full import. Phase 1 resolves exercises and the template skeleton once for all runs;
    phase 2 imports each run with instance_number >= start_from.

    Raises FatalImportError if the program or its cycles cannot be created. Everything
    else is recorded on the returned stats.
    """
    stats = stats if stats is not None else ImportStats()
    builder = builder or get_workout_builder()

    logger.info("Phase 1: exercises and program template")
    names = collect_exercise_names(instances, builder)
    logger.info("%d unique exercise names", len(names))
    exercise_ids = resolve_exercises(storage, names, stats, created_by=user_id)
    logger.info("Exercises: %d created, %d existing", stats.exercises_created, stats.exercises_existing)

    program_id = ensure_program_template(storage, user_id, stats)
    cycle_map = ensure_program_cycles(storage, program_id, stats)
    workout_map = ensure_program_workouts(storage, program_id, cycle_map, stats)
    slots = build_template_slots(instances, stats, builder)
    ensure_template_exercises(storage, workout_map, exercise_ids, slots, stats)
    ensure_progressions(storage, workout_map, stats)

    logger.info("Phase 2: program instances")
    ctx = ImportContext(storage, user_id, program_id, workout_map, exercise_ids, stats)
    for instance in instances:
        if instance.instance_number < start_from:
            logger.info("Skipping instance %d (%s)", instance.instance_number, instance.name)
            continue
        logger.info("Importing instance %d: %s", instance.instance_number, instance.name)
        import_instance(ctx, instance, builder)

    logger.info("Import finished: %d rows created, %d errors", stats.rows_created(), len(stats.errors))
    return stats


def preview_import(instances: list[ProgramInstanceData], builder: WorkoutBuilder | None = None) -> ImportStats:
    """
    Dry run: what an import into an empty store would create. Touches no store;
    exercise counts are per distinct slug.
    """
    builder = builder or get_workout_builder()
    stats = ImportStats()
    names = collect_exercise_names(instances, builder)
    stats.exercises_created = len({exercise_slug(n) for n in names} - {""})

    slots = build_template_slots(instances, stats, builder)
    stats.template_exercises_created = sum(len(s) for s in slots.values())

    for instance in instances:
        stats.program_instances_created += 1
        for workout in builder(instance):
            stats.workout_instances_created += 1
            if workout.is_split:
                stats.split_workouts_detected += 1
            for ex in workout.exercises:
                stats.exercise_instances_created += 1
                stats.warmup_sets_created += len(ex.warmup_sets)
                stats.working_sets_created += len(ex.working_sets)
                stats.set_instances_created += len(ex.warmup_sets) + len(ex.working_sets)
    return stats


def cleanup_instances(storage: Storage, user_id: str) -> dict[str, int]:
    """Delete the user's imported program runs; exercises and templates stay."""
    counts = storage.delete_program_instances(user_id)
    logger.info(
        "Deleted %d program instances, %d workouts, %d exercises, %d sets",
        counts["program_instances"], counts["workout_instances"],
        counts["exercise_instances"], counts["set_instances"],
    )
    return counts
