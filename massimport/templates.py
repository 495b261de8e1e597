"""Template hierarchy: program -> cycles -> workout templates -> template exercises -> progressions."""

from __future__ import annotations

import logging
from typing import Optional

from .config import (
    CYCLE_NUMBERS,
    DAY_NAMES,
    DAY_TYPE,
    MAX_TEST_NOTE,
    MICROS_PER_CYCLE,
    PROGRAM_CYCLES,
    PROGRAM_SLUG,
    PROGRAM_TEMPLATE,
    TRAINING_DAYS,
    micro_of_week,
    scheme_for,
    week_number,
)
from .exceptions import FatalImportError, StorageError
from .models import ImportStats, TemplateSlot
from .storage import Storage

logger = logging.getLogger(__name__)

WorkoutMap = dict[tuple[int, int], str]  # (week, day) -> program_workout id


def ensure_program_template(storage: Storage, creator_id: Optional[str], stats: ImportStats) -> str:
    """Program row by slug. Failure is fatal."""
    try:
        program_id, created = storage.get_or_create(
            "program_templates",
            {"slug": PROGRAM_SLUG},
            {**PROGRAM_TEMPLATE, "creator_id": creator_id},
        )
    except StorageError as e:
        raise FatalImportError(f"Failed to create program template: {e}") from e
    if created:
        stats.programs_created += 1
        logger.debug("Created program template: %s", program_id)
    else:
        stats.programs_existing += 1
        logger.debug("Program template exists: %s", program_id)
    return program_id


def ensure_program_cycles(storage: Storage, program_id: str, stats: ImportStats) -> dict[int, str]:
    """The 3 cycles. A missing cycle would leave the grid partial, so failure is fatal."""
    cycle_map: dict[int, str] = {}
    for cycle in PROGRAM_CYCLES:
        number = cycle["cycle_number"]
        try:
            cycle_id, created = storage.get_or_create(
                "program_cycles",
                {"program_id": program_id, "cycle_number": number},
                {k: v for k, v in cycle.items() if k != "cycle_number"},
            )
        except StorageError as e:
            raise FatalImportError(f"Failed to create cycle {number}: {e}") from e
        cycle_map[number] = cycle_id
        if created:
            stats.cycles_created += 1
            logger.debug("Created cycle %d: %s", number, cycle_id)
        else:
            stats.cycles_existing += 1
    return cycle_map


def ensure_program_workouts(
    storage: Storage,
    program_id: str,
    cycle_map: dict[int, str],
    stats: ImportStats,
) -> WorkoutMap:
    """72 workout templates (3 cycles x 4 micros x 6 training days). Failed slots are left out."""
    workout_map: WorkoutMap = {}
    for cycle in CYCLE_NUMBERS:
        cycle_id = cycle_map[cycle]
        for micro in range(1, MICROS_PER_CYCLE + 1):
            week = week_number(cycle, micro)
            for day in TRAINING_DAYS:
                try:
                    workout_id, created = storage.get_or_create(
                        "program_workouts",
                        {"program_id": program_id, "week_number": week, "day_number": day},
                        {
                            "cycle_id": cycle_id,
                            "name": f"{DAY_NAMES[day]} (C{cycle}M{micro})",
                            "workout_type": DAY_TYPE[day],
                            "notes": f"Cycle {cycle}, Micro {micro}",
                        },
                    )
                except StorageError as e:
                    stats.error(f"Failed to create workout template w{week}d{day}: {e}")
                    continue
                workout_map[(week, day)] = workout_id
                if created:
                    stats.program_workouts_created += 1
                else:
                    stats.program_workouts_existing += 1
    logger.info("%d program workouts ready", len(workout_map))
    return workout_map


def ensure_template_exercises(
    storage: Storage,
    workout_map: WorkoutMap,
    exercise_ids: dict[str, str],
    slots: dict[tuple[int, int], list[TemplateSlot]],
    stats: ImportStats,
) -> None:
    """Template exercises for each (week, day) slot, keyed by (workout template, order)."""
    for (week, day), slot_list in sorted(slots.items()):
        workout_id = workout_map.get((week, day))
        if not workout_id:
            stats.warn(f"No workout template for week {week} day {day}")
            continue
        scheme = scheme_for(week, day)
        for slot in slot_list:
            exercise_id = exercise_ids.get(slot.exercise_name)
            if not exercise_id:
                stats.warn(f'No exercise ID for "{slot.exercise_name}" in week {week} day {day}')
                continue
            try:
                _, created = storage.get_or_create(
                    "program_workout_exercises",
                    {"program_workout_id": workout_id, "exercise_order": slot.order},
                    {
                        "exercise_id": exercise_id,
                        "section": "Strength",
                        "target_sets": scheme["sets"],
                        "target_reps_min": scheme["reps"],
                        "target_reps_max": scheme["reps"],
                        "load_type": "weight",
                        "is_ad_hoc": False,
                    },
                )
            except StorageError as e:
                stats.error(f'Failed to create template exercise "{slot.exercise_name}" in w{week}d{day}: {e}')
                continue
            if created:
                stats.template_exercises_created += 1
            else:
                stats.template_exercises_existing += 1
    logger.info(
        "Template exercises: %d created, %d existing",
        stats.template_exercises_created, stats.template_exercises_existing,
    )


def ensure_progressions(storage: Storage, workout_map: WorkoutMap, stats: ImportStats) -> None:
    """One progression per (template exercise, week); the last micro of each cycle is a MAX test."""
    for (week, day), workout_id in sorted(workout_map.items()):
        scheme = scheme_for(week, day)
        note = MAX_TEST_NOTE if micro_of_week(week) == MICROS_PER_CYCLE else None
        try:
            # ad hoc rows are per-run substitutions, not part of the prescribed template
            pwes = storage.find_all("program_workout_exercises", program_workout_id=workout_id, is_ad_hoc=False)
        except StorageError as e:
            stats.error(f"Failed to read template exercises for w{week}d{day}: {e}")
            continue
        for pwe in pwes:
            try:
                _, created = storage.get_or_create(
                    "program_workout_exercise_progressions",
                    {"program_workout_exercise_id": pwe["id"], "week_number": week},
                    {
                        "volume_sets": scheme["sets"],
                        "target_reps_min": scheme["reps"],
                        "target_reps_max": scheme["reps"],
                        "week_notes": note,
                    },
                )
            except StorageError as e:
                stats.error(f"Failed to create progression for template exercise {pwe['id']} week {week}: {e}")
                continue
            if created:
                stats.progressions_created += 1
            else:
                stats.progressions_existing += 1
    logger.info("Progressions: %d created, %d existing", stats.progressions_created, stats.progressions_existing)
