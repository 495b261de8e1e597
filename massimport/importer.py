"""Instance import: program run -> workout instances -> exercise instances -> set instances."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Optional

from .config import DAYS_PER_MICRO, DEFAULT_TARGET_SETS, MICROS_PER_CYCLE, TRAINING_DAYS
from .correlate import WorkoutBuilder, get_workout_builder
from .exceptions import StorageError
from .models import ImportStats, ParsedSet, ProgramInstanceData, WorkoutData, WorkoutExerciseData
from .normalize import format_date, format_timestamp
from .storage import Storage

logger = logging.getLogger(__name__)


class ImportContext:
    """Everything one run threads through the instance import: store, owner, id maps, stats."""

    def __init__(
        self,
        storage: Storage,
        user_id: str,
        program_id: str,
        workout_map: dict[tuple[int, int], str],
        exercise_ids: dict[str, str],
        stats: ImportStats,
    ):
        self.storage = storage
        self.user_id = user_id
        self.program_id = program_id
        self.workout_map = workout_map
        self.exercise_ids = exercise_ids
        self.stats = stats


# --- Template exercise resolution ---
# Each strategy returns a program_workout_exercise id or None. Identity is authoritative,
# an open slot at the same position is a heuristic, creating a row is the last resort.

TemplateExerciseResolver = Callable[[ImportContext, str, str, int], Optional[str]]


def match_by_exercise(ctx: ImportContext, program_workout_id: str, exercise_id: str, order: int) -> Optional[str]:
    """Template exercise for the same exercise in this workout template."""
    rows = ctx.storage.find_all(
        "program_workout_exercises", program_workout_id=program_workout_id, exercise_id=exercise_id
    )
    if not rows:
        return None
    same_position = [r for r in rows if r["exercise_order"] == order]
    return (same_position or rows)[0]["id"]


def match_by_open_position(ctx: ImportContext, program_workout_id: str, exercise_id: str, order: int) -> Optional[str]:
    """
    Template slot at the same order with no exercise assigned yet. The import always
    assigns an exercise; open slots come from templates authored with placeholder rows.
    """
    return ctx.storage.find_id(
        "program_workout_exercises",
        program_workout_id=program_workout_id,
        exercise_order=order,
        exercise_id=None,
    )


def create_ad_hoc(ctx: ImportContext, program_workout_id: str, exercise_id: str, order: int) -> Optional[str]:
    """New template exercise for a substitution the template never captured."""
    storage = ctx.storage
    slot_taken = storage.find_id(
        "program_workout_exercises", program_workout_id=program_workout_id, exercise_order=order
    )
    if slot_taken:
        highest = storage.max_value("program_workout_exercises", "exercise_order", program_workout_id=program_workout_id)
        order = (highest or 0) + 1
    pwe_id = storage.insert("program_workout_exercises", {
        "program_workout_id": program_workout_id,
        "exercise_id": exercise_id,
        "exercise_order": order,
        "section": "Strength",
        "target_sets": DEFAULT_TARGET_SETS,
        "load_type": "weight",
        "is_ad_hoc": True,
    })
    ctx.stats.template_exercises_ad_hoc += 1
    logger.debug("Created ad hoc template exercise %s at order %d", pwe_id, order)
    return pwe_id


TEMPLATE_EXERCISE_RESOLVERS: tuple[TemplateExerciseResolver, ...] = (
    match_by_exercise,
    match_by_open_position,
    create_ad_hoc,
)


def resolve_template_exercise(
    ctx: ImportContext,
    program_workout_id: str,
    exercise_id: str,
    order: int,
) -> Optional[tuple[str, str]]:
    """(program_workout_exercise id, name of the strategy that matched)."""
    for resolver in TEMPLATE_EXERCISE_RESOLVERS:
        pwe_id = resolver(ctx, program_workout_id, exercise_id, order)
        if pwe_id is not None:
            return pwe_id, resolver.__name__
    return None


# --- Program instance ---

def _ensure_program_instance(ctx: ImportContext, instance: ProgramInstanceData) -> Optional[str]:
    storage, stats = ctx.storage, ctx.stats
    key = {"user_id": ctx.user_id, "program_id": ctx.program_id, "instance_name": instance.name}
    try:
        existing = storage.find_id("program_instances", **key)
    except StorageError as e:
        stats.error(f'Failed to look up instance "{instance.name}": {e}')
        return None
    if existing:
        stats.program_instances_existing += 1
        logger.debug("Instance exists: %s -> %s", instance.name, existing)
        return existing

    # Derived once at creation; not recomputed on resume.
    total_micros = max(instance.cycles) * MICROS_PER_CYCLE
    expected_end = instance.start_date + timedelta(days=total_micros * DAYS_PER_MICRO)
    try:
        program_instance_id = storage.insert("program_instances", {
            **key,
            "start_date": format_date(instance.start_date),
            "expected_end_date": format_date(expected_end),
            "actual_end_date": None if instance.is_ongoing else format_date(instance.end_date),
            "current_week": 1 if instance.is_ongoing else total_micros,
            "current_day": 1 if instance.is_ongoing else TRAINING_DAYS[-1],
            "status": "active" if instance.is_ongoing else "completed",
            "workouts_completed": 0,
            "total_workouts": total_micros * len(TRAINING_DAYS),
        })
    except StorageError as e:
        stats.error(f'Failed to create instance "{instance.name}": {e}')
        return None
    stats.program_instances_created += 1
    logger.debug("Created instance: %s -> %s", instance.name, program_instance_id)
    return program_instance_id


def import_instance(
    ctx: ImportContext,
    instance: ProgramInstanceData,
    builder: WorkoutBuilder | None = None,
) -> Optional[str]:
    """Import one historical run. Returns the program instance id, or None if it could not be created."""
    program_instance_id = _ensure_program_instance(ctx, instance)
    if program_instance_id is None:
        return None

    workouts = (builder or get_workout_builder())(instance)
    logger.info("%s: %d workouts to import", instance.name, len(workouts))

    for workout in workouts:
        try:
            import_workout(ctx, workout, program_instance_id)
        except StorageError as e:
            ctx.stats.error(f"Error importing workout w{workout.week_number}d{workout.day_number} of \"{instance.name}\": {e}")

    try:
        completed = ctx.storage.count("workout_instances", program_instance_id=program_instance_id, status="completed")
        ctx.storage.update("program_instances", program_instance_id, {"workouts_completed": completed})
    except StorageError as e:
        ctx.stats.error(f'Failed to update workouts_completed for "{instance.name}": {e}')
    return program_instance_id


# --- Workout / exercise / set ---

def import_workout(ctx: ImportContext, workout: WorkoutData, program_instance_id: str) -> Optional[str]:
    storage, stats = ctx.storage, ctx.stats
    week, day = workout.key
    program_workout_id = ctx.workout_map.get(workout.key)
    if not program_workout_id:
        stats.warn(f"No workout template for week {week} day {day}")
        stats.workouts_skipped += 1
        return None

    total_volume = workout.total_volume_lbs
    existing = storage.find_id("workout_instances", program_instance_id=program_instance_id, week_number=week, day_number=day)

    if existing:
        workout_instance_id = existing
        stats.workout_instances_existing += 1
        logger.debug("Workout exists: w%dd%d", week, day)
        try:
            storage.update("workout_instances", workout_instance_id, {"total_volume_lbs": total_volume})
        except StorageError as e:
            stats.error(f"Failed to update volume for workout w{week}d{day}: {e}")
    else:
        values = {
            "program_instance_id": program_instance_id,
            "program_workout_id": program_workout_id,
            "user_id": ctx.user_id,
            "scheduled_date": format_date(workout.scheduled_date),
            "week_number": week,
            "day_number": day,
            "status": workout.status,
            "completed_at": format_timestamp(workout.scheduled_date) if workout.status == "completed" else None,
            "total_volume_lbs": total_volume,
        }
        if workout.is_split:
            values["end_date"] = format_date(workout.end_date)
        try:
            workout_instance_id = storage.insert("workout_instances", values)
        except StorageError as e:
            stats.error(f"Failed to create workout w{week}d{day}: {e}")
            return None
        stats.workout_instances_created += 1
        if workout.is_split:
            stats.split_workouts_detected += 1

    # Exercises are imported whether or not the workout row was new, so a prior partial run resumes.
    for exercise in workout.exercises:
        try:
            import_exercise(ctx, exercise, workout, workout_instance_id, program_workout_id)
        except StorageError as e:
            stats.error(f'Error importing exercise "{exercise.exercise_name}" in w{week}d{day}: {e}')
    return workout_instance_id


def import_exercise(
    ctx: ImportContext,
    exercise: WorkoutExerciseData,
    workout: WorkoutData,
    workout_instance_id: str,
    program_workout_id: str,
) -> Optional[str]:
    storage, stats = ctx.storage, ctx.stats
    name = exercise.exercise_name
    exercise_id = ctx.exercise_ids.get(name)
    if not exercise_id:
        stats.warn(f'No exercise ID for "{name}"')
        return None

    try:
        resolved = resolve_template_exercise(ctx, program_workout_id, exercise_id, exercise.order)
    except StorageError as e:
        stats.error(f'Failed to create template exercise for "{name}": {e}')
        return None
    pwe_id = None
    if resolved:
        pwe_id, strategy = resolved
        logger.debug('Template exercise for "%s" (order %d) via %s: %s', name, exercise.order, strategy, pwe_id)

    existing = storage.find_id("exercise_instances", workout_instance_id=workout_instance_id, exercise_order=exercise.order)
    if existing:
        exercise_instance_id = existing
        stats.exercise_instances_existing += 1
    else:
        values = {
            "workout_instance_id": workout_instance_id,
            "program_workout_exercise_id": pwe_id,
            "exercise_id": exercise_id,
            "user_id": ctx.user_id,
            "exercise_order": exercise.order,
            "status": "completed" if exercise.has_sets else "skipped",
            "notes": exercise.notes or None,
        }
        if exercise.performed_date and workout.is_split:
            values["performed_date"] = format_date(exercise.performed_date)
        try:
            exercise_instance_id = storage.insert("exercise_instances", values)
        except StorageError as e:
            stats.error(f'Failed to create exercise instance "{name}" (order {exercise.order}): {e}')
            return None
        stats.exercise_instances_created += 1

    for set_number, parsed_set, is_warmup in exercise.numbered_sets():
        import_set(ctx, parsed_set, exercise_instance_id, set_number, is_warmup, name)
    return exercise_instance_id


def import_set(
    ctx: ImportContext,
    parsed_set: ParsedSet,
    exercise_instance_id: str,
    set_number: int,
    is_warmup: bool,
    exercise_name: str = "",
) -> Optional[str]:
    storage, stats = ctx.storage, ctx.stats
    existing = storage.find_id("set_instances", exercise_instance_id=exercise_instance_id, set_number=set_number)
    if existing:
        stats.set_instances_existing += 1
        return existing

    values = {
        "exercise_instance_id": exercise_instance_id,
        "user_id": ctx.user_id,
        "set_number": set_number,
        "actual_reps": parsed_set.reps,
        "actual_weight_lbs": parsed_set.weight,
        "is_warmup": is_warmup,
        "is_failure": False,
        "increase_weight": parsed_set.increase_weight,
    }
    if parsed_set.difficulty:
        values["difficulty_rating"] = parsed_set.difficulty
    try:
        set_id = storage.insert("set_instances", values)
    except StorageError as e:
        stats.error(f'Failed to create set {set_number} of "{exercise_name}" ({exercise_instance_id}): {e}')
        return None
    stats.set_instances_created += 1
    if is_warmup:
        stats.warmup_sets_created += 1
    else:
        stats.working_sets_created += 1
    return set_id
