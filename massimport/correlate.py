"""Workout correlation: per-run (week, day) workout views and the shared template slot map."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from .models import ImportStats, ProgramInstanceData, TemplateSlot, WorkoutData

logger = logging.getLogger(__name__)

# Correlation collaborator: instance -> workouts keyed by (week, day), names already cycle-remapped
WorkoutBuilder = Callable[[ProgramInstanceData], list[WorkoutData]]

_builder: Optional[WorkoutBuilder] = None  # set via set_workout_builder(); takes precedence


def set_workout_builder(fn: WorkoutBuilder | None) -> None:
    """Install a custom correlation function. Set to None to restore build_workouts."""
    global _builder
    _builder = fn


def get_workout_builder() -> WorkoutBuilder:
    return _builder or build_workouts


def _merge_split(group: list[WorkoutData]) -> WorkoutData:
    """Several occurrences of one (week, day) are one workout performed across several days."""
    ordered = sorted(group, key=lambda w: w.scheduled_date)
    first, last = ordered[0], ordered[-1]
    exercises = []
    for occurrence in ordered:
        for ex in occurrence.exercises:
            exercises.append(ex.model_copy(
                update={"performed_date": occurrence.scheduled_date, "order": len(exercises) + 1},
                deep=True,
            ))
    end_date = last.end_date or last.scheduled_date
    return first.model_copy(update={
        "end_date": end_date if end_date > first.scheduled_date else None,
        "exercises": exercises,
        "status": "completed",
    })


def build_workouts(instance: ProgramInstanceData) -> list[WorkoutData]:
    """
    Default correlation: one workout per (week, day), split occurrences merged,
    sorted by week then day.
    """
    by_key: dict[tuple[int, int], list[WorkoutData]] = {}
    for w in instance.workouts:
        by_key.setdefault(w.key, []).append(w)

    workouts: list[WorkoutData] = []
    for group in by_key.values():
        if len(group) == 1:
            workouts.append(group[0])
        else:
            workouts.append(_merge_split(group))
    workouts.sort(key=lambda w: w.key)
    return workouts


def collect_exercise_names(
    instances: Iterable[ProgramInstanceData],
    builder: WorkoutBuilder | None = None,
) -> set[str]:
    """Every exercise name the import will reference, across all cycles of all runs."""
    builder = builder or get_workout_builder()
    names: set[str] = set()
    for instance in instances:
        for w in builder(instance):
            for ex in w.exercises:
                names.add(ex.exercise_name)
    return names


def build_template_slots(
    instances: Iterable[ProgramInstanceData],
    stats: ImportStats,
    builder: WorkoutBuilder | None = None,
) -> dict[tuple[int, int], list[TemplateSlot]]:
    """
    (week, day) -> ordered exercise slots for the shared template.

    First writer wins: the template is one global prescription, so the first run that
    covers a (week, day) decides its exercises. Later runs that disagree are reported
    as warnings and do not change the map.
    """
    builder = builder or get_workout_builder()
    slots: dict[tuple[int, int], list[TemplateSlot]] = {}
    source: dict[tuple[int, int], str] = {}

    for instance in instances:
        for w in builder(instance):
            candidate = [TemplateSlot(exercise_name=ex.exercise_name, order=ex.order) for ex in w.exercises]
            if w.key not in slots:
                slots[w.key] = candidate
                source[w.key] = instance.name
                continue
            if candidate != slots[w.key]:
                _report_disagreement(stats, w.key, source[w.key], slots[w.key], instance.name, candidate)

    logger.debug("Template slots derived for %d (week, day) pairs", len(slots))
    return slots


def _report_disagreement(
    stats: ImportStats,
    key: tuple[int, int],
    first_run: str,
    kept: list[TemplateSlot],
    other_run: str,
    other: list[TemplateSlot],
) -> None:
    week, day = key
    kept_by_order = {s.order: s.exercise_name for s in kept}
    other_by_order = {s.order: s.exercise_name for s in other}
    for order in sorted(kept_by_order.keys() & other_by_order.keys()):
        if kept_by_order[order] != other_by_order[order]:
            stats.warn(
                f"Template slot week {week} day {day} order {order}: "
                f'"{first_run}" has "{kept_by_order[order]}", "{other_run}" has "{other_by_order[order]}"; '
                f"keeping first"
            )
    if len(kept) != len(other):
        stats.warn(
            f"Template slot week {week} day {day}: "
            f'"{first_run}" lists {len(kept)} exercises, "{other_run}" lists {len(other)}; keeping first'
        )
