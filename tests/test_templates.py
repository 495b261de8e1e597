"""Tests for the program template hierarchy: grid, template exercises, progressions."""

import pytest
from conftest import FailingStorage

from massimport.exceptions import FatalImportError, StoreWriteError
from massimport.models import ImportStats, TemplateSlot
from massimport.storage import Storage
from massimport.templates import (
    ensure_program_cycles,
    ensure_program_template,
    ensure_program_workouts,
    ensure_progressions,
    ensure_template_exercises,
)


class NoCycleStorage(Storage):
    def insert(self, table, values):
        if table == "program_cycles":
            raise StoreWriteError(table, "simulated failure")
        return super().insert(table, values)


def _skeleton(storage, stats):
    program_id = ensure_program_template(storage, "u1", stats)
    cycle_map = ensure_program_cycles(storage, program_id, stats)
    return program_id, ensure_program_workouts(storage, program_id, cycle_map, stats)


def test_grid_has_72_workouts(storage) -> None:
    """3 cycles x 4 micros x 6 training days, named by day and position."""
    stats = ImportStats()
    _, workout_map = _skeleton(storage, stats)
    assert len(workout_map) == 72
    assert stats.cycles_created == 3
    assert storage.count("program_workouts") == 72
    assert (4, 4) not in workout_map  # day 4 is rest
    row = storage.find_one("program_workouts", id=workout_map[(6, 5)])
    assert row["name"] == "Lower Hypertrophy (C2M2)"
    assert row["workout_type"] == "Hypertrophy"
    assert row["notes"] == "Cycle 2, Micro 2"


def test_skeleton_is_idempotent(storage) -> None:
    _skeleton(storage, ImportStats())
    stats = ImportStats()
    _, workout_map = _skeleton(storage, stats)
    assert len(workout_map) == 72
    assert stats.programs_created == 0 and stats.programs_existing == 1
    assert stats.cycles_existing == 3
    assert stats.program_workouts_created == 0
    assert stats.program_workouts_existing == 72


def test_program_row_metadata(storage) -> None:
    program_id = ensure_program_template(storage, "u1", ImportStats())
    row = storage.find_one("program_templates", id=program_id)
    assert row["slug"] == "project-mass"
    assert row["creator_id"] == "u1"
    assert row["days_per_week"] == 6
    assert "DUP" in row["tags"]


def test_cycle_failure_is_fatal(db_path) -> None:
    storage = NoCycleStorage(db_path)
    stats = ImportStats()
    program_id = ensure_program_template(storage, "u1", stats)
    with pytest.raises(FatalImportError):
        ensure_program_cycles(storage, program_id, stats)
    storage.close()


def test_template_exercises_use_scheme_targets(storage) -> None:
    """Week 4 day 1 (micro 4, strength) -> 2 sets of 3; progression marked MAX test."""
    stats = ImportStats()
    _, workout_map = _skeleton(storage, stats)
    squat = storage.insert("exercises", {"name": "Squat", "slug": "squat"})
    slots = {(4, 1): [TemplateSlot(exercise_name="Squat", order=1)]}
    ensure_template_exercises(storage, workout_map, {"Squat": squat}, slots, stats)
    ensure_progressions(storage, workout_map, stats)

    pwe = storage.find_one("program_workout_exercises", program_workout_id=workout_map[(4, 1)])
    assert pwe["exercise_id"] == squat
    assert pwe["target_sets"] == 2
    assert pwe["target_reps_min"] == pwe["target_reps_max"] == 3
    assert pwe["section"] == "Strength"
    prog = storage.find_one("program_workout_exercise_progressions", program_workout_exercise_id=pwe["id"])
    assert prog["week_number"] == 4
    assert prog["volume_sets"] == 2
    assert prog["week_notes"] == "MAX test"
    assert stats.template_exercises_created == 1
    assert stats.progressions_created == 1


def test_non_max_week_has_no_note(storage) -> None:
    stats = ImportStats()
    _, workout_map = _skeleton(storage, stats)
    curl = storage.insert("exercises", {"name": "Curl", "slug": "curl"})
    ensure_template_exercises(storage, workout_map, {"Curl": curl}, {(2, 7): [TemplateSlot(exercise_name="Curl", order=1)]}, stats)
    ensure_progressions(storage, workout_map, stats)
    prog = storage.find_one("program_workout_exercise_progressions", week_number=2)
    assert prog["week_notes"] is None
    assert prog["volume_sets"] == 5
    assert prog["target_reps_min"] == 10


def test_unresolved_exercise_warns_and_skips(storage) -> None:
    stats = ImportStats()
    _, workout_map = _skeleton(storage, stats)
    ensure_template_exercises(storage, workout_map, {}, {(1, 1): [TemplateSlot(exercise_name="Mystery", order=1)]}, stats)
    assert storage.count("program_workout_exercises") == 0
    assert any('"Mystery"' in w for w in stats.warnings)


def test_program_failure_is_fatal(db_path) -> None:
    storage = FailingStorage(db_path, "program_templates")
    with pytest.raises(FatalImportError):
        ensure_program_template(storage, "u1", ImportStats())
    assert storage.count("program_cycles") == 0
    storage.close()


def test_failed_workout_template_left_out_of_map(db_path) -> None:
    """One template insert fails: error recorded, the other 71 slots still built."""
    storage = FailingStorage(db_path, "program_workouts", week_number=1, day_number=2)
    stats = ImportStats()
    _, workout_map = _skeleton(storage, stats)
    assert len(workout_map) == 71
    assert (1, 2) not in workout_map
    assert stats.program_workouts_created == 71
    assert any(e.startswith("Failed to create workout template w1d2") for e in stats.errors)
    storage.close()
