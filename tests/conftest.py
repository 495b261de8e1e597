"""Shared fixtures: temporary sqlite stores and parsed-history factories."""

import tempfile
from datetime import date, timedelta
from pathlib import Path

import pytest

from massimport.correlate import set_workout_builder
from massimport.exceptions import StoreWriteError
from massimport.models import (
    ParsedSet,
    ProgramInstanceData,
    WorkoutData,
    WorkoutExerciseData,
)
from massimport.storage import Storage

class FailingStorage(Storage):
    """Fails inserts into one table whose values contain every given column=value pair."""

    def __init__(self, db_path, table, **match):
        super().__init__(db_path)
        self.fail_table = table
        self.match = match

    def insert(self, table, values):
        if table == self.fail_table and all(values.get(k) == v for k, v in self.match.items()):
            raise StoreWriteError(table, "simulated failure")
        return super().insert(table, values)


USER_ID = "user_test"
START = date(2020, 1, 1)


def scheduled(week: int, day: int, start: date = START) -> date:
    return start + timedelta(days=(week - 1) * 8 + (day - 1))


def exercise(name, order, warmups=(), working=()):
    """warmups / working: sequences of (weight, reps)."""
    return WorkoutExerciseData(
        exercise_name=name,
        order=order,
        warmup_sets=[ParsedSet(weight=w, reps=r) for w, r in warmups],
        working_sets=[ParsedSet(weight=w, reps=r) for w, r in working],
    )


def workout(week, day, exercises, start=START, status="completed", on=None):
    return WorkoutData(
        week_number=week,
        day_number=day,
        cycle_number=(week - 1) // 4 + 1,
        scheduled_date=on or scheduled(week, day, start),
        status=status,
        exercises=list(exercises),
    )


def instance(name, workouts, number=1, start=START, cycles=(1,), ongoing=False):
    return ProgramInstanceData(
        instance_number=number,
        name=name,
        start_date=start,
        end_date=start + timedelta(days=len(cycles) * 32),
        is_ongoing=ongoing,
        cycles=list(cycles),
        workouts=list(workouts),
    )


@pytest.fixture
def db_path():
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp) / "test.db"


@pytest.fixture
def storage(db_path):
    s = Storage(db_path)
    yield s
    s.close()


@pytest.fixture(autouse=True)
def _default_builder():
    set_workout_builder(None)
    yield
    set_workout_builder(None)
