"""Pydantic models for massimport: parsed history (parser contract), template slots, run stats."""

from __future__ import annotations

import logging
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .config import CYCLE_NUMBERS
from .normalize import round_volume

logger = logging.getLogger(__name__)

DifficultyRating = Literal["e", "em", "m", "mh", "h", "vh"]
WorkoutStatus = Literal["completed", "skipped"]


class _ParserModel(BaseModel):
    """Accepts the parser's camelCase keys as well as snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Parsed history (produced by the upstream parser) ---

class ParsedSet(_ParserModel):
    reps: int = Field(ge=0)
    weight: float = 0.0  # lbs
    difficulty: Optional[DifficultyRating] = None
    increase_weight: bool = False  # "increase weight next time" marker
    raw: str = ""

    @property
    def volume(self) -> float:
        return self.weight * self.reps


class WorkoutExerciseData(_ParserModel):
    exercise_name: str
    order: int = Field(ge=1)
    notes: str = ""
    performed_date: Optional[date] = None  # set for split workouts
    warmup_sets: list[ParsedSet] = Field(default_factory=list)
    working_sets: list[ParsedSet] = Field(default_factory=list)

    @property
    def has_sets(self) -> bool:
        return bool(self.warmup_sets or self.working_sets)

    def numbered_sets(self) -> list[tuple[int, ParsedSet, bool]]:
        """(set_number, set, is_warmup): warmups first, then working sets, numbered 1..N."""
        ordered = [(s, True) for s in self.warmup_sets] + [(s, False) for s in self.working_sets]
        return [(i + 1, s, is_warmup) for i, (s, is_warmup) in enumerate(ordered)]


class WorkoutData(_ParserModel):
    """One (week, day) workout occurrence, exercise names already remapped for its cycle."""
    week_number: int = Field(ge=1)
    day_number: int = Field(ge=1)  # off-grid days (4, 8) are reported at import, not rejected here
    cycle_number: int = 1
    scheduled_date: date
    end_date: Optional[date] = None  # set for split workouts
    status: WorkoutStatus = "completed"
    exercises: list[WorkoutExerciseData] = Field(default_factory=list)

    @property
    def key(self) -> tuple[int, int]:
        return (self.week_number, self.day_number)

    @property
    def is_split(self) -> bool:
        return self.end_date is not None and self.end_date > self.scheduled_date

    @property
    def total_volume_lbs(self) -> int:
        """Sum of weight x reps over warmup and working sets of every exercise."""
        total = sum(
            s.volume
            for ex in self.exercises
            for s in ex.warmup_sets + ex.working_sets
        )
        return round_volume(total)


class ProgramInstanceData(_ParserModel):
    """One historical run through the program."""
    instance_number: int
    name: str
    start_date: date
    end_date: date
    is_ongoing: bool = False
    cycles: list[int] = Field(min_length=1)  # e.g. [1], [1, 2], [1, 2, 3]
    workouts: list[WorkoutData] = Field(default_factory=list)

    @field_validator("cycles")
    @classmethod
    def _check_cycles(cls, v: list[int]) -> list[int]:
        bad = [c for c in v if c not in CYCLE_NUMBERS]
        if bad:
            raise ValueError(f"unknown cycle numbers: {bad}")
        return v

    @model_validator(mode="after")
    def _check_dates(self) -> "ProgramInstanceData":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


# --- Template slots (correlation output) ---

class TemplateSlot(BaseModel):
    exercise_name: str
    order: int


# --- Run stats ---

class ImportStats(BaseModel):
    """Run-wide accumulator; created by the caller and passed into every phase."""
    exercises_created: int = 0
    exercises_existing: int = 0
    exercises_failed: int = 0
    programs_created: int = 0
    programs_existing: int = 0
    cycles_created: int = 0
    cycles_existing: int = 0
    program_workouts_created: int = 0
    program_workouts_existing: int = 0
    template_exercises_created: int = 0
    template_exercises_existing: int = 0
    template_exercises_ad_hoc: int = 0
    progressions_created: int = 0
    progressions_existing: int = 0
    program_instances_created: int = 0
    program_instances_existing: int = 0
    workout_instances_created: int = 0
    workout_instances_existing: int = 0
    exercise_instances_created: int = 0
    exercise_instances_existing: int = 0
    set_instances_created: int = 0
    set_instances_existing: int = 0
    warmup_sets_created: int = 0
    working_sets_created: int = 0
    split_workouts_detected: int = 0
    workouts_skipped: int = 0
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)

    def error(self, message: str) -> None:
        self.errors.append(message)
        logger.error(message)

    def merge(self, other: "ImportStats") -> "ImportStats":
        """Add another stats value's counters and messages into this one."""
        for name in type(self).model_fields:
            value = getattr(other, name)
            if isinstance(value, list):
                getattr(self, name).extend(value)
            else:
                setattr(self, name, getattr(self, name) + value)
        return self

    @property
    def ok(self) -> bool:
        return not self.errors

    def unique_warnings(self) -> list[str]:
        return list(dict.fromkeys(self.warnings))

    def unique_errors(self) -> list[str]:
        return list(dict.fromkeys(self.errors))

    def rows_created(self) -> int:
        """Total rows inserted across every table during this run."""
        created = sum(
            getattr(self, name)
            for name in type(self).model_fields
            if name.endswith("_created") and name not in ("warmup_sets_created", "working_sets_created")
        )
        return created + self.template_exercises_ad_hoc
