"""SQLite storage layer for exercises, the program template hierarchy, and imported instances."""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import date
from pathlib import Path
from typing import Any, Optional

from .exceptions import StorageError, StoreWriteError, UniqueConflictError


def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> dict:
    return {col[0]: row[i] for i, col in enumerate(cursor.description)}


# table -> (id prefix, writable columns)
TABLES: dict[str, tuple[str, frozenset[str]]] = {
    "exercises": ("ex", frozenset({
        "name", "slug", "description", "created_by", "category", "muscle_groups", "equipment",
    })),
    "program_templates": ("prog", frozenset({
        "title", "subtitle", "slug", "description", "creator_name", "creator_id",
        "duration_weeks", "days_per_week", "minutes_per_session", "primary_goal",
        "difficulty_level", "training_style", "is_published", "is_featured", "tags",
        "equipment_required",
    })),
    "program_cycles": ("cyc", frozenset({
        "program_id", "cycle_number", "name", "description", "duration_weeks",
    })),
    "program_workouts": ("pw", frozenset({
        "program_id", "cycle_id", "week_number", "day_number", "name", "workout_type", "notes",
    })),
    "program_workout_exercises": ("pwe", frozenset({
        "program_workout_id", "exercise_id", "exercise_order", "section", "target_sets",
        "target_reps_min", "target_reps_max", "load_type", "is_ad_hoc",
    })),
    "program_workout_exercise_progressions": ("prg", frozenset({
        "program_workout_exercise_id", "week_number", "volume_sets", "target_reps_min",
        "target_reps_max", "week_notes",
    })),
    "program_instances": ("pi", frozenset({
        "user_id", "program_id", "instance_name", "start_date", "expected_end_date",
        "actual_end_date", "current_week", "current_day", "status", "workouts_completed",
        "total_workouts",
    })),
    "workout_instances": ("wi", frozenset({
        "program_instance_id", "program_workout_id", "user_id", "scheduled_date", "end_date",
        "week_number", "day_number", "status", "completed_at", "total_volume_lbs",
    })),
    "exercise_instances": ("ei", frozenset({
        "workout_instance_id", "program_workout_exercise_id", "exercise_id", "user_id",
        "exercise_order", "status", "notes", "performed_date",
    })),
    "set_instances": ("si", frozenset({
        "exercise_instance_id", "user_id", "set_number", "actual_reps", "actual_weight_lbs",
        "is_warmup", "is_failure", "difficulty_rating", "increase_weight",
    })),
}

# Columns stored as JSON text
_JSON_COLUMNS = frozenset({"muscle_groups", "equipment", "tags", "equipment_required"})


def _encode(column: str, value: Any) -> Any:
    if value is None:
        return None
    if column in _JSON_COLUMNS:
        return json.dumps(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def _decode(row: dict) -> dict:
    for col in _JSON_COLUMNS & row.keys():
        if row[col] is not None:
            row[col] = json.loads(row[col])
    return row


class Storage:
    """SQLite-backed relational store. Point lookups by natural key and single-row writes only."""

    def __init__(self, db_path: str | Path = "massimport.db"):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self._conn = sqlite3.connect(str(self.db_path))
                self._conn.row_factory = _dict_factory
                self._conn.execute("PRAGMA foreign_keys = ON")
                self._ensure_schema()
            except sqlite3.Error as e:
                self.close()
                raise StorageError(f"cannot open {self.db_path}: {e}") from e
        return self._conn

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def _ensure_schema(self) -> None:
        conn = self.connect()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS exercises (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                slug TEXT NOT NULL UNIQUE,
                description TEXT,
                created_by TEXT,
                category TEXT,
                muscle_groups TEXT,
                equipment TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            CREATE TABLE IF NOT EXISTS program_templates (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                subtitle TEXT,
                slug TEXT NOT NULL UNIQUE,
                description TEXT,
                creator_name TEXT,
                creator_id TEXT,
                duration_weeks INTEGER,
                days_per_week INTEGER,
                minutes_per_session INTEGER,
                primary_goal TEXT,
                difficulty_level TEXT,
                training_style TEXT,
                is_published INTEGER NOT NULL DEFAULT 0,
                is_featured INTEGER NOT NULL DEFAULT 0,
                tags TEXT,
                equipment_required TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            CREATE TABLE IF NOT EXISTS program_cycles (
                id TEXT PRIMARY KEY,
                program_id TEXT NOT NULL REFERENCES program_templates(id),
                cycle_number INTEGER NOT NULL,
                name TEXT,
                description TEXT,
                duration_weeks INTEGER,
                UNIQUE (program_id, cycle_number)
            );
            CREATE TABLE IF NOT EXISTS program_workouts (
                id TEXT PRIMARY KEY,
                program_id TEXT NOT NULL REFERENCES program_templates(id),
                cycle_id TEXT REFERENCES program_cycles(id),
                week_number INTEGER NOT NULL,
                day_number INTEGER NOT NULL,
                name TEXT,
                workout_type TEXT,
                notes TEXT,
                UNIQUE (program_id, week_number, day_number)
            );
            CREATE TABLE IF NOT EXISTS program_workout_exercises (
                id TEXT PRIMARY KEY,
                program_workout_id TEXT NOT NULL REFERENCES program_workouts(id),
                exercise_id TEXT REFERENCES exercises(id),
                exercise_order INTEGER NOT NULL,
                section TEXT,
                target_sets INTEGER,
                target_reps_min INTEGER,
                target_reps_max INTEGER,
                load_type TEXT,
                is_ad_hoc INTEGER NOT NULL DEFAULT 0,
                UNIQUE (program_workout_id, exercise_order)
            );
            CREATE TABLE IF NOT EXISTS program_workout_exercise_progressions (
                id TEXT PRIMARY KEY,
                program_workout_exercise_id TEXT NOT NULL REFERENCES program_workout_exercises(id),
                week_number INTEGER NOT NULL,
                volume_sets INTEGER,
                target_reps_min INTEGER,
                target_reps_max INTEGER,
                week_notes TEXT,
                UNIQUE (program_workout_exercise_id, week_number)
            );
            CREATE TABLE IF NOT EXISTS program_instances (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                program_id TEXT NOT NULL REFERENCES program_templates(id),
                instance_name TEXT NOT NULL,
                start_date TEXT NOT NULL,
                expected_end_date TEXT,
                actual_end_date TEXT,
                current_week INTEGER,
                current_day INTEGER,
                status TEXT NOT NULL,
                workouts_completed INTEGER NOT NULL DEFAULT 0,
                total_workouts INTEGER,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                UNIQUE (user_id, program_id, instance_name)
            );
            CREATE TABLE IF NOT EXISTS workout_instances (
                id TEXT PRIMARY KEY,
                program_instance_id TEXT NOT NULL REFERENCES program_instances(id) ON DELETE CASCADE,
                program_workout_id TEXT NOT NULL REFERENCES program_workouts(id),
                user_id TEXT NOT NULL,
                scheduled_date TEXT NOT NULL,
                end_date TEXT,
                week_number INTEGER NOT NULL,
                day_number INTEGER NOT NULL,
                status TEXT NOT NULL,
                completed_at TEXT,
                total_volume_lbs INTEGER NOT NULL DEFAULT 0,
                UNIQUE (program_instance_id, week_number, day_number)
            );
            CREATE TABLE IF NOT EXISTS exercise_instances (
                id TEXT PRIMARY KEY,
                workout_instance_id TEXT NOT NULL REFERENCES workout_instances(id) ON DELETE CASCADE,
                program_workout_exercise_id TEXT REFERENCES program_workout_exercises(id),
                exercise_id TEXT NOT NULL REFERENCES exercises(id),
                user_id TEXT NOT NULL,
                exercise_order INTEGER NOT NULL,
                status TEXT NOT NULL,
                notes TEXT,
                performed_date TEXT,
                UNIQUE (workout_instance_id, exercise_order)
            );
            CREATE TABLE IF NOT EXISTS set_instances (
                id TEXT PRIMARY KEY,
                exercise_instance_id TEXT NOT NULL REFERENCES exercise_instances(id) ON DELETE CASCADE,
                user_id TEXT NOT NULL,
                set_number INTEGER NOT NULL,
                actual_reps INTEGER NOT NULL,
                actual_weight_lbs REAL NOT NULL,
                is_warmup INTEGER NOT NULL DEFAULT 0,
                is_failure INTEGER NOT NULL DEFAULT 0,
                difficulty_rating TEXT,
                increase_weight INTEGER NOT NULL DEFAULT 0,
                UNIQUE (exercise_instance_id, set_number)
            );
            CREATE INDEX IF NOT EXISTS idx_pwe_exercise ON program_workout_exercises(program_workout_id, exercise_id);
            CREATE INDEX IF NOT EXISTS idx_program_instances_user ON program_instances(user_id);
        """)
        conn.commit()

    # --- Column checking ---

    @staticmethod
    def _columns(table: str) -> frozenset[str]:
        if table not in TABLES:
            raise StorageError(f"unknown table: {table}")
        return TABLES[table][1]

    def _where(self, table: str, where: dict[str, Any]) -> tuple[str, list]:
        allowed = self._columns(table) | {"id"}
        clauses: list[str] = []
        params: list = []
        for col, value in where.items():
            if col not in allowed:
                raise StorageError(f"unknown column {table}.{col}")
            if value is None:
                clauses.append(f"{col} IS NULL")
            else:
                clauses.append(f"{col} = ?")
                params.append(_encode(col, value))
        return (" WHERE " + " AND ".join(clauses)) if clauses else "", params

    # --- Reads ---

    def find_one(self, table: str, **where: Any) -> Optional[dict]:
        """First row matching the natural key, or None."""
        clause, params = self._where(table, where)
        try:
            row = self.connect().execute(
                f"SELECT * FROM {table}{clause} ORDER BY rowid LIMIT 1", params
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"{table}: lookup failed: {e}") from e
        return _decode(row) if row else None

    def find_id(self, table: str, **where: Any) -> Optional[str]:
        row = self.find_one(table, **where)
        return row["id"] if row else None

    def find_all(self, table: str, **where: Any) -> list[dict]:
        clause, params = self._where(table, where)
        try:
            rows = self.connect().execute(f"SELECT * FROM {table}{clause} ORDER BY rowid", params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"{table}: query failed: {e}") from e
        return [_decode(r) for r in rows]

    def count(self, table: str, **where: Any) -> int:
        clause, params = self._where(table, where)
        try:
            row = self.connect().execute(f"SELECT COUNT(*) AS n FROM {table}{clause}", params).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"{table}: count failed: {e}") from e
        return row["n"]

    def max_value(self, table: str, column: str, **where: Any) -> Optional[int]:
        if column not in self._columns(table):
            raise StorageError(f"unknown column {table}.{column}")
        clause, params = self._where(table, where)
        try:
            row = self.connect().execute(f"SELECT MAX({column}) AS m FROM {table}{clause}", params).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"{table}: query failed: {e}") from e
        return row["m"]

    # --- Writes ---

    def insert(self, table: str, values: dict[str, Any]) -> str:
        """Insert one row; return its generated id."""
        allowed = self._columns(table)
        unknown = set(values) - allowed
        if unknown:
            raise StorageError(f"unknown columns for {table}: {sorted(unknown)}")
        row_id = generate_id(TABLES[table][0])
        cols = ["id", *values.keys()]
        params = [row_id, *(_encode(c, v) for c, v in values.items())]
        placeholders = ", ".join("?" for _ in cols)
        conn = self.connect()
        try:
            conn.execute(f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({placeholders})", params)
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            if "UNIQUE" in str(e):
                raise UniqueConflictError(table, str(e)) from e
            raise StoreWriteError(table, str(e)) from e
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreWriteError(table, str(e)) from e
        return row_id

    def get_or_create(
        self,
        table: str,
        key: dict[str, Any],
        values: dict[str, Any],
        retry_on_conflict: bool = False,
    ) -> tuple[str, bool]:
        """
        Idempotent upsert by natural key: return (id, created).
        With retry_on_conflict, a UNIQUE collision from a concurrent writer is resolved by
        re-reading the key once; otherwise the conflict propagates.
        """
        existing = self.find_id(table, **key)
        if existing:
            return existing, False
        try:
            return self.insert(table, {**key, **values}), True
        except UniqueConflictError:
            if not retry_on_conflict:
                raise
            winner = self.find_id(table, **key)
            if winner:
                return winner, False
            raise

    def update(self, table: str, row_id: str, values: dict[str, Any]) -> None:
        allowed = self._columns(table)
        unknown = set(values) - allowed
        if unknown:
            raise StorageError(f"unknown columns for {table}: {sorted(unknown)}")
        assignments = ", ".join(f"{c} = ?" for c in values)
        params = [*(_encode(c, v) for c, v in values.items()), row_id]
        conn = self.connect()
        try:
            conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", params)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreWriteError(table, str(e)) from e

    def delete_program_instances(self, user_id: str) -> dict[str, int]:
        """
        Delete a user's program instances and their workout/exercise/set rows (cascade).
        Exercises and the template hierarchy are kept. Returns deleted row counts per table.
        """
        conn = self.connect()
        counts = {
            "program_instances": self.count("program_instances", user_id=user_id),
            "workout_instances": self.count("workout_instances", user_id=user_id),
            "exercise_instances": self.count("exercise_instances", user_id=user_id),
            "set_instances": self.count("set_instances", user_id=user_id),
        }
        try:
            conn.execute("DELETE FROM program_instances WHERE user_id = ?", (user_id,))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreWriteError("program_instances", str(e)) from e
        return counts


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"
