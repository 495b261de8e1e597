"""Program domain constants and runtime settings for the Project Mass import."""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel

# --- Program cadence ---
# 8-day micro-cycle: days 1-3 strength, day 4 rest, days 5-7 hypertrophy, day 8 rest.

CYCLE_NUMBERS = (1, 2, 3)
MICROS_PER_CYCLE = 4
DAYS_PER_MICRO = 8
TRAINING_DAYS = (1, 2, 3, 5, 6, 7)

DAY_TYPE: dict[int, str] = {
    1: "Strength",
    2: "Strength",
    3: "Strength",
    5: "Hypertrophy",
    6: "Hypertrophy",
    7: "Hypertrophy",
}

DAY_NAMES: dict[int, str] = {
    1: "Lower Strength",
    2: "Upper Push Strength",
    3: "Upper Pull Strength",
    5: "Lower Hypertrophy",
    6: "Upper Push Hypertrophy",
    7: "Upper Pull Hypertrophy",
}

# Template targets per micro-cycle position; performed volumes come from the logs.
STRENGTH_SCHEME: dict[int, dict[str, int]] = {
    1: {"reps": 3, "sets": 4},
    2: {"reps": 4, "sets": 5},
    3: {"reps": 5, "sets": 4},
    4: {"reps": 3, "sets": 2},
}

HYPERTROPHY_SCHEME: dict[int, dict[str, int]] = {
    1: {"reps": 10, "sets": 4},
    2: {"reps": 10, "sets": 5},
    3: {"reps": 12, "sets": 4},
    4: {"reps": 8, "sets": 2},
}

DEFAULT_TARGET_SETS = 4
DEFAULT_TARGET_REPS = 3
MAX_TEST_NOTE = "MAX test"

PROGRAM_SLUG = "project-mass"

PROGRAM_TEMPLATE: dict = {
    "title": "Project Mass",
    "subtitle": "Jeff Nippard's DUP Strength & Hypertrophy Program",
    "description": (
        "An 8-day microcycle DUP (Daily Undulating Periodization) program alternating strength "
        "and hypertrophy days. 3 cycles with exercise variations and 4 micro-sessions per cycle "
        "with progressive rep/set schemes."
    ),
    "creator_name": "Jeff Nippard",
    "duration_weeks": 12,
    "days_per_week": 6,
    "minutes_per_session": 75,
    "primary_goal": "Hybrid",
    "difficulty_level": "Advanced",
    "training_style": "DUP",
    "is_published": True,
    "is_featured": False,
    "tags": ["DUP", "Strength", "Hypertrophy", "Powerbuilding", "8-day cycle"],
    "equipment_required": ["barbell", "dumbbells", "cable machine", "pull-up bar", "bench"],
}

PROGRAM_CYCLES: list[dict] = [
    {
        "cycle_number": 1,
        "name": "Cycle 1 - Foundation",
        "description": "Primary exercise variations. 4 micro-sessions with progressive rep/set schemes.",
        "duration_weeks": 4,
    },
    {
        "cycle_number": 2,
        "name": "Cycle 2 - Variation",
        "description": "Secondary exercise variations for continued adaptation. 4 micro-sessions.",
        "duration_weeks": 4,
    },
    {
        "cycle_number": 3,
        "name": "Cycle 3 - Peak",
        "description": "Return to primary exercises with increased volume (up to 7 sets). 4 micro-sessions.",
        "duration_weeks": 4,
    },
]


def week_number(cycle: int, micro: int) -> int:
    """Program-wide week (micro-cycle) number, 1..12."""
    return (cycle - 1) * MICROS_PER_CYCLE + micro


def micro_of_week(week: int) -> int:
    """Position 1..4 of a week within its cycle."""
    return ((week - 1) % MICROS_PER_CYCLE) + 1


def scheme_for(week: int, day: int) -> dict[str, int]:
    """Rep/set targets for a (week, day) template slot."""
    micro = micro_of_week(week)
    table = STRENGTH_SCHEME if DAY_TYPE.get(day) == "Strength" else HYPERTROPHY_SCHEME
    return table.get(micro) or {"reps": DEFAULT_TARGET_REPS, "sets": DEFAULT_TARGET_SETS}


# --- Runtime settings (env, overridable from the CLI) ---

DEFAULT_DB_PATH = "massimport.db"


class ImportSettings(BaseModel):
    db_path: str = DEFAULT_DB_PATH
    user_id: Optional[str] = None  # owner of the imported history; also creator of exercises/program


def load_settings(db_path: str | None = None, user_id: str | None = None) -> ImportSettings:
    """Read MASSIMPORT_DB_PATH / MASSIMPORT_USER_ID; explicit arguments win."""
    env_db = os.environ.get("MASSIMPORT_DB_PATH", "").strip()
    env_user = os.environ.get("MASSIMPORT_USER_ID", "").strip()
    return ImportSettings(
        db_path=db_path or env_db or DEFAULT_DB_PATH,
        user_id=user_id or env_user or None,
    )
