"""Normalization: exercise names, slugs, exercise metadata guesses, dates, volume."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

# Abbreviations used in the source logs -> full words (whole-word, case-insensitive)
_ABBREVIATIONS: list[tuple[str, str]] = [
    (r"\bDB\b", "Dumbbell"),
    (r"\bBB\b", "Barbell"),
    (r"\bRDL\b", "Romanian Deadlift"),
    (r"\bDL\b", "Deadlift"),
    (r"\bExt\b\.?", "Extension"),
    (r"\bHyperext\b", "Hyperextension"),
]


def normalize_exercise_name(name: str) -> str:
    """
    Canonical display form of a raw exercise name: trimmed, abbreviations expanded,
    whitespace collapsed. Case and qualifiers like "(Medium Grip)" are kept.
    """
    s = (name or "").strip()
    for pattern, full in _ABBREVIATIONS:
        s = re.sub(pattern, full, s, flags=re.IGNORECASE)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def slugify(text: str) -> str:
    """
    URL-safe slug.
    "Barbell Bench Press (Medium Grip)" -> "barbell-bench-press-medium-grip"
    """
    s = (text or "").lower()
    s = re.sub(r"[()]", "", s)
    s = re.sub(r"[^a-z0-9]+", "-", s)
    s = s.strip("-")
    return re.sub(r"-{2,}", "-", s)


def exercise_slug(raw_name: str) -> str:
    return slugify(normalize_exercise_name(raw_name))


# --- Exercise metadata guesses (stored on newly created exercises) ---

_COMPOUND = (
    "squat", "bench press", "deadlift", "overhead press", "military press",
    "row", "pull-up", "pull up", "pullup", "dip", "push press",
    "clean", "snatch", "lunge", "leg press",
)
_ISOLATION = (
    "curl", "extension", "raise", "fly", "flye", "kickback",
    "pushdown", "pulldown", "calf", "shrug", "hyperextension",
)


def guess_category(name: str) -> str:
    lower = name.lower()
    if any(p in lower for p in _COMPOUND):
        return "Compound"
    if any(p in lower for p in _ISOLATION):
        return "Isolation"
    return "Accessory"


def _dedupe(items: Iterable[str]) -> list[str]:
    out: list[str] = []
    for i in items:
        if i not in out:
            out.append(i)
    return out


def guess_muscle_groups(name: str) -> list[str]:
    lower = name.lower()
    groups: list[str] = []
    if any(p in lower for p in ("squat", "leg press", "leg extension", "lunge")):
        groups.append("quadriceps")
        if any(p in lower for p in ("squat", "lunge", "leg press")):
            groups.append("glutes")
    if any(p in lower for p in ("deadlift", "rdl", "romanian", "stiff")):
        groups += ["hamstrings", "glutes", "back"]
    if any(p in lower for p in ("bench", "chest", "fly", "flye")):
        groups += ["chest", "triceps"]
    if "press" in lower and any(p in lower for p in ("overhead", "military", "shoulder", "push press")):
        groups += ["shoulders", "triceps"]
    if "row" in lower or "pull" in lower:
        groups += ["back", "biceps"]
    if "curl" in lower:
        groups.append("biceps")
    if any(p in lower for p in ("tricep", "pushdown", "skull", "close-grip", "kickback", "dip")):
        groups.append("triceps")
    if any(p in lower for p in ("lateral", "side", "front raise")):
        groups.append("shoulders")
    if "calf" in lower:
        groups.append("calves")
    if any(p in lower for p in ("leg curl", "lying curl", "seated curl", "hamstring")):
        groups.append("hamstrings")
    if "shrug" in lower:
        groups.append("trapezius")
    if "hyperext" in lower or "back ext" in lower:
        groups += ["lower back", "glutes"]
    return _dedupe(groups)


def guess_equipment(name: str) -> list[str]:
    lower = name.lower()
    equipment: list[str] = []
    if (
        any(p in lower for p in ("barbell", "bench press", "deadlift", "squat", "military press"))
        or ("row" in lower and "cable" not in lower and "dumbbell" not in lower)
    ):
        equipment.append("barbell")
    if "dumbbell" in lower:
        equipment.append("dumbbells")
    if any(p in lower for p in ("cable", "pulldown", "pushdown")):
        equipment.append("cable machine")
    if any(p in lower for p in ("leg press", "leg curl", "leg extension", "calf press", "machine")):
        equipment.append("machine")
    if any(p in lower for p in ("pull-up", "pull up", "pullup", "chin")):
        equipment.append("pull-up bar")
    if any(p in lower for p in ("bench", "incline", "decline")):
        equipment.append("bench")
    if "ez-bar" in lower or "ez bar" in lower:
        equipment.append("ez-bar")
    if "smith" in lower:
        equipment.append("smith machine")
    return _dedupe(equipment) or ["bodyweight"]


# --- Dates & volume ---

def format_date(d: date | None) -> str | None:
    """YYYY-MM-DD for the store."""
    return d.isoformat() if d else None


def format_timestamp(d: date) -> str:
    """Midnight UTC ISO timestamp for a calendar date."""
    return datetime.combine(d, time.min, tzinfo=timezone.utc).isoformat()


def round_volume(total: float) -> int:
    """Round half up to whole pounds."""
    return int(Decimal(str(total)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
