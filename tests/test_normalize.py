"""Tests for name normalization, slugs, metadata guesses, and volume rounding."""

from datetime import date

from massimport.normalize import (
    exercise_slug,
    format_timestamp,
    guess_category,
    guess_equipment,
    guess_muscle_groups,
    normalize_exercise_name,
    round_volume,
    slugify,
)


def test_abbreviations_expanded() -> None:
    """DB/BB/RDL/Ext are expanded as whole words; whitespace collapsed."""
    assert normalize_exercise_name("  DB   Curl ") == "Dumbbell Curl"
    assert normalize_exercise_name("BB Row") == "Barbell Row"
    assert normalize_exercise_name("RDL") == "Romanian Deadlift"
    assert normalize_exercise_name("Tricep Ext") == "Tricep Extension"
    assert normalize_exercise_name("Hyperext") == "Hyperextension"
    assert normalize_exercise_name("Dbl Crunch") == "Dbl Crunch"


def test_slugify_drops_parentheses() -> None:
    assert slugify("Barbell Bench Press (Medium Grip)") == "barbell-bench-press-medium-grip"
    assert slugify("  Pull-Up / Chin-Up ") == "pull-up-chin-up"
    assert slugify("!!!") == ""


def test_abbreviated_and_full_names_share_slug() -> None:
    """Raw spellings of one exercise map to one slug."""
    assert exercise_slug("DB Curl") == exercise_slug("Dumbbell Curl") == "dumbbell-curl"


def test_metadata_guesses() -> None:
    assert guess_category("Barbell Back Squat") == "Compound"
    assert guess_category("Dumbbell Curl") == "Isolation"
    assert guess_category("Plank") == "Accessory"
    assert guess_muscle_groups("Barbell Back Squat") == ["quadriceps", "glutes"]
    assert "biceps" in guess_muscle_groups("Dumbbell Curl")
    assert guess_equipment("Dumbbell Curl") == ["dumbbells"]
    assert guess_equipment("Plank") == ["bodyweight"]


def test_round_volume_half_up() -> None:
    """Half pounds round up, not to even."""
    assert round_volume(10600.0) == 10600
    assert round_volume(2.5) == 3
    assert round_volume(3.5) == 4
    assert round_volume(1234.49) == 1234


def test_format_timestamp_midnight_utc() -> None:
    assert format_timestamp(date(2021, 3, 4)) == "2021-03-04T00:00:00+00:00"
