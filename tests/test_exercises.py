"""Tests for exercise resolution: slug identity, reuse across runs, conflict re-query."""

from conftest import FailingStorage

from massimport.exercises import resolve_exercises
from massimport.models import ImportStats
from massimport.storage import Storage


class RacingStorage(Storage):
    """Misses the first exercises lookup, as if another writer inserted between lookup and insert."""

    def __init__(self, db_path):
        super().__init__(db_path)
        self.missed = False

    def find_id(self, table, **where):
        if table == "exercises" and not self.missed:
            self.missed = True
            return None
        return super().find_id(table, **where)


def test_names_sharing_slug_resolve_to_one_exercise(storage) -> None:
    """'DB Curl' and 'Dumbbell Curl' -> one exercise row, both names mapped."""
    stats = ImportStats()
    ids = resolve_exercises(storage, ["DB Curl", "Dumbbell Curl", "Barbell Back Squat"], stats, created_by="u1")
    assert ids["DB Curl"] == ids["Dumbbell Curl"]
    assert ids["DB Curl"] != ids["Barbell Back Squat"]
    assert stats.exercises_created == 2
    assert stats.exercises_existing == 1
    assert storage.count("exercises") == 2


def test_created_exercise_carries_metadata(storage) -> None:
    stats = ImportStats()
    ids = resolve_exercises(storage, ["DB Curl"], stats, created_by="u1")
    row = storage.find_one("exercises", id=ids["DB Curl"])
    assert row["name"] == "Dumbbell Curl"
    assert row["slug"] == "dumbbell-curl"
    assert row["description"] == "Dumbbell Curl - imported from Project Mass program"
    assert row["created_by"] == "u1"
    assert row["category"] == "Isolation"
    assert row["equipment"] == ["dumbbells"]


def test_second_run_finds_existing(storage) -> None:
    """Re-resolving creates nothing and returns the same ids."""
    first = resolve_exercises(storage, ["Barbell Back Squat"], ImportStats())
    stats = ImportStats()
    second = resolve_exercises(storage, ["Barbell Back Squat"], stats)
    assert first == second
    assert stats.exercises_created == 0
    assert stats.exercises_existing == 1


def test_unique_conflict_requeries_slug(db_path) -> None:
    """A concurrent insert of the same slug resolves to the winner's id, counted as existing."""
    setup = Storage(db_path)
    winner = setup.insert("exercises", {"name": "Barbell Back Squat", "slug": "barbell-back-squat"})
    setup.close()

    racing = RacingStorage(db_path)
    stats = ImportStats()
    ids = resolve_exercises(racing, ["Barbell Back Squat"], stats)
    racing.close()
    assert ids == {"Barbell Back Squat": winner}
    assert stats.exercises_existing == 1
    assert stats.exercises_created == 0
    assert stats.errors == []


def test_unusable_name_is_error_and_absent(storage) -> None:
    stats = ImportStats()
    ids = resolve_exercises(storage, ["!!!", "Plank"], stats)
    assert "!!!" not in ids
    assert "Plank" in ids
    assert stats.exercises_failed == 1
    assert any('"!!!"' in e for e in stats.errors)


def test_write_failure_counts_failed_and_continues(db_path) -> None:
    """A non-conflict insert failure is not retried; other names still resolve."""
    storage = FailingStorage(db_path, "exercises", slug="dip")
    stats = ImportStats()
    ids = resolve_exercises(storage, ["Dip", "Plank"], stats)
    storage.close()
    assert list(ids) == ["Plank"]
    assert stats.exercises_failed == 1
    assert stats.exercises_created == 1
    assert stats.errors[0].startswith('Failed to create exercise "Dip"')
