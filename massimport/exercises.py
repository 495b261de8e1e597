"""Exercise resolution: raw exercise names -> canonical exercise ids, one exercise per slug."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .exceptions import StorageError
from .models import ImportStats
from .normalize import (
    guess_category,
    guess_equipment,
    guess_muscle_groups,
    normalize_exercise_name,
    slugify,
)
from .storage import Storage

logger = logging.getLogger(__name__)


def resolve_exercises(
    storage: Storage,
    names: Iterable[str],
    stats: ImportStats,
    created_by: Optional[str] = None,
) -> dict[str, str]:
    """
    Map every raw name to an exercise id, creating missing exercises.
    Names that cannot be resolved are recorded as errors and left out of the map.
    """
    exercise_ids: dict[str, str] = {}
    by_slug: dict[str, str] = {}  # run-owned read-through cache

    for name in sorted(set(names)):
        normalized = normalize_exercise_name(name)
        slug = slugify(normalized)
        if not slug:
            stats.exercises_failed += 1
            stats.error(f'Failed to resolve exercise "{name}": name has no usable characters')
            continue

        if slug in by_slug:
            exercise_ids[name] = by_slug[slug]
            stats.exercises_existing += 1
            logger.debug('Exercise "%s" shares slug %s -> %s', name, slug, by_slug[slug])
            continue

        try:
            exercise_id, created = storage.get_or_create(
                "exercises",
                {"slug": slug},
                {
                    "name": normalized,
                    "description": f"{normalized} - imported from Project Mass program",
                    "created_by": created_by,
                    "category": guess_category(normalized),
                    "muscle_groups": guess_muscle_groups(normalized),
                    "equipment": guess_equipment(normalized),
                },
                retry_on_conflict=True,
            )
        except StorageError as e:
            stats.exercises_failed += 1
            stats.error(f'Failed to create exercise "{name}": {e}')
            continue

        by_slug[slug] = exercise_id
        exercise_ids[name] = exercise_id
        if created:
            stats.exercises_created += 1
            logger.debug('Created exercise "%s" (%s) -> %s', normalized, slug, exercise_id)
        else:
            stats.exercises_existing += 1
            logger.debug('Exercise exists: "%s" -> %s', name, exercise_id)

    return exercise_ids
