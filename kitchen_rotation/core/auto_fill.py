"""Rule-based auto-fill of rotation slots.

Each course kind draws from its own pool: the recipes of the categories mapped
to that course, shuffled once per run and handed out round-robin.  Within one
calendar day no recipe is served twice across locations, meals and courses,
unless the pool has nothing else to offer.

Runs are intentionally non-deterministic; two runs over the same empty grid
will usually differ.
"""

import logging
import random
from collections import defaultdict
from typing import Optional

from kitchen_rotation.constants import (
    COURSE_CATEGORIES, COURSES, DAYS_OF_WEEK, MEALS, NO_ROTATION_TAG,
)
from kitchen_rotation.core import recipes as recipes_core
from kitchen_rotation.core.materializer import is_mirrored_slot
from kitchen_rotation.core.rotation import TemplateNotFound, get_template
from kitchen_rotation.db.database import get_connection
from kitchen_rotation.db.models import AutoFillResult, Recipe

logger = logging.getLogger(__name__)


class RecipePool:
    """A shuffled recipe list with a cyclic cursor."""

    def __init__(self, recipes: list[Recipe], rng: random.Random):
        self.recipes = list(recipes)
        rng.shuffle(self.recipes)
        self.idx = 0

    def __len__(self):
        return len(self.recipes)

    def _advance(self) -> Recipe:
        recipe = self.recipes[self.idx % len(self.recipes)]
        self.idx += 1
        return recipe

    def pick(self, used_ids: set) -> Optional[Recipe]:
        """Next recipe not in used_ids; the plain next one if all are used; None if empty."""
        if not self.recipes:
            return None
        for _ in range(len(self.recipes)):
            recipe = self._advance()
            if recipe.id not in used_ids:
                return recipe
        # Every candidate collides: a complete menu beats strict no-repeat.
        return self._advance()


def build_pools(recipes: list[Recipe], rng: random.Random) -> dict[str, RecipePool]:
    """One pool per course kind, from the union of its mapped categories."""
    by_category: dict[str, list[Recipe]] = defaultdict(list)
    for recipe in recipes:
        if recipe.has_tag(NO_ROTATION_TAG):
            continue
        by_category[recipe.category].append(recipe)
    return {
        course: RecipePool(
            [r for category in COURSE_CATEGORIES[course] for r in by_category[category]],
            rng,
        )
        for course in COURSES
    }


def _day_order(day_of_week: int) -> int:
    return DAYS_OF_WEEK.index(day_of_week) if day_of_week in DAYS_OF_WEEK else len(DAYS_OF_WEEK)


def _course_order(course: str) -> int:
    return COURSES.index(course) if course in COURSES else len(COURSES)


def _meal_order(meal: str) -> int:
    return MEALS.index(meal) if meal in MEALS else len(MEALS)


def auto_fill(template_id: int, overwrite: bool = False, rng: random.Random = None) -> AutoFillResult:
    """Fill a template's empty slots (all slots with overwrite=True).

    Filled slots are left alone unless overwrite is set, but their recipes
    still count as used for the day.  Courses whose pool is empty are
    skipped and counted, and so are the mirror location's lunch slots,
    which the materializer replaces with the primary lunch.  Every slot is
    visited exactly once.
    """
    if get_template(template_id) is None:
        raise TemplateNotFound(f"Template {template_id} not found")
    rng = rng or random.Random()

    pools = build_pools(recipes_core.get_all(), rng)
    logger.info(
        "Auto-fill template %s: pool sizes %s",
        template_id, {course: len(pool) for course, pool in pools.items()},
    )

    result = AutoFillResult(by_course={c: {"filled": 0, "skipped": 0} for c in COURSES})

    def count(course: str, outcome: str) -> None:
        setattr(result, outcome, getattr(result, outcome) + 1)
        result.by_course.setdefault(course, {"filled": 0, "skipped": 0})[outcome] += 1

    conn = get_connection()
    try:
        rows = conn.execute(
            "SELECT id, week_nr, day_of_week, meal, location_slug, course, recipe_id "
            "FROM rotation_slots WHERE template_id = ?",
            (template_id,),
        ).fetchall()

        groups: dict[tuple, list] = defaultdict(list)
        for row in rows:
            groups[(row["week_nr"], row["day_of_week"], row["location_slug"], row["meal"])].append(row)

        days = sorted({(k[0], k[1]) for k in groups}, key=lambda d: (d[0], _day_order(d[1])))
        locations = sorted({k[2] for k in groups})
        meals = sorted({k[3] for k in groups}, key=_meal_order)

        for week_nr, dow in days:
            # Kept recipes block the whole day, not just the slots after them
            used_today: set[int] = set()
            if not overwrite:
                used_today.update(
                    s["recipe_id"]
                    for location in locations for meal in meals
                    if not is_mirrored_slot(location, meal)
                    for s in groups.get((week_nr, dow, location, meal), [])
                    if s["recipe_id"] is not None
                )
            for location in locations:
                for meal in meals:
                    day_slots = sorted(
                        groups.get((week_nr, dow, location, meal), []),
                        key=lambda s: _course_order(s["course"]),
                    )
                    # Served from the primary location's lunch
                    if is_mirrored_slot(location, meal):
                        for slot in day_slots:
                            count(slot["course"], "skipped")
                        continue
                    for slot in day_slots:
                        course = slot["course"]
                        if slot["recipe_id"] is not None and not overwrite:
                            used_today.add(slot["recipe_id"])
                            count(course, "skipped")
                            continue

                        pool = pools.get(course)
                        picked = pool.pick(used_today) if pool is not None else None
                        if picked is None:
                            if slot["recipe_id"] is not None:
                                used_today.add(slot["recipe_id"])
                            count(course, "skipped")
                            continue

                        conn.execute(
                            "UPDATE rotation_slots SET recipe_id = ? WHERE id = ?",
                            (picked.id, slot["id"]),
                        )
                        used_today.add(picked.id)
                        count(course, "filled")
        conn.commit()
    finally:
        conn.close()

    logger.info("Auto-fill template %s: filled=%d skipped=%d", template_id, result.filled, result.skipped)
    return result
