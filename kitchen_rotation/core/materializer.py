"""Week materialization — project one rotation week onto calendar dates.

Rotation slots are abstract (week number, 0=Sunday day number); menu plans
are dated rows per location.  The midday menu of the primary location is
always served at the mirror location too, so mirror lunches are copied from
the primary location instead of being read from the mirror's own slots.
"""

import logging
from datetime import date
from typing import Optional

from kitchen_rotation.constants import MEAL_ALIASES, MIRROR_LOCATION, PRIMARY_LOCATION
from kitchen_rotation.core import calendar
from kitchen_rotation.core.locations import LocationResolver
from kitchen_rotation.core.rotation import TemplateNotFound, ensure_default_template, get_template
from kitchen_rotation.db.database import get_connection
from kitchen_rotation.db.models import MenuPlan

logger = logging.getLogger(__name__)


class RotationConfigError(ValueError):
    """Raised when a rotation week has no slot rows at all."""


def map_meal(meal: str) -> str:
    """Translate rotation meal names to menu-plan meal names (unknown names pass through)."""
    return MEAL_ALIASES.get(meal, meal)


def is_mirrored_slot(location_slug: str, meal: str) -> bool:
    """True for the mirror location's own lunch slots, which are never served."""
    return location_slug == MIRROR_LOCATION and map_meal(meal) == "lunch"


def _row_to_plan(row) -> MenuPlan:
    return MenuPlan(
        id=row["id"],
        date=row["date"],
        meal=row["meal"],
        course=row["course"],
        recipe_id=row["recipe_id"],
        portions=row["portions"],
        location_id=row["location_id"],
        rotation_week_nr=row["rotation_week_nr"],
        notes=row["notes"],
        recipe_name=row["recipe_name"],
    )


def _fetch_plans(conn, start: str, end: str) -> list[MenuPlan]:
    rows = conn.execute(
        """SELECT mp.*, r.name AS recipe_name
           FROM menu_plans mp
           LEFT JOIN recipes r ON mp.recipe_id = r.id
           WHERE mp.date >= ? AND mp.date <= ?
           ORDER BY mp.date, mp.meal, mp.location_id, mp.course, mp.id""",
        (start, end),
    ).fetchall()
    return [_row_to_plan(r) for r in rows]


def get_menu_plans(start: str, end: str) -> list[MenuPlan]:
    """Returns all menu plans between start and end dates (inclusive)."""
    conn = get_connection()
    try:
        return _fetch_plans(conn, start, end)
    finally:
        conn.close()


def build_week_plans(slots, week_nr: int, monday: date, resolver: LocationResolver) -> list[MenuPlan]:
    """Turn one rotation week's slot rows into unsaved MenuPlan rows."""
    plans: list[MenuPlan] = []
    primary_lunch: list[MenuPlan] = []
    mirror_id = resolver.id_for(MIRROR_LOCATION)

    for slot in slots:
        if slot["recipe_id"] is None:
            continue
        meal = map_meal(slot["meal"])
        if is_mirrored_slot(slot["location_slug"], meal):
            continue
        plan = MenuPlan(
            id=None,
            date=calendar.date_for_day_of_week(monday, slot["day_of_week"]).isoformat(),
            meal=meal,
            course=slot["course"],
            recipe_id=slot["recipe_id"],
            portions=1,
            location_id=resolver.id_for(slot["location_slug"]),
            rotation_week_nr=week_nr,
        )
        plans.append(plan)
        if slot["location_slug"] == PRIMARY_LOCATION and meal == "lunch":
            primary_lunch.append(plan)

    for plan in primary_lunch:
        plans.append(MenuPlan(
            id=None,
            date=plan.date,
            meal=plan.meal,
            course=plan.course,
            recipe_id=plan.recipe_id,
            portions=plan.portions,
            location_id=mirror_id,
            rotation_week_nr=plan.rotation_week_nr,
        ))
    return plans


def _generate(conn, template_id: int, week_nr: int, monday: date, resolver: LocationResolver) -> int:
    slots = conn.execute(
        """SELECT day_of_week, meal, location_slug, course, recipe_id
           FROM rotation_slots
           WHERE template_id = ? AND week_nr = ?
           ORDER BY day_of_week, meal, location_slug, id""",
        (template_id, week_nr),
    ).fetchall()
    if not slots:
        raise RotationConfigError(f"No rotation slots for template {template_id}, week {week_nr}")

    plans = build_week_plans(slots, week_nr, monday, resolver)
    conn.executemany(
        """INSERT INTO menu_plans (date, meal, course, recipe_id, portions, location_id, rotation_week_nr)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        [
            (p.date, p.meal, p.course, p.recipe_id, p.portions, p.location_id, p.rotation_week_nr)
            for p in plans
        ],
    )
    return len(plans)


def generate_week(template_id: int, week_nr: int, monday: date, resolver: LocationResolver = None) -> int:
    """Materialize rotation week week_nr into menu plans starting at monday.

    Returns the number of plans created.  Raises RotationConfigError when the
    week has no slot rows; a week whose slots are all empty creates nothing.
    """
    if get_template(template_id) is None:
        raise TemplateNotFound(f"Template {template_id} not found")
    resolver = resolver or LocationResolver()
    conn = get_connection()
    try:
        created = _generate(conn, template_id, week_nr, monday, resolver)
        conn.commit()
    finally:
        conn.close()
    logger.info("Materialized rotation week %s of template %s from %s: %d plans",
                week_nr, template_id, monday, created)
    return created


def get_or_generate_week_plan(year: int, week: int, force: bool = False,
                              resolver: Optional[LocationResolver] = None) -> dict:
    """Menu plans of an ISO calendar week, materialized from the rotation on demand.

    Existing plans are returned unchanged unless force is set, which clears
    the week first.  Nothing is generated from a rotation week without any
    filled slot.
    """
    start, end = calendar.week_date_range(year, week)
    template = ensure_default_template()
    rotation_week = calendar.rotation_week_nr(week, template.week_count)
    resolver = resolver or LocationResolver()

    conn = get_connection()
    try:
        existing = _fetch_plans(conn, start, end)
        if existing and not force:
            plans = existing
        else:
            if existing:
                conn.execute("DELETE FROM menu_plans WHERE date >= ? AND date <= ?", (start, end))
            filled = conn.execute(
                """SELECT COUNT(*) AS n FROM rotation_slots
                   WHERE template_id = ? AND week_nr = ? AND recipe_id IS NOT NULL""",
                (template.id, rotation_week),
            ).fetchone()["n"]
            if filled > 0:
                created = _generate(conn, template.id, rotation_week, calendar.monday_of(year, week), resolver)
                logger.info("Generated %d plans for %d-W%02d from rotation week %d",
                            created, year, week, rotation_week)
            conn.commit()
            plans = _fetch_plans(conn, start, end)
    finally:
        conn.close()

    return {
        "year": year,
        "week": week,
        "from": start,
        "to": end,
        "rotation_week_nr": rotation_week,
        "plans": plans,
    }
