"""Rotation templates and their slot grid.

A template is a cyclic N-week menu skeleton.  Its grid holds one slot per
(week, day, meal, location, course); the grid is provisioned in bulk and
repaired by ensure_default_template(), never thinned out row by row.
"""

import logging
from typing import Optional

from kitchen_rotation.constants import (
    COURSES, DAYS_OF_WEEK, DEFAULT_LOCATIONS, DEFAULT_TEMPLATE_NAME,
    DEFAULT_WEEK_COUNT, MEALS,
)
from kitchen_rotation.db.database import get_connection
from kitchen_rotation.db.models import RotationSlot, RotationTemplate

logger = logging.getLogger(__name__)

CLEAR_SCOPES = ("all", "week", "day")


class TemplateNotFound(LookupError):
    """Raised when a rotation template id does not exist."""


def _row_to_template(row) -> RotationTemplate:
    return RotationTemplate(
        id=row["id"],
        name=row["name"],
        week_count=row["week_count"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
    )


def _row_to_slot(row) -> RotationSlot:
    return RotationSlot(
        id=row["id"],
        template_id=row["template_id"],
        week_nr=row["week_nr"],
        day_of_week=row["day_of_week"],
        meal=row["meal"],
        location_slug=row["location_slug"],
        course=row["course"],
        recipe_id=row["recipe_id"],
        recipe_name=row["recipe_name"],
    )


_SLOT_SELECT = """SELECT rs.*, r.name AS recipe_name
                  FROM rotation_slots rs
                  LEFT JOIN recipes r ON r.id = rs.recipe_id"""


# ── Templates ──────────────────────────────────────────────────────────────────

def get_templates() -> list[RotationTemplate]:
    """Return all templates, oldest first."""
    conn = get_connection()
    try:
        rows = conn.execute("SELECT * FROM rotation_templates ORDER BY id").fetchall()
        return [_row_to_template(r) for r in rows]
    finally:
        conn.close()


def get_template(template_id: int) -> Optional[RotationTemplate]:
    """Return a single template, or None if not found."""
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT * FROM rotation_templates WHERE id = ?", (template_id,)
        ).fetchone()
        return _row_to_template(row) if row else None
    finally:
        conn.close()


def get_active_template() -> Optional[RotationTemplate]:
    """Return the active template (lowest id wins if several are flagged)."""
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT * FROM rotation_templates WHERE is_active = 1 ORDER BY id LIMIT 1"
        ).fetchone()
        return _row_to_template(row) if row else None
    finally:
        conn.close()


def create_template(name: str, week_count: int = DEFAULT_WEEK_COUNT, is_active: bool = True) -> RotationTemplate:
    """Insert a template without slots. Activating it deactivates all others."""
    if week_count < 1:
        raise ValueError("week_count must be at least 1")
    conn = get_connection()
    try:
        if is_active:
            conn.execute("UPDATE rotation_templates SET is_active = 0")
        cursor = conn.execute(
            "INSERT INTO rotation_templates (name, week_count, is_active) VALUES (?, ?, ?)",
            (name, week_count, int(is_active)),
        )
        conn.commit()
        template_id = cursor.lastrowid
    finally:
        conn.close()
    return get_template(template_id)


def update_template(
    template_id: int,
    name: Optional[str] = None,
    week_count: Optional[int] = None,
    is_active: Optional[bool] = None,
) -> RotationTemplate:
    """Patch a template's fields. Raises TemplateNotFound for unknown ids."""
    template = get_template(template_id)
    if template is None:
        raise TemplateNotFound(f"Template {template_id} not found")
    if week_count is not None and week_count < 1:
        raise ValueError("week_count must be at least 1")
    conn = get_connection()
    try:
        if is_active:
            conn.execute("UPDATE rotation_templates SET is_active = 0 WHERE id != ?", (template_id,))
        conn.execute(
            "UPDATE rotation_templates SET name=?, week_count=?, is_active=? WHERE id=?",
            (
                name if name is not None else template.name,
                week_count if week_count is not None else template.week_count,
                int(is_active) if is_active is not None else int(template.is_active),
                template_id,
            ),
        )
        conn.commit()
    finally:
        conn.close()
    return get_template(template_id)


# ── Grid provisioning ──────────────────────────────────────────────────────────

def _insert_location_grid(conn, template_id: int, week_count: int, location_slug: str) -> int:
    """Insert every missing cell of one location's sub-grid. Returns rows added."""
    added = 0
    for week_nr in range(1, week_count + 1):
        for dow in DAYS_OF_WEEK:
            for meal in MEALS:
                for course in COURSES:
                    cursor = conn.execute(
                        """INSERT OR IGNORE INTO rotation_slots
                           (template_id, week_nr, day_of_week, meal, location_slug, course, recipe_id)
                           VALUES (?, ?, ?, ?, ?, ?, NULL)""",
                        (template_id, week_nr, dow, meal, location_slug, course),
                    )
                    added += cursor.rowcount
    return added


def _count_slots(conn, template_id: int, location_slug: str = None) -> int:
    if location_slug is None:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM rotation_slots WHERE template_id = ?", (template_id,)
        ).fetchone()
    else:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM rotation_slots WHERE template_id = ? AND location_slug = ?",
            (template_id, location_slug),
        ).fetchone()
    return row["n"]


def ensure_default_template() -> RotationTemplate:
    """Return the active template, creating and provisioning it if needed.

    - no active template: create "Standard-Rotation" with the full grid
    - active template without slots: provision the full grid
    - active template missing a location: backfill that location's cells

    Existing cells are never duplicated; a second call is a no-op.
    """
    template = get_active_template()
    if template is None:
        template = create_template(DEFAULT_TEMPLATE_NAME, DEFAULT_WEEK_COUNT, is_active=True)
        logger.info("Created default rotation template %s", template.id)

    expected_per_location = template.week_count * len(DAYS_OF_WEEK) * len(MEALS) * len(COURSES)
    conn = get_connection()
    try:
        added = 0
        for slug in DEFAULT_LOCATIONS:
            if _count_slots(conn, template.id, slug) < expected_per_location:
                added += _insert_location_grid(conn, template.id, template.week_count, slug)
        conn.commit()
    finally:
        conn.close()
    if added:
        logger.info("Provisioned %d rotation slots for template %s", added, template.id)
    return template


# ── Slots ──────────────────────────────────────────────────────────────────────

def get_slots(template_id: int, week_nr: Optional[int] = None) -> list[RotationSlot]:
    """Return a template's slots (optionally one week), in grid order."""
    conn = get_connection()
    try:
        query = _SLOT_SELECT + " WHERE rs.template_id = ?"
        params: list = [template_id]
        if week_nr is not None:
            query += " AND rs.week_nr = ?"
            params.append(week_nr)
        query += " ORDER BY rs.week_nr, rs.day_of_week, rs.location_slug, rs.meal, rs.id"
        return [_row_to_slot(r) for r in conn.execute(query, params).fetchall()]
    finally:
        conn.close()


def get_slot(slot_id: int) -> Optional[RotationSlot]:
    conn = get_connection()
    try:
        row = conn.execute(_SLOT_SELECT + " WHERE rs.id = ?", (slot_id,)).fetchone()
        return _row_to_slot(row) if row else None
    finally:
        conn.close()


def create_slots(slots: list[RotationSlot]) -> list[RotationSlot]:
    """Insert slots, ignoring keys that already exist. Returns the stored rows."""
    conn = get_connection()
    try:
        stored = []
        for slot in slots:
            if slot.course not in COURSES:
                raise ValueError(f"Unknown course: {slot.course}")
            conn.execute(
                """INSERT OR IGNORE INTO rotation_slots
                   (template_id, week_nr, day_of_week, meal, location_slug, course, recipe_id)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (slot.template_id, slot.week_nr, slot.day_of_week, slot.meal,
                 slot.location_slug, slot.course, slot.recipe_id),
            )
            row = conn.execute(
                _SLOT_SELECT + """ WHERE rs.template_id = ? AND rs.week_nr = ? AND rs.day_of_week = ?
                                   AND rs.meal = ? AND rs.location_slug = ? AND rs.course = ?""",
                (slot.template_id, slot.week_nr, slot.day_of_week, slot.meal,
                 slot.location_slug, slot.course),
            ).fetchone()
            stored.append(_row_to_slot(row))
        conn.commit()
        return stored
    finally:
        conn.close()


def update_slot(slot_id: int, recipe_id: Optional[int]) -> Optional[RotationSlot]:
    """Assign (or clear, with None) a slot's recipe. Returns None if the slot doesn't exist."""
    conn = get_connection()
    try:
        cursor = conn.execute(
            "UPDATE rotation_slots SET recipe_id = ? WHERE id = ?", (recipe_id, slot_id)
        )
        conn.commit()
        if cursor.rowcount == 0:
            return None
    finally:
        conn.close()
    return get_slot(slot_id)


def clear_slots(template_id: int, scope: str, week_nr: int = None, day_of_week: int = None) -> int:
    """Empty the slots of a whole template, one week or one day. Returns rows cleared."""
    if scope not in CLEAR_SCOPES:
        raise ValueError("scope must be 'all', 'week' or 'day'")
    query = "UPDATE rotation_slots SET recipe_id = NULL WHERE template_id = ? AND recipe_id IS NOT NULL"
    params: list = [template_id]
    if scope in ("week", "day"):
        if week_nr is None:
            raise ValueError(f"week_nr is required for scope={scope}")
        query += " AND week_nr = ?"
        params.append(week_nr)
    if scope == "day":
        if day_of_week is None:
            raise ValueError("day_of_week is required for scope=day")
        query += " AND day_of_week = ?"
        params.append(day_of_week)
    conn = get_connection()
    try:
        cursor = conn.execute(query, params)
        conn.commit()
        return cursor.rowcount
    finally:
        conn.close()


def get_overview(template_id: int) -> dict:
    """Return a template with its slots grouped by week and fill counts."""
    template = get_template(template_id)
    if template is None:
        raise TemplateNotFound(f"Template {template_id} not found")
    slots = get_slots(template_id)
    weeks: dict[int, list[RotationSlot]] = {}
    for slot in slots:
        weeks.setdefault(slot.week_nr, []).append(slot)
    return {
        "template": template,
        "weeks": weeks,
        "total_slots": len(slots),
        "filled_slots": sum(1 for s in slots if s.recipe_id is not None),
    }
