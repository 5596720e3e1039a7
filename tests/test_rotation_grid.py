import pytest

from kitchen_rotation.core import rotation
from kitchen_rotation.core.rotation import TemplateNotFound
from kitchen_rotation.db.database import get_connection
from kitchen_rotation.db.models import RotationSlot


def _slot_keys(template_id):
    return {
        (s.week_nr, s.day_of_week, s.meal, s.location_slug, s.course)
        for s in rotation.get_slots(template_id)
    }


def test_ensure_default_creates_full_grid(db):
    template = rotation.ensure_default_template()
    assert template.name == "Standard-Rotation"
    assert template.week_count == 6
    assert template.is_active
    slots = rotation.get_slots(template.id)
    # 2 locations x 7 days x 2 meals x 8 courses x 6 weeks
    assert len(slots) == 1344
    assert len(_slot_keys(template.id)) == 1344
    assert all(s.recipe_id is None for s in slots)


def test_ensure_default_is_idempotent(db):
    first = rotation.ensure_default_template()
    second = rotation.ensure_default_template()
    assert first.id == second.id
    assert len(rotation.get_templates()) == 1
    assert len(rotation.get_slots(first.id)) == 1344


def test_ensure_default_backfills_missing_location(db):
    template = rotation.ensure_default_template()
    city_ids = {s.id for s in rotation.get_slots(template.id) if s.location_slug == "city"}
    conn = get_connection()
    try:
        conn.execute("DELETE FROM rotation_slots WHERE location_slug = 'sued'")
        conn.commit()
    finally:
        conn.close()
    assert len(rotation.get_slots(template.id)) == 672

    rotation.ensure_default_template()
    slots = rotation.get_slots(template.id)
    assert len(slots) == 1344
    # Existing cells are kept as they were
    assert {s.id for s in slots if s.location_slug == "city"} == city_ids


def test_ensure_default_provisions_empty_active_template(db):
    template = rotation.create_template("Short cycle", week_count=2)
    result = rotation.ensure_default_template()
    assert result.id == template.id
    assert len(rotation.get_slots(template.id)) == 2 * 7 * 2 * 8 * 2


def test_activating_template_deactivates_others(db):
    first = rotation.create_template("A", 1)
    second = rotation.create_template("B", 1)
    assert rotation.get_template(first.id).is_active is False
    assert rotation.get_active_template().id == second.id

    rotation.update_template(first.id, is_active=True)
    assert rotation.get_active_template().id == first.id
    assert rotation.get_template(second.id).is_active is False


def test_update_unknown_template_raises(db):
    with pytest.raises(TemplateNotFound):
        rotation.update_template(999, name="Nope")


def test_create_template_rejects_zero_weeks(db):
    with pytest.raises(ValueError):
        rotation.create_template("Broken", week_count=0)


def test_create_slots_ignores_existing_keys(db, add_recipe):
    template = rotation.create_template("Manual", 1)
    recipe_id = add_recipe("Tafelspitz", "MainMeat")
    slot = RotationSlot(
        id=None, template_id=template.id, week_nr=1, day_of_week=1,
        meal="lunch", location_slug="city", course="main1", recipe_id=recipe_id,
    )
    first = rotation.create_slots([slot])
    second = rotation.create_slots([slot])
    assert first[0].id == second[0].id
    assert first[0].recipe_name == "Tafelspitz"
    assert len(rotation.get_slots(template.id)) == 1


def test_create_slots_rejects_unknown_course(db):
    template = rotation.create_template("Manual", 1)
    slot = RotationSlot(
        id=None, template_id=template.id, week_nr=1, day_of_week=1,
        meal="lunch", location_slug="city", course="appetizer",
    )
    with pytest.raises(ValueError):
        rotation.create_slots([slot])


def test_update_slot_sets_and_clears_recipe(db, add_recipe):
    template = rotation.ensure_default_template()
    slot = rotation.get_slots(template.id, week_nr=1)[0]
    recipe_id = add_recipe("Reis", "Sides")

    updated = rotation.update_slot(slot.id, recipe_id)
    assert updated.recipe_id == recipe_id
    assert rotation.update_slot(slot.id, None).recipe_id is None
    assert rotation.update_slot(999999, recipe_id) is None


def _fill_all(template_id, recipe_id):
    conn = get_connection()
    try:
        conn.execute("UPDATE rotation_slots SET recipe_id = ? WHERE template_id = ?", (recipe_id, template_id))
        conn.commit()
    finally:
        conn.close()


def test_clear_slots_scopes(db, add_recipe):
    template = rotation.ensure_default_template()
    _fill_all(template.id, add_recipe("Reis", "Sides"))

    # One day: 2 locations x 2 meals x 8 courses
    assert rotation.clear_slots(template.id, "day", week_nr=1, day_of_week=1) == 32
    # Rest of the week
    assert rotation.clear_slots(template.id, "week", week_nr=1) == 224 - 32
    assert rotation.clear_slots(template.id, "all") == 1344 - 224
    assert rotation.get_overview(template.id)["filled_slots"] == 0


def test_clear_slots_validates_arguments(db):
    template = rotation.ensure_default_template()
    with pytest.raises(ValueError):
        rotation.clear_slots(template.id, "month")
    with pytest.raises(ValueError):
        rotation.clear_slots(template.id, "week")
    with pytest.raises(ValueError):
        rotation.clear_slots(template.id, "day", week_nr=1)


def test_overview_groups_by_week(db):
    template = rotation.ensure_default_template()
    overview = rotation.get_overview(template.id)
    assert overview["template"].id == template.id
    assert sorted(overview["weeks"]) == [1, 2, 3, 4, 5, 6]
    assert all(len(slots) == 224 for slots in overview["weeks"].values())
    assert overview["total_slots"] == 1344
    assert overview["filled_slots"] == 0


def test_overview_unknown_template(db):
    with pytest.raises(TemplateNotFound):
        rotation.get_overview(12345)
