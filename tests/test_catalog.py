import pytest

from kitchen_rotation.core import locations, recipes as recipes_core, rotation
from kitchen_rotation.core.locations import LocationResolver
from kitchen_rotation.db.database import get_connection
from kitchen_rotation.db.models import Recipe


def test_default_locations(db):
    assert {(loc.slug, loc.name) for loc in locations.get_all()} == {("city", "City"), ("sued", "Süd")}
    assert locations.ensure_defaults() == 0


def test_resolver_maps_both_ways(db):
    resolver = LocationResolver()
    city = resolver.id_for("city")
    assert city is not None
    assert resolver.slug_for(city) == "city"
    assert resolver.id_for("airport") is None
    assert resolver.slug_for(9999) is None


def test_resolver_invalidate_picks_up_new_locations(db):
    resolver = LocationResolver()
    assert resolver.id_for("airport") is None
    conn = get_connection()
    try:
        conn.execute("INSERT INTO locations (slug, name) VALUES ('airport', 'Airport')")
        conn.commit()
    finally:
        conn.close()
    # Cached until invalidated
    assert resolver.id_for("airport") is None
    resolver.invalidate()
    assert resolver.id_for("airport") is not None


def test_add_rejects_unknown_category(db):
    with pytest.raises(ValueError):
        recipes_core.add(Recipe(id=None, name="Pizza", category="FastFood"))


def test_find_by_name_is_case_insensitive(db, add_recipe):
    recipe_id = add_recipe("Kaiserschmarrn", "HotDesserts", tags="sweet")
    found = recipes_core.find_by_name("KAISERSCHMARRN")
    assert found.id == recipe_id
    assert found.has_tag("Sweet")
    assert recipes_core.find_by_name("Kaiser") is None


def test_delete_recipe_empties_slots(db, add_recipe):
    recipe_id = add_recipe("Tafelspitz", "MainMeat")
    template = rotation.ensure_default_template()
    slot = rotation.get_slots(template.id, week_nr=1)[0]
    rotation.update_slot(slot.id, recipe_id)

    recipes_core.delete(recipe_id)
    assert recipes_core.get(recipe_id) is None
    assert rotation.get_slot(slot.id).recipe_id is None
