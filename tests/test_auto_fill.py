import random
from collections import defaultdict
from datetime import date

import pytest

from kitchen_rotation.constants import COURSE_CATEGORIES, COURSES, PRIMARY_LOCATION
from kitchen_rotation.core import recipes as recipes_core
from kitchen_rotation.core import rotation
from kitchen_rotation.core.auto_fill import RecipePool, auto_fill, build_pools
from kitchen_rotation.core.materializer import generate_week, get_menu_plans, is_mirrored_slot
from kitchen_rotation.core.rotation import TemplateNotFound
from kitchen_rotation.db.models import Recipe


@pytest.fixture
def one_week_template(db):
    rotation.create_template("One week", week_count=1)
    return rotation.ensure_default_template()


def _categories():
    return {r.id: r.category for r in recipes_core.get_all()}


def _served(slots):
    return [s for s in slots if not is_mirrored_slot(s.location_slug, s.meal)]


def test_fills_every_served_slot_from_its_course_categories(one_week_template, full_catalog):
    result = auto_fill(one_week_template.id, rng=random.Random(1))
    assert result.filled == 168
    # The mirror location's lunch comes from the primary location
    assert result.skipped == 56

    categories = _categories()
    slots = rotation.get_slots(one_week_template.id)
    for slot in _served(slots):
        assert slot.recipe_id is not None
        assert categories[slot.recipe_id] in COURSE_CATEGORIES[slot.course]
    mirrored = [s for s in slots if is_mirrored_slot(s.location_slug, s.meal)]
    assert len(mirrored) == 56
    assert all(s.recipe_id is None for s in mirrored)


def test_no_recipe_repeats_within_a_day(one_week_template, full_catalog):
    auto_fill(one_week_template.id, rng=random.Random(7))
    by_day = defaultdict(list)
    for slot in _served(rotation.get_slots(one_week_template.id)):
        by_day[(slot.week_nr, slot.day_of_week)].append(slot.recipe_id)
    assert len(by_day) == 7
    for recipe_ids in by_day.values():
        assert len(recipe_ids) == len(set(recipe_ids))


def test_small_pool_is_spread_over_served_meals(one_week_template, add_recipe):
    vegan = {add_recipe(f"Vegan {i}", "MainVegan") for i in range(3)}
    auto_fill(one_week_template.id, rng=random.Random(4))
    generate_week(one_week_template.id, 1, date(2026, 3, 2))

    served = defaultdict(list)
    for plan in get_menu_plans("2026-03-02", "2026-03-08"):
        if plan.course == "main2":
            served[plan.date].append(plan.recipe_id)
    assert len(served) == 7
    for recipe_ids in served.values():
        # City lunch (also served at the mirror location), city dinner, mirror dinner
        assert len(recipe_ids) == 4
        assert set(recipe_ids) == vegan


def test_mirror_lunch_recipe_does_not_block_the_day(one_week_template, add_recipe):
    vegan = [add_recipe(f"Vegan {i}", "MainVegan") for i in range(3)]
    for slot in rotation.get_slots(one_week_template.id):
        if slot.course == "main2" and is_mirrored_slot(slot.location_slug, slot.meal):
            rotation.update_slot(slot.id, vegan[0])

    auto_fill(one_week_template.id, rng=random.Random(8))
    by_day = defaultdict(set)
    for slot in _served(rotation.get_slots(one_week_template.id)):
        if slot.course == "main2":
            by_day[slot.day_of_week].add(slot.recipe_id)
    assert all(ids == set(vegan) for ids in by_day.values())


def test_keeps_filled_slots_without_overwrite(one_week_template, full_catalog):
    fixed_recipe = full_catalog["MainMeat"][0]
    target = next(
        s for s in rotation.get_slots(one_week_template.id)
        if s.course == "main1" and s.location_slug == PRIMARY_LOCATION
    )
    rotation.update_slot(target.id, fixed_recipe)

    result = auto_fill(one_week_template.id, rng=random.Random(3))
    assert result.skipped == 57
    assert result.by_course["main1"]["skipped"] == 8
    assert result.filled == 167
    assert rotation.get_slot(target.id).recipe_id == fixed_recipe

    # The kept recipe still counts as used for that day
    same_day = [
        s.recipe_id for s in rotation.get_slots(one_week_template.id)
        if s.day_of_week == target.day_of_week and s.id != target.id
    ]
    assert fixed_recipe not in same_day


def test_overwrite_refills_everything(one_week_template, full_catalog):
    auto_fill(one_week_template.id, rng=random.Random(1))
    result = auto_fill(one_week_template.id, overwrite=True, rng=random.Random(2))
    assert result.filled == 168
    assert result.skipped == 56


def test_second_run_without_overwrite_changes_nothing(one_week_template, full_catalog):
    auto_fill(one_week_template.id, rng=random.Random(1))
    before = {s.id: s.recipe_id for s in rotation.get_slots(one_week_template.id)}
    result = auto_fill(one_week_template.id, rng=random.Random(99))
    assert result.filled == 0
    assert result.skipped == 224
    assert {s.id: s.recipe_id for s in rotation.get_slots(one_week_template.id)} == before


def test_empty_categories_are_skipped_not_errors(one_week_template, add_recipe):
    meat = [add_recipe(f"Meat {i}", "MainMeat") for i in range(10)]

    result = auto_fill(one_week_template.id, rng=random.Random(5))

    # main1 draws from MainMeat and MainFish; MainFish being empty doesn't matter
    main1 = [s for s in _served(rotation.get_slots(one_week_template.id)) if s.course == "main1"]
    assert all(s.recipe_id in meat for s in main1)
    assert result.by_course["main1"] == {"filled": 21, "skipped": 7}
    # No soups in the catalog
    assert result.by_course["soup"] == {"filled": 0, "skipped": 28}
    assert result.filled == 21
    assert result.skipped == 224 - 21


def test_pool_exhaustion_accepts_repeats(one_week_template, add_recipe):
    only_side = add_recipe("Reis", "Sides")
    result = auto_fill(one_week_template.id, rng=random.Random(5))
    # 4 side courses x 3 served meals x 7 days, all the same recipe
    assert result.by_course["side1a"]["filled"] == 21
    sides = [s for s in _served(rotation.get_slots(one_week_template.id)) if s.course.startswith("side")]
    assert len(sides) == 84
    assert {s.recipe_id for s in sides} == {only_side}


def test_no_rotation_recipes_are_never_picked(one_week_template, full_catalog, add_recipe):
    excluded = add_recipe("Weihnachtsgans", "MainMeat", tags="no-rotation")
    auto_fill(one_week_template.id, rng=random.Random(11))
    assert all(s.recipe_id != excluded for s in rotation.get_slots(one_week_template.id))


def test_unknown_template_raises(db):
    with pytest.raises(TemplateNotFound):
        auto_fill(4242)


def test_recipe_pool_cycles_and_avoids_used():
    recipes = [Recipe(id=i, name=f"R{i}", category="Sides") for i in range(1, 4)]
    pool = RecipePool(recipes, random.Random(0))
    picks = {pool.pick(set()).id for _ in range(3)}
    assert picks == {1, 2, 3}

    assert pool.pick({1, 2}).id == 3
    assert pool.pick({1, 2, 3}).id in {1, 2, 3}


def test_recipe_pool_empty_returns_none():
    assert RecipePool([], random.Random(0)).pick(set()) is None


def test_build_pools_unions_course_categories():
    recipes = [
        Recipe(id=1, name="Reis", category="Sides"),
        Recipe(id=2, name="Gurkensalat", category="Salads"),
        Recipe(id=3, name="Topfencreme", category="ColdDesserts"),
    ]
    pools = build_pools(recipes, random.Random(0))
    assert set(pools) == set(COURSES)
    assert {r.id for r in pools["side1a"].recipes} == {1}
    assert {r.id for r in pools["side1b"].recipes} == {1, 2}
    assert {r.id for r in pools["dessert"].recipes} == {3}
    assert len(pools["soup"]) == 0
