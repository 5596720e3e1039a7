"""Seed the demo database with a small kitchen catalog, a filled rotation and some ratings."""
import logging
import random

from kitchen_rotation.core import locations, recipes as recipes_core
from kitchen_rotation.core.auto_fill import auto_fill
from kitchen_rotation.core.feedback import FeedbackBatch, RatingIn, get_week_combos, submit_batch
from kitchen_rotation.core.pairing_scores import aggregate_pairing_scores
from kitchen_rotation.core.rotation import ensure_default_template
from kitchen_rotation.db.models import Recipe

logger = logging.getLogger(__name__)

DEMO_RECIPES = [
    Recipe(id=None, name="Frittatensuppe", category="ClearSoups"),
    Recipe(id=None, name="Leberknödelsuppe", category="ClearSoups"),
    Recipe(id=None, name="Kürbiscremesuppe", category="CreamSoups"),
    Recipe(id=None, name="Erdäpfelcremesuppe", category="CreamSoups"),
    Recipe(id=None, name="Wiener Schnitzel", category="MainMeat"),
    Recipe(id=None, name="Tafelspitz", category="MainMeat"),
    Recipe(id=None, name="Rindsgulasch", category="MainMeat"),
    Recipe(id=None, name="Schweinsbraten", category="MainMeat"),
    Recipe(id=None, name="Gebratenes Zanderfilet", category="MainFish"),
    Recipe(id=None, name="Forelle Müllerin", category="MainFish"),
    Recipe(id=None, name="Linsencurry", category="MainVegan"),
    Recipe(id=None, name="Gemüselaibchen", category="MainVegan"),
    Recipe(id=None, name="Kichererbseneintopf", category="MainVegan"),
    Recipe(id=None, name="Petersilkartoffeln", category="Sides", tags="starch"),
    Recipe(id=None, name="Reis", category="Sides", tags="starch"),
    Recipe(id=None, name="Semmelknödel", category="Sides", tags="starch"),
    Recipe(id=None, name="Spätzle", category="Sides", tags="starch"),
    Recipe(id=None, name="Butterkarotten", category="Sides", tags="veggie"),
    Recipe(id=None, name="Rotkraut", category="Sides", tags="veggie"),
    Recipe(id=None, name="Erdäpfelsalat", category="Salads"),
    Recipe(id=None, name="Gurkensalat", category="Salads"),
    Recipe(id=None, name="Grüner Salat", category="Salads"),
    Recipe(id=None, name="Kaiserschmarrn", category="HotDesserts"),
    Recipe(id=None, name="Marillenknödel", category="HotDesserts"),
    Recipe(id=None, name="Topfencreme", category="ColdDesserts"),
    Recipe(id=None, name="Obstsalat", category="ColdDesserts"),
    Recipe(id=None, name="Weihnachtsgans", category="MainMeat", tags="no-rotation"),
]


def seed_if_empty():
    """Seed demo DB if it has no recipes yet."""
    if recipes_core.get_all():
        return  # Already seeded

    locations.ensure_defaults()
    for recipe in DEMO_RECIPES:
        recipes_core.add(recipe)

    rng = random.Random(42)
    template = ensure_default_template()
    result = auto_fill(template.id, rng=rng)

    # A week of quiz ratings so the score views have something to show
    combos = get_week_combos(template.id, 1)
    if combos:
        submit_batch(FeedbackBatch(
            template_id=template.id,
            week_nr=1,
            ratings=[
                RatingIn(
                    day_of_week=c["day_of_week"],
                    meal=c["meal"],
                    location_slug=c["location_slug"],
                    main_recipe_id=c["main_recipe_id"],
                    side_recipe_id=c["side_recipe_id"],
                    pairing_type=c["pairing_type"],
                    rating=rng.randint(1, 5),
                )
                for c in combos
            ],
        ), user_id="demo")
        aggregate_pairing_scores()
    logger.info("Seeded demo DB: %d recipes, %d slots filled, %d ratings",
                len(DEMO_RECIPES), result.filled, len(combos))
