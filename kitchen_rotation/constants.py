"""Fixed kitchen vocabulary shared by the rotation engine and the API."""

RECIPE_CATEGORIES = [
    "ClearSoups", "CreamSoups",
    "MainMeat", "MainFish", "MainVegan",
    "Sides", "Salads",
    "HotDesserts", "ColdDesserts",
]

# Fill order within one meal.
COURSES = ["soup", "main1", "side1a", "side1b", "main2", "side2a", "side2b", "dessert"]

COURSE_CATEGORIES = {
    "soup": ("ClearSoups", "CreamSoups"),
    "main1": ("MainMeat", "MainFish"),
    "side1a": ("Sides",),
    "side1b": ("Sides", "Salads"),
    "main2": ("MainVegan",),
    "side2a": ("Sides",),
    "side2b": ("Sides", "Salads"),
    "dessert": ("HotDesserts", "ColdDesserts"),
}

MEALS = ["lunch", "dinner"]

# Older rotation data uses the German meal names.
MEAL_ALIASES = {
    "mittag": "lunch",
    "abend": "dinner",
}

# 0=Sunday. Monday-first processing order.
DAYS_OF_WEEK = [1, 2, 3, 4, 5, 6, 0]

PRIMARY_LOCATION = "city"
MIRROR_LOCATION = "sued"
DEFAULT_LOCATIONS = {
    PRIMARY_LOCATION: "City",
    MIRROR_LOCATION: "Süd",
}

DEFAULT_TEMPLATE_NAME = "Standard-Rotation"
DEFAULT_WEEK_COUNT = 6

# Recipes carrying this tag never enter an auto-fill pool.
NO_ROTATION_TAG = "no-rotation"

PAIRING_TYPES = ["main_starch", "main_veggie"]

# (main course, side course, pairing type) observable in one meal.
PAIRING_SLOTS = [
    ("main1", "side1a", "main_starch"),
    ("main1", "side1b", "main_veggie"),
    ("main2", "side2a", "main_starch"),
    ("main2", "side2b", "main_veggie"),
]
