"""Dataclass models for all database entities.

Each class maps 1:1 to a database table. Fields use Optional types for
nullable columns. These are plain data containers with no business logic.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Location:
    """A kitchen location, addressed by slug in the rotation grid ('city', 'sued')."""
    id: Optional[int]
    slug: str
    name: str
    is_active: bool = True


@dataclass
class Recipe:
    """A catalog recipe.

    Category is one of the fixed kitchen categories (MainMeat, Sides, ...).
    Tags are stored as a comma-separated string (e.g. 'starch,no-rotation').
    """

    id: Optional[int]
    name: str
    category: str
    tags: Optional[str] = None
    created_at: Optional[str] = None

    def has_tag(self, tag: str) -> bool:
        if not self.tags:
            return False
        return tag.lower() in {t.strip().lower() for t in self.tags.split(",")}


@dataclass
class RotationTemplate:
    """A reusable N-week cyclic menu skeleton. At most one is active."""
    id: Optional[int]
    name: str
    week_count: int = 6
    is_active: bool = True
    created_at: Optional[str] = None


@dataclass
class RotationSlot:
    """One addressable cell of a rotation grid.

    day_of_week follows the 0=Sunday convention; recipe_id is None while the
    cell is empty. recipe_name is joined from the recipes table for display.
    """

    id: Optional[int]
    template_id: int
    week_nr: int
    day_of_week: int
    meal: str  # lunch, dinner
    location_slug: str
    course: str  # soup, main1, side1a, side1b, main2, side2a, side2b, dessert
    recipe_id: Optional[int] = None
    recipe_name: Optional[str] = None


@dataclass
class MenuPlan:
    """A calendar-bound menu entry, usually materialized from a rotation slot."""
    id: Optional[int]
    date: str  # ISO YYYY-MM-DD
    meal: str
    course: str
    recipe_id: Optional[int] = None
    portions: int = 1
    location_id: Optional[int] = None
    rotation_week_nr: Optional[int] = None
    notes: Optional[str] = None
    recipe_name: Optional[str] = None  # Joined from recipes table for display


@dataclass
class PairingRating:
    """A single rating of a (main, side) pairing. Append-only.

    Game-mode ratings carry meal='game', no template/week and keep the
    submitted dish names so unresolved ids can be reprocessed later.
    """

    id: Optional[int]
    meal: str
    pairing_type: str  # main_starch, main_veggie
    rating: int
    user_id: Optional[str] = None
    template_id: Optional[int] = None
    week_nr: Optional[int] = None
    day_of_week: Optional[int] = None
    location_slug: Optional[str] = None
    main_recipe_id: Optional[int] = None
    side_recipe_id: Optional[int] = None
    comment: Optional[str] = None
    main_name: Optional[str] = None
    side_name: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class PairingScore:
    """Aggregated score of one pairing. Fully derived from pairing_ratings."""
    main_recipe_id: int
    side_recipe_id: int
    pairing_type: str
    avg_score: float
    weighted_score: float
    rating_count: int
    last_updated: Optional[str] = None
    main_recipe_name: Optional[str] = None
    side_recipe_name: Optional[str] = None


@dataclass
class LearnedRule:
    """An advisory pairing rule, sourced from rating patterns ('human') or Claude ('ai')."""
    id: Optional[int]
    main_recipe_id: int
    rule_type: str
    target_recipe_name: Optional[str] = None
    confidence: float = 0.5
    source: str = "human"
    description: Optional[str] = None
    is_active: bool = True
    created_at: Optional[str] = None
    main_recipe_name: Optional[str] = None


@dataclass
class AnalyzedPattern:
    """A pairing whose aggregated score is clearly good or clearly bad."""
    main_recipe_id: int
    main_recipe_name: str
    side_recipe_id: int
    side_recipe_name: str
    pairing_type: str
    avg_score: float
    rating_count: int
    pattern: str  # preferred, forbidden


@dataclass
class AutoFillResult:
    """Outcome of an auto-fill run. by_course maps course -> {'filled', 'skipped'}."""
    filled: int = 0
    skipped: int = 0
    by_course: dict = field(default_factory=dict)
