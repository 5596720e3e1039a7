"""Pairing feedback — which pairings a rotation week shows, and their ratings.

A meal offers up to four ratable pairings: main1 with side1a (starch) and
side1b (veggie), main2 with side2a and side2b.  Ratings arrive in batches
from the rotation quiz, or one at a time from the card game, where dishes
are named rather than referenced by id.
"""

import logging
from typing import Literal, Optional

from pydantic import BaseModel, Field

from kitchen_rotation.constants import PAIRING_SLOTS
from kitchen_rotation.core import recipes as recipes_core
from kitchen_rotation.core.aggregation_queue import aggregation_queue
from kitchen_rotation.core.materializer import is_mirrored_slot
from kitchen_rotation.db.database import get_connection
from kitchen_rotation.db.models import PairingRating

logger = logging.getLogger(__name__)

PairingType = Literal["main_starch", "main_veggie"]


class RatingIn(BaseModel):
    """One rated pairing of a rotation week."""
    day_of_week: int = Field(ge=0, le=6)
    meal: str = Field(min_length=1)
    location_slug: str = Field(min_length=1)
    main_recipe_id: int
    side_recipe_id: int
    pairing_type: PairingType
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None


class FeedbackBatch(BaseModel):
    """Ratings for one rotation week, submitted together."""
    template_id: int
    week_nr: int = Field(ge=1)
    ratings: list[RatingIn] = Field(min_length=1)


class GameRatingIn(BaseModel):
    """A card-game rating; dishes are identified by name."""
    main_name: str = Field(min_length=1)
    side_name: str = Field(min_length=1)
    pairing_type: PairingType
    rating: int = Field(ge=1, le=5)


def get_week_combos(template_id: int, week_nr: int) -> list[dict]:
    """The ratable pairings of a rotation week, for every served meal where both dishes are set."""
    conn = get_connection()
    try:
        rows = conn.execute(
            """SELECT rs.day_of_week, rs.meal, rs.location_slug, rs.course, rs.recipe_id,
                      r.name AS recipe_name
               FROM rotation_slots rs
               LEFT JOIN recipes r ON r.id = rs.recipe_id
               WHERE rs.template_id = ? AND rs.week_nr = ? AND rs.recipe_id IS NOT NULL
               ORDER BY rs.day_of_week, rs.meal, rs.location_slug""",
            (template_id, week_nr),
        ).fetchall()
    finally:
        conn.close()

    meals: dict[tuple, dict[str, dict]] = {}
    for row in rows:
        key = (row["day_of_week"], row["meal"], row["location_slug"])
        meals.setdefault(key, {})[row["course"]] = {
            "id": row["recipe_id"], "name": row["recipe_name"],
        }

    combos = []
    for (dow, meal, location), courses in meals.items():
        if is_mirrored_slot(location, meal):
            continue
        for main_course, side_course, pairing_type in PAIRING_SLOTS:
            main = courses.get(main_course)
            side = courses.get(side_course)
            if main and side:
                combos.append({
                    "day_of_week": dow,
                    "meal": meal,
                    "location_slug": location,
                    "main_recipe_id": main["id"],
                    "main_recipe_name": main["name"],
                    "side_recipe_id": side["id"],
                    "side_recipe_name": side["name"],
                    "pairing_type": pairing_type,
                })
    return combos


def submit_batch(batch: FeedbackBatch, user_id: Optional[str] = None) -> int:
    """Store a validated batch of ratings and schedule re-aggregation. Returns rows inserted.

    Raises ValueError, writing nothing, if a rating names a recipe id that is
    not in the catalog.
    """
    recipe_ids = {r.main_recipe_id for r in batch.ratings} | {r.side_recipe_id for r in batch.ratings}
    conn = get_connection()
    try:
        placeholders = ",".join("?" * len(recipe_ids))
        known = {
            row["id"] for row in conn.execute(
                f"SELECT id FROM recipes WHERE id IN ({placeholders})", list(recipe_ids),
            ).fetchall()
        }
        unknown = sorted(recipe_ids - known)
        if unknown:
            raise ValueError(f"Unknown recipe id(s): {', '.join(map(str, unknown))}")
        conn.executemany(
            """INSERT INTO pairing_ratings
               (user_id, template_id, week_nr, day_of_week, meal, location_slug,
                main_recipe_id, side_recipe_id, pairing_type, rating, comment)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            [
                (user_id, batch.template_id, batch.week_nr, r.day_of_week, r.meal, r.location_slug,
                 r.main_recipe_id, r.side_recipe_id, r.pairing_type, r.rating, r.comment or None)
                for r in batch.ratings
            ],
        )
        conn.commit()
    finally:
        conn.close()
    aggregation_queue.enqueue()
    return len(batch.ratings)


def submit_game_rating(entry: GameRatingIn, user_id: Optional[str] = None) -> dict:
    """Store a card-game rating, resolving dishes by exact name (case-insensitive).

    Unresolved names are stored with a null id; the aggregation retries them.
    """
    conn = get_connection()
    try:
        main_id = recipes_core.find_id_by_name(conn, entry.main_name)
        side_id = recipes_core.find_id_by_name(conn, entry.side_name)
        conn.execute(
            """INSERT INTO pairing_ratings
               (user_id, meal, main_recipe_id, side_recipe_id, main_name, side_name,
                pairing_type, rating)
               VALUES (?, 'game', ?, ?, ?, ?, ?, ?)""",
            (user_id, main_id, side_id, entry.main_name.strip(), entry.side_name.strip(),
             entry.pairing_type, entry.rating),
        )
        conn.commit()
    finally:
        conn.close()

    if main_id is not None and side_id is not None:
        aggregation_queue.enqueue()
    else:
        logger.info("Game rating stored with unresolved dish: %r + %r", entry.main_name, entry.side_name)
    return {"ok": True, "main_id": main_id, "side_id": side_id}


def _row_to_rating(row) -> PairingRating:
    return PairingRating(
        id=row["id"],
        user_id=row["user_id"],
        template_id=row["template_id"],
        week_nr=row["week_nr"],
        day_of_week=row["day_of_week"],
        meal=row["meal"],
        location_slug=row["location_slug"],
        main_recipe_id=row["main_recipe_id"],
        side_recipe_id=row["side_recipe_id"],
        pairing_type=row["pairing_type"],
        rating=row["rating"],
        comment=row["comment"],
        main_name=row["main_name"],
        side_name=row["side_name"],
        created_at=row["created_at"],
    )


def get_user_ratings(user_id: Optional[str], template_id: int, week_nr: int) -> list[PairingRating]:
    """A user's ratings for one rotation week (empty for anonymous users)."""
    if not user_id:
        return []
    conn = get_connection()
    try:
        rows = conn.execute(
            """SELECT * FROM pairing_ratings
               WHERE user_id = ? AND template_id = ? AND week_nr = ?
               ORDER BY day_of_week, meal, id""",
            (user_id, template_id, week_nr),
        ).fetchall()
        return [_row_to_rating(r) for r in rows]
    finally:
        conn.close()


def get_game_entries(limit: int = 100) -> list[PairingRating]:
    """Most recent card-game ratings first."""
    conn = get_connection()
    try:
        rows = conn.execute(
            "SELECT * FROM pairing_ratings WHERE meal = 'game' ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [_row_to_rating(r) for r in rows]
    finally:
        conn.close()
