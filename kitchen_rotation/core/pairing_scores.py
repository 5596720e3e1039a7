"""Pairing score aggregation — pairing_ratings -> pairing_scores.

Scores are rebuilt from scratch on every run inside a single write
transaction, so running the aggregation twice, or from two threads at once,
leaves the same table behind.

weighted_score is a Bayesian average: PRIOR_WEIGHT pseudo-ratings of PRIOR
are mixed into the real ratings, so a pairing with one rating sits close to
neutral and a pairing with many ratings converges to its plain average.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Optional

from kitchen_rotation.core import calendar
from kitchen_rotation.core import recipes as recipes_core
from kitchen_rotation.core.exploration import current_epsilon
from kitchen_rotation.db.database import get_connection
from kitchen_rotation.db.models import PairingScore

logger = logging.getLogger(__name__)

PRIOR = 3.0
PRIOR_WEIGHT = 5


def weighted_score(avg_score: float, rating_count: int) -> float:
    """Shrink avg_score toward PRIOR; the pull weakens as rating_count grows."""
    if rating_count <= 0:
        return PRIOR
    return (PRIOR_WEIGHT * PRIOR + avg_score * rating_count) / (PRIOR_WEIGHT + rating_count)


def resolve_game_ratings(conn) -> int:
    """Fill in ids of game ratings whose dish names now match a recipe. Returns rows updated."""
    rows = conn.execute(
        """SELECT id, main_recipe_id, side_recipe_id, main_name, side_name
           FROM pairing_ratings
           WHERE (main_recipe_id IS NULL AND main_name IS NOT NULL)
              OR (side_recipe_id IS NULL AND side_name IS NOT NULL)"""
    ).fetchall()
    updated = 0
    for row in rows:
        main_id = row["main_recipe_id"] or recipes_core.find_id_by_name(conn, row["main_name"])
        side_id = row["side_recipe_id"] or recipes_core.find_id_by_name(conn, row["side_name"])
        if main_id != row["main_recipe_id"] or side_id != row["side_recipe_id"]:
            conn.execute(
                "UPDATE pairing_ratings SET main_recipe_id = ?, side_recipe_id = ? WHERE id = ?",
                (main_id, side_id, row["id"]),
            )
            updated += 1
    return updated


def aggregate_pairing_scores() -> int:
    """Recompute every pairing score from the ratings. Returns pairings written."""
    conn = get_connection()
    try:
        conn.execute("BEGIN IMMEDIATE")
        resolved = resolve_game_ratings(conn)
        if resolved:
            logger.info("Resolved dish ids for %d game rating(s)", resolved)

        rows = conn.execute(
            """SELECT main_recipe_id, side_recipe_id, pairing_type, rating
               FROM pairing_ratings
               WHERE main_recipe_id IS NOT NULL AND side_recipe_id IS NOT NULL"""
        ).fetchall()

        groups: dict[tuple, list[int]] = defaultdict(list)
        for row in rows:
            groups[(row["main_recipe_id"], row["side_recipe_id"], row["pairing_type"])].append(row["rating"])

        conn.execute("DELETE FROM pairing_scores")
        for (main_id, side_id, pairing_type), ratings in groups.items():
            avg = sum(ratings) / len(ratings)
            conn.execute(
                """INSERT INTO pairing_scores
                   (main_recipe_id, side_recipe_id, pairing_type, avg_score, weighted_score,
                    rating_count, last_updated)
                   VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)""",
                (main_id, side_id, pairing_type, avg,
                 round(weighted_score(avg, len(ratings)), 2), len(ratings)),
            )
        conn.commit()
    finally:
        conn.close()
    logger.debug("Aggregated %d pairing scores from %d ratings", len(groups), len(rows))
    return len(groups)


def _row_to_score(row) -> PairingScore:
    return PairingScore(
        main_recipe_id=row["main_recipe_id"],
        side_recipe_id=row["side_recipe_id"],
        pairing_type=row["pairing_type"],
        avg_score=round(row["avg_score"], 2),
        weighted_score=row["weighted_score"],
        rating_count=row["rating_count"],
        last_updated=row["last_updated"],
        main_recipe_name=row["main_name"],
        side_recipe_name=row["side_name"],
    )


_SCORE_SELECT = """SELECT ps.*, r1.name AS main_name, r2.name AS side_name
                   FROM pairing_scores ps
                   JOIN recipes r1 ON r1.id = ps.main_recipe_id
                   JOIN recipes r2 ON r2.id = ps.side_recipe_id"""


def get_pairing_scores(main_recipe_id: Optional[int] = None) -> list[PairingScore]:
    """All scores (optionally for one main dish), best weighted score first."""
    conn = get_connection()
    try:
        query = _SCORE_SELECT
        params: list = []
        if main_recipe_id is not None:
            query += " WHERE ps.main_recipe_id = ?"
            params.append(main_recipe_id)
        query += " ORDER BY ps.weighted_score DESC, ps.rating_count DESC"
        return [_row_to_score(r) for r in conn.execute(query, params).fetchall()]
    finally:
        conn.close()


def get_dashboard_stats() -> dict:
    """Headline numbers for the feedback dashboard."""
    conn = get_connection()
    try:
        total = conn.execute("SELECT COUNT(*) AS n FROM pairing_ratings").fetchone()["n"]
        avg = conn.execute("SELECT COALESCE(AVG(rating), 0) AS avg FROM pairing_ratings").fetchone()["avg"]
        unique_pairings = conn.execute(
            """SELECT COUNT(*) AS n FROM (
                   SELECT DISTINCT main_recipe_id, side_recipe_id, pairing_type FROM pairing_ratings
                   WHERE main_recipe_id IS NOT NULL AND side_recipe_id IS NOT NULL
               )"""
        ).fetchone()["n"]
        active_rules = conn.execute(
            "SELECT COUNT(*) AS n FROM learned_rules WHERE is_active = 1"
        ).fetchone()["n"]
        top = conn.execute(
            _SCORE_SELECT + " ORDER BY ps.weighted_score DESC LIMIT 10"
        ).fetchall()
        flop = conn.execute(
            _SCORE_SELECT + " ORDER BY ps.weighted_score ASC LIMIT 10"
        ).fetchall()
        dist_rows = conn.execute(
            "SELECT rating, COUNT(*) AS n FROM pairing_ratings GROUP BY rating"
        ).fetchall()
        day_rows = conn.execute(
            """SELECT date(created_at) AS day, COUNT(*) AS n, SUM(rating) AS total
               FROM pairing_ratings
               WHERE created_at >= datetime('now', '-84 days')
               GROUP BY day"""
        ).fetchall()
    finally:
        conn.close()

    distribution = {row["rating"]: row["n"] for row in dist_rows}

    # SQLite's %W is not the ISO week the rest of the app uses
    weeks: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for row in day_rows:
        year, week = calendar.iso_week(date.fromisoformat(row["day"]))
        bucket = weeks[f"{year}-W{week:02d}"]
        bucket[0] += row["n"]
        bucket[1] += row["total"]

    return {
        "total_ratings": total,
        "avg_score": round(avg, 2),
        "unique_pairings": unique_pairings,
        "active_rules": active_rules,
        "current_epsilon": round(current_epsilon(), 3),
        "top_pairings": [_row_to_score(r) for r in top],
        "flop_pairings": [_row_to_score(r) for r in flop],
        "score_distribution": [{"rating": r, "count": distribution.get(r, 0)} for r in range(1, 6)],
        "ratings_over_time": [
            {"week": week, "count": n, "avg": round(total / n, 2)}
            for week, (n, total) in sorted(weeks.items())
        ],
    }
