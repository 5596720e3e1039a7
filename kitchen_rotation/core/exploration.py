"""Adaptive exploration rate for surfacing pairings to raters.

With little feedback every pairing is worth asking about; as ratings pile up
the rate decays toward the configured base so well-known good pairings are
shown more often.  The selection itself happens elsewhere.
"""

import math

from kitchen_rotation.config import DEFAULT_BASE_EPSILON, get_base_epsilon
from kitchen_rotation.db.database import get_connection

MAX_EPSILON = 0.5
COLD_START_RATINGS = 50
DECAY_RATE = 0.01


def get_adaptive_epsilon(total_ratings: int, base_epsilon: float = DEFAULT_BASE_EPSILON) -> float:
    """Exploration probability for the given rating volume."""
    if total_ratings < COLD_START_RATINGS:
        return MAX_EPSILON
    return base_epsilon + (MAX_EPSILON - base_epsilon) * math.exp(
        -DECAY_RATE * (total_ratings - COLD_START_RATINGS)
    )


def total_ratings() -> int:
    conn = get_connection()
    try:
        return conn.execute("SELECT COUNT(*) AS n FROM pairing_ratings").fetchone()["n"]
    finally:
        conn.close()


def current_epsilon() -> float:
    """Epsilon for the current database, using the quiz_epsilon setting as base."""
    return get_adaptive_epsilon(total_ratings(), get_base_epsilon())
