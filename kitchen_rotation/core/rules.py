"""Learned pairing rules — derived from rating patterns or suggested by Claude.

Rules are advisory: cooks review and toggle them, and the auto-fill does not
read them.  Learning never raises for lack of data; it returns an empty
rule list with a message instead.
"""

import logging
from typing import Optional

import anthropic

from kitchen_rotation.core import ai_assistant
from kitchen_rotation.core import recipes as recipes_core
from kitchen_rotation.db.database import get_connection
from kitchen_rotation.db.models import AnalyzedPattern, LearnedRule

logger = logging.getLogger(__name__)

MIN_RATING_COUNT = 3
PREFERRED_MIN_AVG = 4.0
FORBIDDEN_MAX_AVG = 2.0

NO_PATTERNS_MESSAGE = "Not enough feedback data for rule learning"


def analyze_patterns(min_count: int = MIN_RATING_COUNT) -> list[AnalyzedPattern]:
    """Pairings with enough ratings that are clearly liked (preferred) or disliked (forbidden)."""
    conn = get_connection()
    try:
        rows = conn.execute(
            """SELECT ps.main_recipe_id, r1.name AS main_name,
                      ps.side_recipe_id, r2.name AS side_name,
                      ps.pairing_type, ps.avg_score, ps.rating_count
               FROM pairing_scores ps
               JOIN recipes r1 ON r1.id = ps.main_recipe_id
               JOIN recipes r2 ON r2.id = ps.side_recipe_id
               WHERE ps.rating_count >= ?
                 AND (ps.avg_score >= ? OR ps.avg_score <= ?)
               ORDER BY ps.avg_score DESC, ps.rating_count DESC""",
            (min_count, PREFERRED_MIN_AVG, FORBIDDEN_MAX_AVG),
        ).fetchall()
    finally:
        conn.close()
    return [
        AnalyzedPattern(
            main_recipe_id=row["main_recipe_id"],
            main_recipe_name=row["main_name"],
            side_recipe_id=row["side_recipe_id"],
            side_recipe_name=row["side_name"],
            pairing_type=row["pairing_type"],
            avg_score=round(row["avg_score"], 2),
            rating_count=row["rating_count"],
            pattern="preferred" if row["avg_score"] >= PREFERRED_MIN_AVG else "forbidden",
        )
        for row in rows
    ]


def rule_type_for(pattern: AnalyzedPattern) -> str:
    """main_starch + preferred -> preferred_starch, main_veggie + forbidden -> forbidden_veggie."""
    side_kind = "starch" if pattern.pairing_type == "main_starch" else "veggie"
    return f"{pattern.pattern}_{side_kind}"


def pattern_confidence(rating_count: int) -> float:
    """Confidence grows with evidence: 3 ratings -> 0.5, approaching 1.0."""
    return round(rating_count / (rating_count + MIN_RATING_COUNT), 2)


def _row_to_rule(row) -> LearnedRule:
    return LearnedRule(
        id=row["id"],
        main_recipe_id=row["main_recipe_id"],
        rule_type=row["rule_type"],
        target_recipe_name=row["target_recipe_name"],
        confidence=row["confidence"],
        source=row["source"],
        description=row["description"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        main_recipe_name=row["main_name"],
    )


_RULE_SELECT = """SELECT lr.*, r.name AS main_name
                  FROM learned_rules lr
                  JOIN recipes r ON r.id = lr.main_recipe_id"""


def get_rules(active_only: bool = False) -> list[LearnedRule]:
    """All rules, most confident first."""
    conn = get_connection()
    try:
        query = _RULE_SELECT
        if active_only:
            query += " WHERE lr.is_active = 1"
        query += " ORDER BY lr.confidence DESC, lr.id"
        return [_row_to_rule(r) for r in conn.execute(query).fetchall()]
    finally:
        conn.close()


def get_rule(rule_id: int) -> Optional[LearnedRule]:
    conn = get_connection()
    try:
        row = conn.execute(_RULE_SELECT + " WHERE lr.id = ?", (rule_id,)).fetchone()
        return _row_to_rule(row) if row else None
    finally:
        conn.close()


def _rule_exists(conn, main_recipe_id: int, rule_type: str, target: Optional[str]) -> bool:
    row = conn.execute(
        """SELECT 1 FROM learned_rules
           WHERE main_recipe_id = ? AND rule_type = ?
             AND LOWER(COALESCE(target_recipe_name, '')) = LOWER(COALESCE(?, ''))""",
        (main_recipe_id, rule_type, target),
    ).fetchone()
    return row is not None


def _insert_rule(conn, rule: LearnedRule) -> Optional[int]:
    """Insert unless an equivalent rule exists. Returns the new id or None."""
    if _rule_exists(conn, rule.main_recipe_id, rule.rule_type, rule.target_recipe_name):
        return None
    cursor = conn.execute(
        """INSERT INTO learned_rules
           (main_recipe_id, rule_type, target_recipe_name, confidence, source, description, is_active)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (rule.main_recipe_id, rule.rule_type, rule.target_recipe_name, rule.confidence,
         rule.source, rule.description, int(rule.is_active)),
    )
    return cursor.lastrowid


def create_rule(rule: LearnedRule) -> Optional[LearnedRule]:
    """Store a manually entered rule. Returns None if an equivalent rule exists."""
    if rule.source not in ("human", "ai"):
        raise ValueError("source must be 'human' or 'ai'")
    conn = get_connection()
    try:
        rule_id = _insert_rule(conn, rule)
        conn.commit()
    finally:
        conn.close()
    return get_rule(rule_id) if rule_id else None


def set_rule_active(rule_id: int, active: bool) -> Optional[LearnedRule]:
    """Activate or deactivate a rule. Returns None if it doesn't exist."""
    conn = get_connection()
    try:
        cursor = conn.execute(
            "UPDATE learned_rules SET is_active = ? WHERE id = ?", (int(active), rule_id)
        )
        conn.commit()
        if cursor.rowcount == 0:
            return None
    finally:
        conn.close()
    return get_rule(rule_id)


def learn_rules(min_count: int = MIN_RATING_COUNT) -> dict:
    """Turn current rating patterns into human-sourced rules."""
    patterns = analyze_patterns(min_count)
    if not patterns:
        return {"rules": [], "inserted": 0, "message": NO_PATTERNS_MESSAGE}

    created = []
    conn = get_connection()
    try:
        for p in patterns:
            rule = LearnedRule(
                id=None,
                main_recipe_id=p.main_recipe_id,
                rule_type=rule_type_for(p),
                target_recipe_name=p.side_recipe_name,
                confidence=pattern_confidence(p.rating_count),
                source="human",
                description=f"avg {p.avg_score}/5 from {p.rating_count} ratings",
            )
            rule_id = _insert_rule(conn, rule)
            if rule_id:
                rule.id = rule_id
                rule.main_recipe_name = p.main_recipe_name
                created.append(rule)
        conn.commit()
    finally:
        conn.close()
    logger.info("Learned %d new rule(s) from %d pattern(s)", len(created), len(patterns))
    return {"rules": created, "inserted": len(created), "message": f"{len(created)} rules created"}


def ai_validate(min_count: int = MIN_RATING_COUNT) -> dict:
    """Have Claude propose rules from the current patterns and store them as 'ai' rules.

    Raises ValueError when no API key is configured; every other failure
    yields an empty rule list with a message.
    """
    patterns = analyze_patterns(min_count)
    if not patterns:
        return {"rules": [], "inserted": 0, "message": "Not enough feedback data for AI analysis"}

    try:
        suggestions = ai_assistant.suggest_rules(patterns)
    except anthropic.APIError as e:
        logger.warning("AI rule validation failed: %s", e)
        return {"rules": [], "inserted": 0, "message": f"AI request failed: {e}"}
    if suggestions is None:
        return {"rules": [], "inserted": 0, "message": "AI response could not be parsed"}

    inserted = 0
    conn = get_connection()
    try:
        for s in suggestions:
            main_id = recipes_core.find_id_by_name(conn, s["main_recipe_name"])
            if main_id is None:
                continue
            rule_id = _insert_rule(conn, LearnedRule(
                id=None,
                main_recipe_id=main_id,
                rule_type=s["rule_type"],
                target_recipe_name=s["target_recipe_name"],
                confidence=s["confidence"],
                source="ai",
                description=s["description"],
            ))
            if rule_id:
                inserted += 1
        conn.commit()
    finally:
        conn.close()
    logger.info("AI suggested %d rule(s), %d stored", len(suggestions), inserted)
    return {"rules": suggestions, "inserted": inserted, "message": f"{inserted} AI rules created"}
