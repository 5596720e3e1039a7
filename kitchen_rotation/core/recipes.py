"""Recipe catalog access — the slice of recipe CRUD the rotation engine needs.

Recipes are owned by the catalog service; the rotation engine only reads them
by category and resolves names for game-mode ratings and AI rules.
"""

from typing import Optional

from kitchen_rotation.constants import RECIPE_CATEGORIES
from kitchen_rotation.db.database import get_connection
from kitchen_rotation.db.models import Recipe


def _row_to_recipe(row) -> Recipe:
    return Recipe(
        id=row["id"],
        name=row["name"],
        category=row["category"],
        tags=row["tags"],
        created_at=row["created_at"],
    )


def get_all() -> list[Recipe]:
    """Return all recipes sorted alphabetically by name."""
    conn = get_connection()
    try:
        rows = conn.execute("SELECT * FROM recipes ORDER BY name").fetchall()
        return [_row_to_recipe(r) for r in rows]
    finally:
        conn.close()


def get(recipe_id: int) -> Optional[Recipe]:
    """Return a single recipe, or None if not found."""
    conn = get_connection()
    try:
        row = conn.execute("SELECT * FROM recipes WHERE id = ?", (recipe_id,)).fetchone()
        return _row_to_recipe(row) if row else None
    finally:
        conn.close()


def find_id_by_name(conn, name: Optional[str]) -> Optional[int]:
    """Resolve a dish name to a recipe id by case-insensitive exact match."""
    if not name or not name.strip():
        return None
    row = conn.execute(
        "SELECT id FROM recipes WHERE LOWER(name) = LOWER(?) ORDER BY id LIMIT 1",
        (name.strip(),),
    ).fetchone()
    return row["id"] if row else None


def find_by_name(name: str) -> Optional[Recipe]:
    """Return the recipe whose name matches exactly, ignoring case."""
    conn = get_connection()
    try:
        recipe_id = find_id_by_name(conn, name)
    finally:
        conn.close()
    return get(recipe_id) if recipe_id is not None else None


def add(recipe: Recipe) -> int:
    """Insert a new recipe. Return the new recipe ID."""
    if recipe.category not in RECIPE_CATEGORIES:
        raise ValueError(f"Unknown recipe category: {recipe.category}")
    conn = get_connection()
    try:
        cursor = conn.execute(
            "INSERT INTO recipes (name, category, tags) VALUES (?, ?, ?)",
            (recipe.name, recipe.category, recipe.tags),
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def delete(recipe_id: int) -> None:
    """Delete a recipe by ID. Slots and plans referencing it are nulled by the DB."""
    conn = get_connection()
    try:
        conn.execute("DELETE FROM recipes WHERE id = ?", (recipe_id,))
        conn.commit()
    finally:
        conn.close()
