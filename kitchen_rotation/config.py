"""Key-value settings storage backed by the SQLite settings table.

Known keys:
    claude_api_key  — Anthropic API key for rule validation (stored as-is, never exported).
    quiz_epsilon    — base exploration rate for pairing selection (default 0.2).
"""

from kitchen_rotation.db.database import get_connection

DEFAULT_BASE_EPSILON = 0.2


def get_setting(key: str, default: str = None) -> str:
    """Return the value for a settings key, or default if not found."""
    conn = get_connection()
    try:
        row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default
    finally:
        conn.close()


def set_setting(key: str, value: str) -> None:
    """Insert or update a settings key-value pair (upsert)."""
    conn = get_connection()
    try:
        conn.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (key, value),
        )
        conn.commit()
    finally:
        conn.close()


def get_base_epsilon() -> float:
    """Return the configured base epsilon, falling back to the default on bad values."""
    raw = get_setting("quiz_epsilon")
    if raw is None:
        return DEFAULT_BASE_EPSILON
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_BASE_EPSILON
    return value if 0.0 <= value <= 0.5 else DEFAULT_BASE_EPSILON
