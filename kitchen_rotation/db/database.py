"""SQLite database connection management and schema initialization.

Provides a single-file database at ~/.kitchen_rotation/kitchen_rotation.db.
Every public function that needs a connection should call get_connection(),
use it, and close it in a finally block.
"""

import os
import sqlite3
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path

_db_path_override: ContextVar["Path | None"] = ContextVar("_db_path_override", default=None)


@contextmanager
def override_db_path(path: "Path"):
    """Context manager to override the DB path for the current async task/thread.

    Used by demo routes to serve reads from the demo DB without affecting
    other concurrent requests, and by the aggregation worker thread to run
    a job against the database it was enqueued for.

    Example:
        with override_db_path(DEMO_DB_PATH):
            template = rotation.ensure_default_template()
    """
    token = _db_path_override.set(path)
    try:
        yield
    finally:
        _db_path_override.reset(token)


def get_db_path() -> Path:
    """Return the active DB path.

    Priority order:
    1. ContextVar override (demo routes, aggregation worker)
    2. DB_PATH environment variable (Docker / local dev / tests)
    3. Default ~/.kitchen_rotation/kitchen_rotation.db
    """
    override = _db_path_override.get()
    if override is not None:
        return override
    env_url = os.environ.get("DB_PATH")
    if env_url:
        p = Path(env_url)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    db_dir = Path.home() / ".kitchen_rotation"
    db_dir.mkdir(exist_ok=True)
    return db_dir / "kitchen_rotation.db"


def get_connection(db_path: Path = None) -> sqlite3.Connection:
    """Return a new SQLite connection with Row factory and foreign keys enabled.

    Callers are responsible for closing the connection when done.
    """
    if db_path is None:
        db_path = get_db_path()
    conn = sqlite3.connect(str(db_path), timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: Path = None) -> None:
    """Create all tables if they don't already exist.

    Called once at application startup from main.py.
    Tables: locations, recipes, rotation_templates, rotation_slots,
    menu_plans, pairing_ratings, pairing_scores, learned_rules, settings.
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    cursor.executescript("""
        CREATE TABLE IF NOT EXISTS locations (
            id        INTEGER PRIMARY KEY AUTOINCREMENT,
            slug      TEXT NOT NULL UNIQUE,
            name      TEXT NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1
        );

        CREATE TABLE IF NOT EXISTS recipes (
            id         INTEGER PRIMARY KEY AUTOINCREMENT,
            name       TEXT NOT NULL,
            category   TEXT NOT NULL,
            tags       TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS rotation_templates (
            id         INTEGER PRIMARY KEY AUTOINCREMENT,
            name       TEXT NOT NULL,
            week_count INTEGER NOT NULL DEFAULT 6,
            is_active  INTEGER NOT NULL DEFAULT 1,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS rotation_slots (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            template_id   INTEGER NOT NULL REFERENCES rotation_templates(id) ON DELETE CASCADE,
            week_nr       INTEGER NOT NULL,
            day_of_week   INTEGER NOT NULL,
            meal          TEXT NOT NULL,
            location_slug TEXT NOT NULL,
            course        TEXT NOT NULL,
            recipe_id     INTEGER REFERENCES recipes(id) ON DELETE SET NULL,
            UNIQUE (template_id, week_nr, day_of_week, meal, location_slug, course)
        );

        CREATE TABLE IF NOT EXISTS menu_plans (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            date             TEXT NOT NULL,
            meal             TEXT NOT NULL,
            course           TEXT NOT NULL DEFAULT 'main',
            recipe_id        INTEGER REFERENCES recipes(id) ON DELETE SET NULL,
            portions         INTEGER NOT NULL DEFAULT 1,
            notes            TEXT,
            location_id      INTEGER REFERENCES locations(id) ON DELETE SET NULL,
            rotation_week_nr INTEGER
        );

        CREATE TABLE IF NOT EXISTS pairing_ratings (
            id             INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id        TEXT,
            template_id    INTEGER,
            week_nr        INTEGER,
            day_of_week    INTEGER,
            meal           TEXT NOT NULL,
            location_slug  TEXT,
            main_recipe_id INTEGER REFERENCES recipes(id) ON DELETE SET NULL,
            side_recipe_id INTEGER REFERENCES recipes(id) ON DELETE SET NULL,
            pairing_type   TEXT NOT NULL,
            rating         INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
            comment        TEXT,
            created_at     TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS pairing_scores (
            id             INTEGER PRIMARY KEY AUTOINCREMENT,
            main_recipe_id INTEGER NOT NULL REFERENCES recipes(id) ON DELETE CASCADE,
            side_recipe_id INTEGER NOT NULL REFERENCES recipes(id) ON DELETE CASCADE,
            pairing_type   TEXT NOT NULL,
            avg_score      REAL NOT NULL,
            weighted_score REAL NOT NULL,
            rating_count   INTEGER NOT NULL,
            last_updated   TEXT DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (main_recipe_id, side_recipe_id, pairing_type)
        );

        CREATE TABLE IF NOT EXISTS learned_rules (
            id                 INTEGER PRIMARY KEY AUTOINCREMENT,
            main_recipe_id     INTEGER NOT NULL REFERENCES recipes(id) ON DELETE CASCADE,
            rule_type          TEXT NOT NULL,
            target_recipe_name TEXT,
            confidence         REAL NOT NULL DEFAULT 0.5,
            source             TEXT NOT NULL DEFAULT 'human',
            description        TEXT,
            is_active          INTEGER NOT NULL DEFAULT 1,
            created_at         TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS settings (
            key   TEXT PRIMARY KEY,
            value TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_menu_plans_date ON menu_plans(date);
        CREATE INDEX IF NOT EXISTS idx_pairing_ratings_pair
            ON pairing_ratings(main_recipe_id, side_recipe_id, pairing_type);
    """)

    conn.commit()

    # Migrations for existing databases
    for col, table, col_type in [
        ("main_name", "pairing_ratings", "TEXT"),
        ("side_name", "pairing_ratings", "TEXT"),
    ]:
        try:
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {col} {col_type}")
            conn.commit()
        except sqlite3.OperationalError:
            pass  # Column already exists

    conn.close()
