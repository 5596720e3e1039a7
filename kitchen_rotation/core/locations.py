"""Kitchen locations and the slug <-> id resolver used by the week materializer."""

import logging
import threading
from pathlib import Path
from typing import Optional

from kitchen_rotation.constants import DEFAULT_LOCATIONS
from kitchen_rotation.db.database import get_connection, get_db_path
from kitchen_rotation.db.models import Location

logger = logging.getLogger(__name__)


def get_all() -> list[Location]:
    """Return all locations ordered by id."""
    conn = get_connection()
    try:
        rows = conn.execute("SELECT * FROM locations ORDER BY id").fetchall()
        return [
            Location(id=r["id"], slug=r["slug"], name=r["name"], is_active=bool(r["is_active"]))
            for r in rows
        ]
    finally:
        conn.close()


def ensure_defaults() -> int:
    """Create the fixed kitchen locations if missing. Returns how many were added."""
    conn = get_connection()
    try:
        added = 0
        for slug, name in DEFAULT_LOCATIONS.items():
            cursor = conn.execute(
                "INSERT OR IGNORE INTO locations (slug, name) VALUES (?, ?)",
                (slug, name),
            )
            added += cursor.rowcount
        conn.commit()
        if added:
            logger.info("Created %d default location(s)", added)
        return added
    finally:
        conn.close()


class LocationResolver:
    """Lazily loaded slug <-> id lookup, cached per database file.

    Long-running processes call invalidate() after locations change; the
    next lookup reloads from the database.
    """

    def __init__(self):
        self._cache: dict[Path, dict[str, int]] = {}
        self._lock = threading.Lock()

    def _mapping(self) -> dict[str, int]:
        path = get_db_path()
        with self._lock:
            mapping = self._cache.get(path)
            if mapping is None:
                mapping = {loc.slug: loc.id for loc in get_all()}
                self._cache[path] = mapping
            return mapping

    def id_for(self, slug: str) -> Optional[int]:
        return self._mapping().get(slug)

    def slug_for(self, location_id: int) -> Optional[str]:
        for slug, loc_id in self._mapping().items():
            if loc_id == location_id:
                return slug
        return None

    def invalidate(self) -> None:
        with self._lock:
            self._cache.clear()
