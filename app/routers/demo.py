"""Demo router — read-only views backed by the demo DB.

Sets the db path override ContextVar so all core/ functions use demo.db.
Nothing here writes; the rotation overview does not provision a grid.
"""
import os
from pathlib import Path

from fastapi import APIRouter
from fastapi.exceptions import HTTPException

from kitchen_rotation.db.database import override_db_path
from kitchen_rotation.core import pairing_scores as scores_core
from kitchen_rotation.core import rotation as rotation_core

router = APIRouter(prefix="/demo", tags=["demo"])


def _demo_db_path() -> Path:
    return Path(os.environ.get("DEMO_DB_URL", "data/demo.db"))


@router.get("/rotation")
def demo_rotation():
    with override_db_path(_demo_db_path()):
        template = rotation_core.get_active_template()
        if template is None:
            raise HTTPException(status_code=404, detail="Demo rotation not seeded")
        return rotation_core.get_overview(template.id)


@router.get("/pairing-scores")
def demo_pairing_scores():
    with override_db_path(_demo_db_path()):
        return scores_core.get_pairing_scores()
