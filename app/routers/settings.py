from typing import Optional

from fastapi import APIRouter
from fastapi.exceptions import HTTPException
from pydantic import BaseModel

from kitchen_rotation.config import get_base_epsilon, get_setting, set_setting
from kitchen_rotation.core.exploration import MAX_EPSILON

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingsIn(BaseModel):
    claude_api_key: str = ""
    quiz_epsilon: Optional[float] = None


def _settings_view() -> dict:
    key = get_setting("claude_api_key") or ""
    return {
        "key_set": bool(key),
        "masked_key": key[:8] + "..." if len(key) > 8 else "",
        "quiz_epsilon": get_base_epsilon(),
    }


@router.get("")
def settings_page():
    return _settings_view()


@router.post("")
def settings_save(body: SettingsIn):
    if body.quiz_epsilon is not None:
        if not 0.0 <= body.quiz_epsilon <= MAX_EPSILON:
            raise HTTPException(status_code=400, detail=f"quiz_epsilon must be between 0 and {MAX_EPSILON}")
        set_setting("quiz_epsilon", str(body.quiz_epsilon))
    if body.claude_api_key.strip():
        set_setting("claude_api_key", body.claude_api_key.strip())
    return _settings_view()
