from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.exceptions import HTTPException
from pydantic import BaseModel, Field

from kitchen_rotation.core import feedback as feedback_core
from kitchen_rotation.core import pairing_scores as scores_core
from kitchen_rotation.core import rules as rules_core
from kitchen_rotation.core.ai_assistant import research_combo
from kitchen_rotation.core.feedback import FeedbackBatch, GameRatingIn
from app.dependencies import current_user

router = APIRouter(prefix="/api/quiz", tags=["quiz"])


class RulePatch(BaseModel):
    is_active: bool


class ResearchIn(BaseModel):
    combo: str = Field(min_length=1)
    soup: str = ""


@router.get("/week-combos/{template_id}/{week_nr}")
def week_combos(template_id: int, week_nr: int):
    return feedback_core.get_week_combos(template_id, week_nr)


@router.post("/feedback")
def submit_feedback(batch: FeedbackBatch, user: Optional[str] = Depends(current_user)):
    try:
        inserted = feedback_core.submit_batch(batch, user_id=user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "inserted": inserted}


@router.get("/my-ratings/{template_id}/{week_nr}")
def my_ratings(template_id: int, week_nr: int, user: Optional[str] = Depends(current_user)):
    return feedback_core.get_user_ratings(user, template_id, week_nr)


@router.get("/pairing-scores")
def pairing_scores(main_recipe_id: Optional[int] = None):
    return scores_core.get_pairing_scores(main_recipe_id)


@router.get("/dashboard-stats")
def dashboard_stats():
    return scores_core.get_dashboard_stats()


@router.get("/patterns")
def patterns(min_count: int = rules_core.MIN_RATING_COUNT):
    return rules_core.analyze_patterns(min_count)


# ── Learned rules ──────────────────────────────────────────────────────────────

@router.get("/learned-rules")
def learned_rules(active_only: bool = False):
    return rules_core.get_rules(active_only=active_only)


@router.post("/learned-rules/learn")
def learn_rules():
    return rules_core.learn_rules()


@router.put("/learned-rules/{rule_id}")
def update_rule(rule_id: int, body: RulePatch):
    rule = rules_core.set_rule_active(rule_id, body.is_active)
    if rule is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule


@router.post("/ai-validate")
def ai_validate():
    try:
        return rules_core.ai_validate()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ── Card game ──────────────────────────────────────────────────────────────────

@router.post("/game-feedback")
def game_feedback(entry: GameRatingIn, user: Optional[str] = Depends(current_user)):
    return feedback_core.submit_game_rating(entry, user_id=user)


@router.get("/game-entries")
def game_entries(limit: int = 100):
    return feedback_core.get_game_entries(limit)


@router.post("/ai-research")
def ai_research(body: ResearchIn):
    try:
        return research_combo(body.combo, soup=body.soup)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
