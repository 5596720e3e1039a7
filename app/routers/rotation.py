from datetime import date
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query
from fastapi.exceptions import HTTPException
from pydantic import BaseModel, Field

from kitchen_rotation.core import rotation as rotation_core
from kitchen_rotation.core.auto_fill import auto_fill
from kitchen_rotation.core.locations import LocationResolver
from kitchen_rotation.core.materializer import RotationConfigError, generate_week
from kitchen_rotation.core.rotation import TemplateNotFound
from kitchen_rotation.db.models import RotationSlot
from app.dependencies import location_resolver

router = APIRouter(prefix="/api", tags=["rotation"])


class TemplateIn(BaseModel):
    name: str = Field(min_length=1)
    week_count: int = Field(default=6, ge=1)
    is_active: bool = True


class TemplatePatch(BaseModel):
    name: Optional[str] = None
    week_count: Optional[int] = Field(default=None, ge=1)
    is_active: Optional[bool] = None


class SlotIn(BaseModel):
    template_id: int
    week_nr: int = Field(ge=1)
    day_of_week: int = Field(ge=0, le=6)
    meal: str = Field(min_length=1)
    location_slug: str = Field(min_length=1)
    course: str
    recipe_id: Optional[int] = None


class SlotPatch(BaseModel):
    recipe_id: Optional[int] = None


class ClearIn(BaseModel):
    template_id: int
    scope: str = "all"
    week_nr: Optional[int] = None
    day_of_week: Optional[int] = None


class AutoFillIn(BaseModel):
    template_id: int
    overwrite: bool = False


class GenerateIn(BaseModel):
    template_id: int
    week_nr: int = Field(ge=1)
    monday_date: date


# ── Templates ──────────────────────────────────────────────────────────────────

@router.get("/rotation-templates")
def templates_list():
    return rotation_core.get_templates()


@router.post("/rotation-templates/ensure-default")
def templates_ensure_default():
    return rotation_core.ensure_default_template()


@router.post("/rotation-templates")
def templates_create(body: TemplateIn):
    try:
        return rotation_core.create_template(body.name, body.week_count, body.is_active)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/rotation-templates/{template_id}")
def templates_detail(template_id: int):
    try:
        return rotation_core.get_overview(template_id)
    except TemplateNotFound:
        raise HTTPException(status_code=404, detail="Template not found")


@router.put("/rotation-templates/{template_id}")
def templates_update(template_id: int, body: TemplatePatch):
    try:
        return rotation_core.update_template(
            template_id, name=body.name, week_count=body.week_count, is_active=body.is_active,
        )
    except TemplateNotFound:
        raise HTTPException(status_code=404, detail="Template not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ── Slots ──────────────────────────────────────────────────────────────────────

@router.get("/rotation-slots/{template_id}")
def slots_list(template_id: int, week_nr: Optional[int] = Query(None, alias="weekNr")):
    if rotation_core.get_template(template_id) is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return rotation_core.get_slots(template_id, week_nr)


@router.post("/rotation-slots")
def slots_create(body: Union[list[SlotIn], SlotIn]):
    items = body if isinstance(body, list) else [body]
    slots = [RotationSlot(id=None, **item.model_dump()) for item in items]
    try:
        stored = rotation_core.create_slots(slots)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return stored if isinstance(body, list) else stored[0]


@router.post("/rotation-slots/clear")
def slots_clear(body: ClearIn):
    if rotation_core.get_template(body.template_id) is None:
        raise HTTPException(status_code=404, detail="Template not found")
    try:
        cleared = rotation_core.clear_slots(body.template_id, body.scope, body.week_nr, body.day_of_week)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"cleared": cleared}


@router.put("/rotation-slots/{slot_id}")
def slots_update(slot_id: int, body: SlotPatch):
    slot = rotation_core.update_slot(slot_id, body.recipe_id)
    if slot is None:
        raise HTTPException(status_code=404, detail="Slot not found")
    return slot


# ── Auto-fill & materialization ────────────────────────────────────────────────

@router.post("/rotation/auto-fill")
def rotation_auto_fill(body: AutoFillIn):
    try:
        return auto_fill(body.template_id, overwrite=body.overwrite)
    except TemplateNotFound:
        raise HTTPException(status_code=404, detail="Template not found")


@router.post("/rotation/generate")
def rotation_generate(body: GenerateIn, resolver: LocationResolver = Depends(location_resolver)):
    try:
        created = generate_week(body.template_id, body.week_nr, body.monday_date, resolver)
    except TemplateNotFound:
        raise HTTPException(status_code=404, detail="Template not found")
    except RotationConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"created": created}
