from fastapi import APIRouter, Depends
from fastapi.exceptions import HTTPException

from kitchen_rotation.core.locations import LocationResolver
from kitchen_rotation.core.materializer import RotationConfigError, get_or_generate_week_plan
from app.dependencies import location_resolver

router = APIRouter(prefix="/api/menu-plans", tags=["menu-plans"])


@router.get("/week/{year}/{week}")
def week_plan(
    year: int,
    week: int,
    force: bool = False,
    resolver: LocationResolver = Depends(location_resolver),
):
    """Menu plans of an ISO week, generated from the active rotation when missing."""
    try:
        return get_or_generate_week_plan(year, week, force=force, resolver=resolver)
    except RotationConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid ISO week {year}-W{week}")
