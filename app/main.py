import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kitchen_rotation.core import locations
from kitchen_rotation.core.locations import LocationResolver
from kitchen_rotation.db.database import init_db
from app.dependencies import verify_session_token, is_public, SESSION_COOKIE
from app.routers import auth, rotation, menu_plans, feedback, settings, demo

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize main DB
    init_db()
    locations.ensure_defaults()
    app.state.location_resolver = LocationResolver()
    # Initialize and seed demo DB if DEMO_DB_URL is set
    demo_url = os.environ.get("DEMO_DB_URL")
    if demo_url:
        from kitchen_rotation.db.database import override_db_path
        from demo.seed import seed_if_empty
        with override_db_path(Path(demo_url)):
            init_db()
            seed_if_empty()
    logger.info("Kitchen rotation API started")
    yield


app = FastAPI(lifespan=lifespan)


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    if not is_public(request.url.path):
        token = request.cookies.get(SESSION_COOKIE)
        if not token or not verify_session_token(token):
            return JSONResponse({"detail": "Not authenticated"}, status_code=401)
    return await call_next(request)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(auth.router)
app.include_router(rotation.router)
app.include_router(menu_plans.router)
app.include_router(feedback.router)
app.include_router(settings.router)
app.include_router(demo.router)
