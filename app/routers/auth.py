import os
from fastapi import APIRouter, Form
from fastapi.responses import JSONResponse
from app.dependencies import create_session_token, SESSION_COOKIE, SESSION_MAX_AGE

router = APIRouter(tags=["auth"])


def _app_password() -> str:
    """Read APP_PASSWORD at call time so tests can set it via env."""
    return os.environ.get("APP_PASSWORD", "")


@router.post("/login")
async def login(password: str = Form(...), user: str = Form("kitchen")):
    if password and password == _app_password():
        resp = JSONResponse({"ok": True, "user": user})
        resp.set_cookie(
            SESSION_COOKIE,
            create_session_token(user),
            httponly=True,
            samesite="lax",
            max_age=SESSION_MAX_AGE,
        )
        return resp
    return JSONResponse({"ok": False, "error": "Invalid password"}, status_code=401)


@router.post("/logout")
async def logout():
    resp = JSONResponse({"ok": True})
    resp.delete_cookie(SESSION_COOKIE)
    return resp
