import os
from typing import Optional

from fastapi import Request
from itsdangerous import BadSignature, URLSafeTimedSerializer

from kitchen_rotation.core.locations import LocationResolver

SESSION_COOKIE = "kr_session"
SESSION_MAX_AGE = 60 * 60 * 24 * 7  # 7 days


def _get_signer() -> URLSafeTimedSerializer:
    key = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")
    return URLSafeTimedSerializer(key)


def create_session_token(user: str) -> str:
    return _get_signer().dumps({"user": user})


def read_session_token(token: str) -> Optional[str]:
    """Return the user name stored in a valid token, else None."""
    try:
        data = _get_signer().loads(token, max_age=SESSION_MAX_AGE)
    except BadSignature:
        return None
    if not isinstance(data, dict):
        return None
    return data.get("user")


def verify_session_token(token: str) -> bool:
    return read_session_token(token) is not None


def current_user(request: Request) -> Optional[str]:
    token = request.cookies.get(SESSION_COOKIE)
    return read_session_token(token) if token else None


def location_resolver(request: Request) -> LocationResolver:
    return request.app.state.location_resolver


# Paths that don't require auth
_PUBLIC_PREFIXES = ("/login", "/demo", "/health")


def is_public(path: str) -> bool:
    return any(path.startswith(p) for p in _PUBLIC_PREFIXES)
