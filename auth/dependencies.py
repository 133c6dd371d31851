"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token transports are checked in priority order:
  1. Authorization: Bearer <token> header -- API clients and the dashboard.
  2. ?access_token=<token> query parameter -- lets the Swagger/ReDoc pages
     (which cannot set headers on their own page load) be opened with a token.

Both converge on a verified JWT whose user_id is looked up in the directory.
The profile (and therefore the role list used for gating) comes from the
directory, not from the token claims, so a role change or deactivation takes
effect on the next request rather than at token expiry.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
require_admin() wraps get_current_user() and raises HTTP 403 if not Admin.

Layer rule: auth/dependencies.py may import from fastapi (for
HTTPException/Request) because this module is part of the FastAPI dependency
injection system. No imports from api/.
"""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request

from auth.models import UserProfile
from auth.roles import ADMIN_ROLE_NAME
from auth.tokens import decode_access_token


def extract_token(request: Request) -> Optional[str]:
    """Return the raw bearer token from the header or query string, if any."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.query_params.get("access_token") or None


def try_get_current_user(request: Request) -> Optional[UserProfile]:
    """Authenticate the request. Returns the active user's profile or None. Never raises."""
    token = extract_token(request)
    if not token:
        return None
    payload = decode_access_token(token)
    if payload is None:
        return None
    user = request.app.state.directory.get_user(payload["user_id"])
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(request: Request) -> UserProfile:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: UserProfile = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_admin(request: Request) -> UserProfile:
    """Require the Admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not Admin."""
    user = get_current_user(request)
    if ADMIN_ROLE_NAME not in user.roles:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return user
