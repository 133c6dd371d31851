"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/login     -- email/password login; returns JWT + profile
  POST /api/v1/auth/validate  -- stateless token check; {isValid}
  GET  /api/v1/auth/me        -- current user profile (requires auth)

Security:
  Rate limit: POST /login is rate-limited per client IP (Settings.login_rate_limit).
  Timing: auth.service.login() equalizes bcrypt work -- use it, never inline
       a lookup + verify_password().
  Caching: Cache-Control: no-store on login responses.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    TokenValidationRequest,
    TokenValidationResponse,
    UserResponse,
)
from auth.dependencies import get_current_user
from auth.models import UserProfile
from auth.service import login as login_user
from auth.service import validate
from core.config import get_settings

logger = logging.getLogger("gatekeeper.api")

# Auth policy:
# - POST /api/v1/auth/login:     public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/validate:  public -- the dashboard checks stored tokens before use
# - GET  /api/v1/auth/me:        requires auth (get_current_user)
router = APIRouter()


@limiter.limit(get_settings().login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a bearer token.

    Unknown email, inactive account and wrong password all produce the same
    401 body ("bad_credentials"), so the response never reveals which one held.
    """
    result = login_user(request.app.state.directory, body.email, body.password)
    if result is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=result.token,
            user=UserResponse.from_profile(result.user),
            expires_at=result.expires_at,
        ).model_dump(mode="json", by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/validate", response_model=TokenValidationResponse)
async def validate_token(body: TokenValidationRequest) -> TokenValidationResponse:
    """Report whether a token is authentic, addressed to us, and unexpired.

    Always 200: an invalid token is an answer here, not an error.
    """
    return TokenValidationResponse(is_valid=validate(body.token))


@router.get("/auth/me", response_model=UserResponse)
async def me(current_user: UserProfile = Depends(get_current_user)) -> UserResponse:
    """Return the profile of the currently authenticated user."""
    return UserResponse.from_profile(current_user)
