"""
api/routes/v1/users.py -- User administration REST endpoints (Admin only).

Routes:
  GET    /api/v1/users          -- list all users
  GET    /api/v1/users/roles    -- the fixed role catalog
  GET    /api/v1/users/{id}     -- one user
  POST   /api/v1/users          -- create user (201)
  PUT    /api/v1/users/{id}     -- partial update
  DELETE /api/v1/users/{id}     -- delete user (204)

Every route depends on require_admin. The directory raises ConflictError /
UserNotFoundError; this module turns them into 409 / 404 with the standard
error envelope. Anything else propagates to the generic 500 handler.

/users/roles is registered before /users/{user_id} so the literal path wins.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import RoleResponse, UserCreate, UserResponse, UserUpdate
from auth.dependencies import require_admin
from auth.directory import UserDirectory
from auth.errors import ConflictError, UserNotFoundError
from auth.models import NewUser, UserChanges, UserProfile
from auth.roles import ROLE_CATALOG

logger = logging.getLogger("gatekeeper.api")

router = APIRouter()


def _directory(request: Request) -> UserDirectory:
    return request.app.state.directory


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    request: Request,
    current_user: UserProfile = Depends(require_admin),
) -> list[UserResponse]:
    users = _directory(request).list_users()
    logger.info("Listed %d users", len(users))
    return [UserResponse.from_profile(u) for u in users]


@router.get("/users/roles", response_model=list[RoleResponse])
async def list_roles(current_user: UserProfile = Depends(require_admin)) -> list[RoleResponse]:
    """Return the three catalog roles. Static: never read from the store."""
    return [RoleResponse(id=int(r.id), name=r.name, description=r.description) for r in ROLE_CATALOG]


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    request: Request,
    user_id: int,
    current_user: UserProfile = Depends(require_admin),
) -> UserResponse:
    user = _directory(request).get_user(user_id)
    if user is None:
        raise _not_found(user_id)
    return UserResponse.from_profile(user)


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(
    request: Request,
    body: UserCreate,
    current_user: UserProfile = Depends(require_admin),
) -> UserResponse:
    """Create a user account. Roles come from roleIds, else roles (names), else Employee."""
    new_user = NewUser(
        username=body.username,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        is_active=body.is_active,
        role_ids=body.role_ids,
        role_names=body.roles,
    )
    try:
        created = _directory(request).create_user(new_user)
    except ConflictError as exc:
        logger.warning("Create rejected: %s already taken", exc.field)
        raise _conflict(exc) from exc
    return UserResponse.from_profile(created)


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    current_user: UserProfile = Depends(require_admin),
) -> UserResponse:
    """Partially update a user. roleIds, when present, replaces every assignment."""
    changes = UserChanges(
        username=body.username,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        is_active=body.is_active,
        role_ids=body.role_ids,
    )
    try:
        updated = _directory(request).update_user(user_id, changes)
    except UserNotFoundError as exc:
        raise _not_found(user_id) from exc
    except ConflictError as exc:
        logger.warning("Update of user id=%s rejected: %s already taken", user_id, exc.field)
        raise _conflict(exc) from exc
    return UserResponse.from_profile(updated)


@router.delete("/users/{user_id}", status_code=204)
async def delete_user(
    request: Request,
    user_id: int,
    current_user: UserProfile = Depends(require_admin),
) -> Response:
    try:
        _directory(request).delete_user(user_id)
    except UserNotFoundError as exc:
        raise _not_found(user_id) from exc
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _not_found(user_id: int) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "not_found", "message": f"User {user_id} not found."},
    )


def _conflict(exc: ConflictError) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"code": "conflict", "message": str(exc), "detail": exc.field},
    )
