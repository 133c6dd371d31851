"""
API request and response models for Gatekeeper REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format: JSON field names are camelCase (expiresAt, isValid, roleIds) to
match the dashboard client. Request models also accept snake_case
(populate_by_name) so scripts can post either form. Responses are always
dumped with by_alias=True.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import UserProfile

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one "@", no whitespace, a dot in the domain. Deliverability
# is not our problem; rejecting obvious garbage before it reaches the store is.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# At least one lowercase, one uppercase, one digit and one of @$!%*?&, and
# nothing outside that alphabet. Checked with `re` in a validator because
# pydantic's pattern= engine does not support lookaheads.
_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]+$")

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)
_CAMEL_FROZEN = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def _strip(cls, value):
    """Trim surrounding whitespace from identity fields. Passwords and tokens are never touched."""
    return value.strip() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = _CAMEL

    email: str = Field(min_length=3, max_length=100, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=100)

    strip_email = field_validator("email", mode="before")(_strip)


class TokenValidationRequest(BaseModel):
    """Request body for POST /api/v1/auth/validate."""

    model_config = _CAMEL

    token: str = Field(min_length=1, max_length=4096)


# ---------------------------------------------------------------------------
# Users -- request models
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users.

    Roles may be given as roleIds (preferred) or as role names in roles. When
    roleIds is non-empty, roles is ignored. When both are empty the user gets
    the Employee role.
    """

    model_config = _CAMEL

    username: str = Field(min_length=1, max_length=50)
    email: str = Field(min_length=3, max_length=100, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=100)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    role_ids: list[int] = Field(default_factory=list, max_length=10)
    roles: list[str] = Field(default_factory=list, max_length=10)
    is_active: bool = True

    @field_validator("password")
    @classmethod
    def check_complexity(cls, value: str) -> str:
        if not _PASSWORD_RE.match(value):
            raise ValueError(
                "Password must contain a lowercase letter, an uppercase letter, "
                "a digit and one of @$!%*?&, and no other characters."
            )
        return value

    strip_identity = field_validator("username", "email", "first_name", "last_name", mode="before")(_strip)

    @field_validator("role_ids", "roles", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        """Older dashboard builds send null for the role format they do not use."""
        return [] if value is None else value


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{id}. Every field is optional.

    An omitted (or null) field is left unchanged. roleIds is the exception
    worth spelling out: omitted keeps the current roles, [] removes them all.
    """

    model_config = _CAMEL

    username: Optional[str] = Field(default=None, min_length=1, max_length=50)
    email: Optional[str] = Field(default=None, min_length=3, max_length=100, pattern=EMAIL_PATTERN)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    is_active: Optional[bool] = None
    role_ids: Optional[list[int]] = Field(default=None, max_length=10)

    strip_identity = field_validator("username", "email", "first_name", "last_name", mode="before")(_strip)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Sanitized user representation. There is no password field to leak."""

    model_config = _CAMEL_FROZEN

    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    is_active: bool
    created_at: str
    updated_at: Optional[str] = None
    roles: list[str]

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserResponse":
        return cls(
            id=profile.id,
            username=profile.username,
            email=profile.email,
            first_name=profile.first_name,
            last_name=profile.last_name,
            is_active=profile.is_active,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
            roles=list(profile.roles),
        )


class LoginResponse(BaseModel):
    """Response for a successful POST /api/v1/auth/login."""

    model_config = _CAMEL_FROZEN

    token: str
    user: UserResponse
    expires_at: datetime


class TokenValidationResponse(BaseModel):
    """Response for POST /api/v1/auth/validate."""

    model_config = _CAMEL_FROZEN

    is_valid: bool


class RoleResponse(BaseModel):
    """One entry of the fixed role catalog."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: str
