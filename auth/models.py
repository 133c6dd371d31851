"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own the
domain shape; the store, directory and routes do the work.

Two shapes describe a stored user:
  User         -- the full record, including hashed_password. Only the
                  store, the directory and the login workflow ever see it.
  UserProfile  -- the sanitized projection returned by every directory read
                  that leaves the auth package. No hash field exists on it,
                  so it cannot leak by accident.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class User:
    """A stored Gatekeeper account.

    username and email are each unique and compared case-sensitively.
    first_name / last_name are stored as "" when not supplied.
    updated_at stays None until the first successful update.
    """

    username: str
    email: str
    hashed_password: str
    id: Optional[int] = None
    first_name: str = ""
    last_name: str = ""
    is_active: bool = True
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: Optional[str] = None


@dataclass
class UserProfile:
    """Sanitized user view: every User field except the hash, plus role names."""

    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    is_active: bool
    created_at: str
    updated_at: Optional[str] = None
    roles: list[str] = field(default_factory=list)


@dataclass
class NewUser:
    """Input for UserDirectory.create_user().

    role_ids and role_names are the two accepted role formats; see
    auth/roles.select_role_input() for the precedence between them.
    """

    username: str
    email: str
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool = True
    role_ids: list[int] = field(default_factory=list)
    role_names: list[str] = field(default_factory=list)


@dataclass
class UserChanges:
    """Partial update for UserDirectory.update_user(). None means "leave as is".

    role_ids=None leaves assignments untouched; role_ids=[] removes them all.
    """

    username: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: Optional[bool] = None
    role_ids: Optional[list[int]] = None


@dataclass(frozen=True)
class TokenIdentity:
    """Identity reconstructed from a token payload without verifying it."""

    user_id: int
    username: str
    email: str
    roles: tuple[str, ...]
    expires_at: datetime


@dataclass
class LoginResult:
    token: str
    user: UserProfile
    expires_at: datetime
