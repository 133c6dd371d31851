"""
auth/directory.py -- The user directory: user CRUD with role reconciliation.

UserDirectory is the narrow capability the rest of the app depends on: the
five directory operations consumed by the /users routes, plus the two
lookups the login workflow needs. SqlUserDirectory implements it over
UserStore; tests substitute an in-memory fake.

Responsibilities owned here (not in the store, not in the routes):
  - Uniqueness pre-checks on username/email, and translation of the store's
    IntegrityError into the same ConflictError when two requests race past
    the pre-check.
  - Password hashing on create.
  - Running the role resolver on create, and the "supplied list fully
    replaces assignments" rule on update.
  - Projecting every user that leaves the directory through UserProfile.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError

from auth.errors import ConflictError, UserNotFoundError
from auth.models import NewUser, User, UserChanges, UserProfile
from auth.roles import ADMIN_ROLE_NAME, Role, resolve_role_ids
from auth.store import UserStore
from auth.tokens import hash_password

logger = logging.getLogger("gatekeeper.directory")


class UserDirectory(Protocol):
    def list_users(self) -> list[UserProfile]: ...

    def get_user(self, user_id: int) -> Optional[UserProfile]: ...

    def create_user(self, new_user: NewUser) -> UserProfile: ...

    def update_user(self, user_id: int, changes: UserChanges) -> UserProfile: ...

    def delete_user(self, user_id: int) -> None: ...

    def get_credentials_by_email(self, email: str) -> Optional[User]: ...

    def get_role_names(self, user_id: int) -> list[str]: ...


class SqlUserDirectory:
    """UserDirectory backed by a UserStore."""

    def __init__(self, store: UserStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_users(self) -> list[UserProfile]:
        roles_by_user = self.store.get_role_names_by_user()
        return [to_profile(u, roles_by_user.get(u.id, [])) for u in self.store.list_users()]

    def get_user(self, user_id: int) -> Optional[UserProfile]:
        user = self.store.get_by_id(user_id)
        if user is None:
            return None
        return to_profile(user, self.store.get_role_names(user_id))

    def get_credentials_by_email(self, email: str) -> Optional[User]:
        return self.store.get_by_email(email)

    def get_role_names(self, user_id: int) -> list[str]:
        return self.store.get_role_names(user_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, new_user: NewUser) -> UserProfile:
        """Create a user and assign its resolved roles.

        Raises ConflictError if the username or email is already taken.
        """
        if self.store.get_by_username(new_user.username) is not None:
            raise ConflictError("username")
        if self.store.get_by_email(new_user.email) is not None:
            raise ConflictError("email")

        role_ids = resolve_role_ids(new_user.role_ids, new_user.role_names)
        user = User(
            username=new_user.username,
            email=new_user.email,
            hashed_password=hash_password(new_user.password),
            first_name=new_user.first_name or "",
            last_name=new_user.last_name or "",
            is_active=new_user.is_active,
        )
        try:
            user_id = self.store.create_user(user, role_ids)
        except IntegrityError as exc:
            raise _conflict_from(exc) from exc

        logger.info("Created user %s (id=%s, role_ids=%s)", new_user.username, user_id, role_ids)
        return self._require_profile(user_id)

    def update_user(self, user_id: int, changes: UserChanges) -> UserProfile:
        """Apply a partial update.

        Raises UserNotFoundError for an unknown id and ConflictError when the
        new username or email belongs to a different user.
        """
        target = self.store.get_by_id(user_id)
        if target is None:
            raise UserNotFoundError(user_id)

        fields: dict = {}
        if changes.username is not None and changes.username != target.username:
            if self.store.get_by_username(changes.username) is not None:
                raise ConflictError("username")
            fields["username"] = changes.username
        if changes.email is not None and changes.email != target.email:
            if self.store.get_by_email(changes.email) is not None:
                raise ConflictError("email")
            fields["email"] = changes.email
        if changes.first_name is not None:
            fields["first_name"] = changes.first_name
        if changes.last_name is not None:
            fields["last_name"] = changes.last_name
        if changes.is_active is not None:
            fields["is_active"] = changes.is_active

        try:
            updated = self.store.update_user(user_id, fields, role_ids=changes.role_ids)
        except IntegrityError as exc:
            raise _conflict_from(exc) from exc
        if not updated:
            # Deleted between the lookup above and the write.
            raise UserNotFoundError(user_id)

        logger.info("Updated user id=%s (fields=%s, role_ids=%s)", user_id, sorted(fields), changes.role_ids)
        return self._require_profile(user_id)

    def delete_user(self, user_id: int) -> None:
        """Delete a user and its assignments. Raises UserNotFoundError for an unknown id."""
        if not self.store.delete_user(user_id):
            raise UserNotFoundError(user_id)
        logger.info("Deleted user id=%s", user_id)

    def _require_profile(self, user_id: int) -> UserProfile:
        profile = self.get_user(user_id)
        if profile is None:
            raise UserNotFoundError(user_id)
        return profile


# ---------------------------------------------------------------------------
# First-run bootstrap
# ---------------------------------------------------------------------------


def seed_admin(directory: UserDirectory, store: UserStore, username: str, email: str, password: str) -> bool:
    """Create an Admin account when the store holds no users yet.

    Returns True if a user was created. Does nothing when email or password
    is empty, or when any user already exists.
    """
    if not email or not password or store.has_users():
        return False
    try:
        directory.create_user(
            NewUser(
                username=username,
                email=email,
                password=password,
                first_name="Admin",
                last_name="System",
                role_ids=[Role.ADMIN],
            )
        )
    except ConflictError:
        # A concurrent worker seeded first.
        return False
    logger.info("Seeded initial %s account %s", ADMIN_ROLE_NAME, email)
    return True


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def to_profile(user: User, roles: list[str]) -> UserProfile:
    return UserProfile(
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
        roles=list(roles),
    )


def _conflict_from(exc: IntegrityError) -> ConflictError:
    # SQLite: "UNIQUE constraint failed: users.email"; Postgres names the key.
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return ConflictError("email" if "email" in message else "username")
