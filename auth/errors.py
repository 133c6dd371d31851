"""
auth/errors.py -- Typed outcomes raised by the user directory.

Routes catch these and translate them to 404 / 409. Anything else that
escapes the directory (store unavailable, programming errors) is left to the
generic exception handler in api/main.py and surfaces as a 500.
"""

from __future__ import annotations


class DirectoryError(Exception):
    """Base class for expected user directory failures."""


class ConflictError(DirectoryError):
    """A username or email is already taken by another user."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"A user with that {field} already exists.")


class UserNotFoundError(DirectoryError):
    """No user exists with the requested id."""

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} not found.")
