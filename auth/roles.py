"""
auth/roles.py -- The fixed role catalog and the role-input resolver.

Gatekeeper knows exactly three roles. They are a process-wide constant, not
a table the application mutates: auth/store.py seeds them into the `roles`
table on startup so the join table has something to reference, but nothing
ever creates, renames, or deletes a role at runtime.

Role input on user creation arrives in one of two shapes:
  - an explicit list of role ids   ({"roleIds": [1, 2]})
  - a list of role names           ({"roles": ["Admin", "Manager"]})

select_role_input() turns the raw request fields into exactly one variant
(RoleIds or RoleNames, or None when neither carries anything) and resolve()
maps that variant to the canonical, deduplicated id list. Both are pure --
no store access -- so the precedence rules are testable in isolation.

Layer rule: stdlib only. No imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional, Union


class Role(IntEnum):
    ADMIN = 1
    MANAGER = 2
    EMPLOYEE = 3


@dataclass(frozen=True)
class RoleInfo:
    """One row of the role catalog, as exposed by GET /users/roles."""

    id: int
    name: str
    description: str


ROLE_CATALOG: tuple[RoleInfo, ...] = (
    RoleInfo(id=Role.ADMIN, name="Admin", description="Administrator with full access"),
    RoleInfo(id=Role.MANAGER, name="Manager", description="Manager with user management rights"),
    RoleInfo(id=Role.EMPLOYEE, name="Employee", description="Employee with basic rights"),
)

ADMIN_ROLE_NAME = "Admin"
DEFAULT_ROLE_ID: int = Role.EMPLOYEE

# Name -> id table for the name-based input format. "Employé" is the name the
# first dashboard release sent; "Employee" is the catalog name. Anything else
# falls back to DEFAULT_ROLE_ID.
_NAME_TO_ID: dict[str, int] = {
    "Admin": Role.ADMIN,
    "Manager": Role.MANAGER,
    "Employé": Role.EMPLOYEE,
    "Employee": Role.EMPLOYEE,
}

# ---------------------------------------------------------------------------
# Role input variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoleIds:
    """Explicit role identifiers. Not validated against the catalog here."""

    ids: tuple[int, ...]


@dataclass(frozen=True)
class RoleNames:
    """Role names, mapped through _NAME_TO_ID."""

    names: tuple[str, ...]


RoleInput = Union[RoleIds, RoleNames]


def select_role_input(
    role_ids: Optional[Iterable[int]] = None,
    role_names: Optional[Iterable[str]] = None,
) -> Optional[RoleInput]:
    """Pick the variant a request actually carries.

    A non-empty id list wins over names; names are ignored entirely in that
    case. Returns None when both are missing or empty.
    """
    ids = tuple(role_ids or ())
    if ids:
        return RoleIds(ids)
    names = tuple(role_names or ())
    if names:
        return RoleNames(names)
    return None


def resolve(role_input: Optional[RoleInput]) -> list[int]:
    """Map a role input variant to the ordered, deduplicated ids to assign."""
    if isinstance(role_input, RoleIds):
        return _dedupe(int(i) for i in role_input.ids)
    if isinstance(role_input, RoleNames):
        return _dedupe(_NAME_TO_ID.get(name, DEFAULT_ROLE_ID) for name in role_input.names)
    return [DEFAULT_ROLE_ID]


def resolve_role_ids(
    role_ids: Optional[Iterable[int]] = None,
    role_names: Optional[Iterable[str]] = None,
) -> list[int]:
    """Convenience wrapper: select_role_input() then resolve()."""
    return resolve(select_role_input(role_ids, role_names))


def _dedupe(values: Iterable[int]) -> list[int]:
    seen: set[int] = set()
    result: list[int] = []
    for v in values:
        v = int(v)
        if v not in seen:
            seen.add(v)
            result.append(v)
    return result
