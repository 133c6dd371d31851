"""Unit tests for auth/directory.py and auth/store.py -- user CRUD with roles.

Covers:
- create: resolved roles, sanitized profile, Conflict on duplicate username/email
- create: unknown role ids silently skipped, default Employee role
- create: IntegrityError from a race past the pre-check surfaces as Conflict
- update: partial fields, role replacement, [] vs omitted roleIds, Conflict, NotFound
- delete: assignments removed, NotFound for unknown id
- role catalog seeding is idempotent
- ids beyond 64-bit range act as unknown ids
"""

import dataclasses

import pytest

from auth.directory import SqlUserDirectory, seed_admin
from auth.errors import ConflictError, UserNotFoundError
from auth.models import NewUser, UserChanges, UserProfile
from auth.roles import Role
from auth.store import UserStore
from auth.tokens import verify_password


def _new(username: str = "ada", email: str = "ada@example.com", **kwargs) -> NewUser:
    return NewUser(username=username, email=email, password="Passw0rd!", **kwargs)


class TestCreate:
    def test_create_then_lookup_returns_roles_without_hash(self, directory: SqlUserDirectory) -> None:
        created = directory.create_user(_new(role_ids=[Role.ADMIN, Role.MANAGER], first_name="Ada"))

        fetched = directory.get_user(created.id)
        assert isinstance(fetched, UserProfile)
        assert fetched.username == "ada"
        assert fetched.email == "ada@example.com"
        assert fetched.first_name == "Ada"
        assert fetched.last_name == ""
        assert fetched.roles == ["Admin", "Manager"]
        assert fetched.is_active is True
        assert fetched.created_at
        assert fetched.updated_at is None
        field_names = {f.name for f in dataclasses.fields(fetched)}
        assert "hashed_password" not in field_names

    def test_password_is_stored_hashed(self, directory: SqlUserDirectory, store: UserStore) -> None:
        created = directory.create_user(_new())
        record = store.get_by_id(created.id)
        assert record is not None
        assert record.hashed_password != "Passw0rd!"
        assert verify_password("Passw0rd!", record.hashed_password)

    def test_default_role_is_employee(self, directory: SqlUserDirectory) -> None:
        assert directory.create_user(_new()).roles == ["Employee"]

    def test_role_names_used_when_ids_empty(self, directory: SqlUserDirectory) -> None:
        created = directory.create_user(_new(role_names=["Manager", "Employé", "Manager"]))
        assert created.roles == ["Manager", "Employee"]

    def test_unknown_role_ids_are_skipped(self, directory: SqlUserDirectory) -> None:
        created = directory.create_user(_new(role_ids=[2, 42]))
        assert created.roles == ["Manager"]

    def test_duplicate_username_conflicts(self, directory: SqlUserDirectory) -> None:
        directory.create_user(_new())
        with pytest.raises(ConflictError) as excinfo:
            directory.create_user(_new(email="other@example.com"))
        assert excinfo.value.field == "username"

    def test_duplicate_email_conflicts(self, directory: SqlUserDirectory) -> None:
        directory.create_user(_new())
        with pytest.raises(ConflictError) as excinfo:
            directory.create_user(_new(username="ada2"))
        assert excinfo.value.field == "email"

    def test_uniqueness_is_case_sensitive(self, directory: SqlUserDirectory) -> None:
        directory.create_user(_new())
        other = directory.create_user(_new(username="Ada", email="Ada@example.com"))
        assert other.username == "Ada"

    def test_race_past_precheck_is_conflict(
        self, directory: SqlUserDirectory, store: UserStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        directory.create_user(_new())
        # Simulate a concurrent insert that landed after our pre-check ran.
        monkeypatch.setattr(store, "get_by_username", lambda username: None)
        monkeypatch.setattr(store, "get_by_email", lambda email: None)
        with pytest.raises(ConflictError):
            directory.create_user(_new())
        assert len(directory.list_users()) == 1


class TestList:
    def test_list_includes_roles_per_user(self, directory: SqlUserDirectory) -> None:
        directory.create_user(_new(role_ids=[Role.ADMIN]))
        directory.create_user(_new(username="bob", email="bob@example.com"))
        users = directory.list_users()
        assert [(u.username, u.roles) for u in users] == [("ada", ["Admin"]), ("bob", ["Employee"])]

    def test_get_unknown_is_none(self, directory: SqlUserDirectory) -> None:
        assert directory.get_user(999) is None


class TestUpdate:
    def test_partial_update_changes_only_supplied_fields(self, directory: SqlUserDirectory) -> None:
        created = directory.create_user(_new(first_name="Ada", last_name="Lovelace", role_ids=[2]))
        updated = directory.update_user(created.id, UserChanges(last_name="King"))
        assert updated.first_name == "Ada"
        assert updated.last_name == "King"
        assert updated.username == "ada"
        assert updated.roles == ["Manager"]
        assert updated.updated_at is not None

    def test_role_ids_replace_existing_assignments(self, directory: SqlUserDirectory) -> None:
        created = directory.create_user(_new(role_ids=[1, 2]))
        updated = directory.update_user(created.id, UserChanges(role_ids=[3, 3]))
        assert updated.roles == ["Employee"]

    def test_empty_role_ids_removes_all_roles(self, directory: SqlUserDirectory) -> None:
        created = directory.create_user(_new(role_ids=[1, 2]))
        updated = directory.update_user(created.id, UserChanges(role_ids=[]))
        assert updated.roles == []
        assert directory.get_role_names(created.id) == []

    def test_omitted_role_ids_leave_assignments(self, directory: SqlUserDirectory) -> None:
        created = directory.create_user(_new(role_ids=[1, 2]))
        updated = directory.update_user(created.id, UserChanges(first_name="Ada"))
        assert updated.roles == ["Admin", "Manager"]

    def test_deactivate(self, directory: SqlUserDirectory) -> None:
        created = directory.create_user(_new())
        assert directory.update_user(created.id, UserChanges(is_active=False)).is_active is False

    def test_username_taken_by_other_user_conflicts(self, directory: SqlUserDirectory) -> None:
        directory.create_user(_new())
        bob = directory.create_user(_new(username="bob", email="bob@example.com"))
        with pytest.raises(ConflictError):
            directory.update_user(bob.id, UserChanges(username="ada"))

    def test_email_taken_by_other_user_conflicts(self, directory: SqlUserDirectory) -> None:
        directory.create_user(_new())
        bob = directory.create_user(_new(username="bob", email="bob@example.com"))
        with pytest.raises(ConflictError):
            directory.update_user(bob.id, UserChanges(email="ada@example.com"))

    def test_keeping_own_username_and_email_is_not_a_conflict(self, directory: SqlUserDirectory) -> None:
        created = directory.create_user(_new())
        updated = directory.update_user(created.id, UserChanges(username="ada", email="ada@example.com"))
        assert updated.username == "ada"

    def test_failed_update_changes_nothing(self, directory: SqlUserDirectory) -> None:
        directory.create_user(_new())
        bob = directory.create_user(_new(username="bob", email="bob@example.com", role_ids=[2]))
        with pytest.raises(ConflictError):
            directory.update_user(bob.id, UserChanges(email="ada@example.com", role_ids=[]))
        assert directory.get_user(bob.id).roles == ["Manager"]

    def test_unknown_user_is_not_found(self, directory: SqlUserDirectory) -> None:
        with pytest.raises(UserNotFoundError):
            directory.update_user(999, UserChanges(first_name="x"))


class TestDelete:
    def test_delete_removes_user_and_assignments(self, directory: SqlUserDirectory, store: UserStore) -> None:
        created = directory.create_user(_new(role_ids=[1, 2]))
        directory.delete_user(created.id)
        assert directory.get_user(created.id) is None
        assert store.get_role_names(created.id) == []
        assert store.get_role_names_by_user() == {}

    def test_delete_unknown_is_not_found(self, directory: SqlUserDirectory) -> None:
        with pytest.raises(UserNotFoundError):
            directory.delete_user(12345)


class TestStoreSetup:
    def test_role_seeding_is_idempotent(self, store: UserStore) -> None:
        store._seed_roles()
        store._seed_roles()
        directory = SqlUserDirectory(store)
        created = directory.create_user(_new(role_ids=[1, 2, 3]))
        assert created.roles == ["Admin", "Manager", "Employee"]

    def test_seed_admin_only_on_empty_store(self, directory: SqlUserDirectory, store: UserStore) -> None:
        assert seed_admin(directory, store, "root", "root@example.com", "Root123*") is True
        assert seed_admin(directory, store, "root2", "root2@example.com", "Root123*") is False
        users = directory.list_users()
        assert [(u.username, u.roles) for u in users] == [("root", ["Admin"])]

    def test_seed_admin_disabled_without_credentials(self, directory: SqlUserDirectory, store: UserStore) -> None:
        assert seed_admin(directory, store, "root", "", "") is False
        assert not store.has_users()


class TestOutOfRangeIds:
    """Ids no SQL integer column can hold behave like any other unknown id."""

    HUGE = 2**63

    def test_lookup_and_delete_are_not_found(self, directory: SqlUserDirectory, store: UserStore) -> None:
        assert directory.get_user(self.HUGE) is None
        assert store.get_role_names(self.HUGE) == []
        with pytest.raises(UserNotFoundError):
            directory.delete_user(self.HUGE)
        with pytest.raises(UserNotFoundError):
            directory.update_user(self.HUGE, UserChanges(first_name="x"))

    def test_huge_role_ids_are_skipped_on_create(self, directory: SqlUserDirectory) -> None:
        created = directory.create_user(_new(role_ids=[2, self.HUGE, -self.HUGE]))
        assert created.roles == ["Manager"]

    def test_huge_role_ids_are_skipped_on_update(self, directory: SqlUserDirectory) -> None:
        created = directory.create_user(_new(role_ids=[1]))
        updated = directory.update_user(created.id, UserChanges(role_ids=[self.HUGE]))
        assert updated.roles == []
