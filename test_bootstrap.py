"""
Tests for the idempotent system bootstrap.
"""

import sqlite3

import pytest

from authserver.auth import StorageError, WellKnownIDs, bootstrap
from authserver.auth.hashing import verify_secret


IDS = WellKnownIDs()


class TestFirstRun:
    """Bootstrap on empty stores."""

    def test_seeds_admin(self, seed):
        assert seed.seeded
        assert seed.admin.id == IDS.admin_user_id
        assert seed.admin.name == "admin"
        assert seed.admin.enabled
        assert seed.admin.created_by == "system"

    def test_secret_matches_stored_hash(self, manager, seed):
        stored = manager.db.get_user_by_id(IDS.admin_user_id)
        assert seed.secret
        assert stored.secret_hash != seed.secret
        assert verify_secret(stored.secret_hash, seed.secret)

    def test_seeds_resource_and_roles(self, manager):
        assert manager.db.get_resource_by_id(IDS.system_resource_id).name == "system"
        assert manager.db.get_role_by_id(IDS.system_admin_role_id).name == "sys_admin"
        assert manager.db.get_role_by_id(IDS.resource_delegate_role_id).name == "sys_delegate"

    def test_admin_login_resolves_single_grant(self, manager, seed):
        """The seeded admin holds exactly sys_admin on system."""
        grants, _ = manager.login("admin", seed.secret)

        assert grants.id == IDS.admin_user_id
        assert len(grants.resources) == 1
        resource = grants.resources[0]
        assert resource.name == "system"
        assert [role.name for role in resource.roles] == ["sys_admin"]


class TestIdempotence:
    """Re-running bootstrap on a seeded store."""

    def test_second_run_creates_nothing(self, manager, seed):
        again = manager.bootstrap()

        assert not again.seeded
        assert again.admin.id == seed.admin.id
        assert len(manager.db.list_users()) == 1
        assert len(manager.db.list_resources()) == 1
        assert len(manager.db.list_roles()) == 2
        assert len(manager.db.list_grants()) == 1

    def test_second_run_keeps_original_secret(self, manager, seed):
        again = manager.bootstrap()

        grants, _ = manager.login("admin", seed.secret)
        assert grants.name == "admin"
        stored = manager.db.get_user_by_id(IDS.admin_user_id)
        assert not verify_secret(stored.secret_hash, again.secret)

    def test_repairs_missing_grant(self, manager, seed):
        """A store missing only the admin grant gets it back."""
        with sqlite3.connect(manager.db.db_path) as conn:
            conn.execute("DELETE FROM user_resource_roles")

        manager.bootstrap()

        assert manager.policy.is_system_admin(IDS.admin_user_id)

    def test_custom_ids(self, fresh_manager):
        ids = WellKnownIDs(
            admin_user_id="u-root",
            system_resource_id="r-root",
            system_admin_role_id="role-admin",
            resource_delegate_role_id="role-delegate",
        )
        result = bootstrap(fresh_manager.db, fresh_manager.token_db, ids)

        assert result.admin.id == "u-root"
        assert fresh_manager.db.get_grant("u-root", "r-root", "role-admin") is not None


class TestFailure:
    """Storage failures during bootstrap."""

    def test_failed_step_rolls_back(self, fresh_manager, monkeypatch):
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(fresh_manager.db, "create_role", broken)

        with pytest.raises(StorageError) as exc_info:
            fresh_manager.bootstrap()

        assert "role sys_admin" in exc_info.value.stage
        # Admin insert shared the rolled back transaction
        with sqlite3.connect(fresh_manager.db.db_path) as conn:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        assert "users" not in tables
