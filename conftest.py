"""
Shared pytest fixtures.

Every test gets its own pair of SQLite files under tmp_path, and bcrypt
runs at its minimum cost so the suite stays fast.
"""

import os

import pytest

from authserver.auth import AuthManager, hashing


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(hashing, "BCRYPT_ROUNDS", 4)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep AUTHSERVER_* variables from the outer shell out of settings."""
    for key in list(os.environ):
        if key.upper().startswith("AUTHSERVER_"):
            monkeypatch.delenv(key)


@pytest.fixture
def fresh_manager(tmp_path):
    """AuthManager on empty databases, not yet bootstrapped."""
    return AuthManager(tmp_path / "system.db", tmp_path / "tokens.db")


@pytest.fixture
def seed(fresh_manager):
    """Result of the first bootstrap run."""
    return fresh_manager.bootstrap()


@pytest.fixture
def manager(fresh_manager, seed):
    return fresh_manager


@pytest.fixture
def admin(seed):
    return seed.admin


@pytest.fixture
def admin_secret(seed):
    return seed.secret


@pytest.fixture
def make_user(manager, admin):
    """Create a plain user (no grants) as the admin."""
    def _make(name, secret="hunter2", **kwargs):
        return manager.add_user(admin, name, secret, **kwargs)
    return _make
