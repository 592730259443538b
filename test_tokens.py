"""
Tests for bearer token issue, rotation and resolution.
"""

import threading
from datetime import timedelta

import pytest

from authserver.auth import InvalidTokenError
from authserver.auth.models import utcnow
from authserver.auth.database import SUPERSEDED_BY


class TestIssue:
    """Token issue and rotation."""

    def test_issue_and_resolve(self, manager, admin):
        token = manager.tokens.issue_token(admin)

        assert token.user_id == admin.id
        assert token.created_by == "admin"
        assert token.expires - token.created == timedelta(hours=1)
        assert manager.tokens.resolve_token(token.token).id == admin.id

    def test_tokens_are_unique(self, manager, admin):
        first = manager.tokens.issue_token(admin)
        second = manager.tokens.issue_token(admin)
        assert first.token != second.token

    def test_rotation_leaves_one_live_token(self, manager, admin):
        issued = [manager.tokens.issue_token(admin) for _ in range(5)]

        for old in issued[:-1]:
            with pytest.raises(InvalidTokenError):
                manager.tokens.resolve_token(old.token)
        assert manager.tokens.resolve_token(issued[-1].token).id == admin.id

        stored = manager.token_db.list_for_user(admin.id)
        assert len(stored) == 5
        assert [t.deleted_by for t in stored[:-1]] == [SUPERSEDED_BY] * 4
        assert stored[-1].deleted is None

    def test_concurrent_issues_leave_one_live_token(self, manager, admin):
        count = 16
        issued = []
        barrier = threading.Barrier(count)

        def issue():
            barrier.wait()
            issued.append(manager.tokens.issue_token(admin))

        threads = [threading.Thread(target=issue) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(issued) == count
        live = [t for t in issued if manager.token_db.get_active(t.token) is not None]
        assert len(live) == 1
        assert manager.tokens.resolve_token(live[0].token).id == admin.id

        stored = manager.token_db.list_for_user(admin.id)
        assert len(stored) == count
        assert sum(1 for t in stored if t.deleted_by == SUPERSEDED_BY) == count - 1

    def test_rotation_is_per_user(self, manager, admin, make_user):
        other = make_user("u1")
        mine = manager.tokens.issue_token(admin)
        manager.tokens.issue_token(other)

        assert manager.tokens.resolve_token(mine.token).id == admin.id


class TestResolve:
    """Tokens that must not resolve."""

    def test_unknown_token(self, manager):
        with pytest.raises(InvalidTokenError):
            manager.tokens.resolve_token("not-a-token")

    def test_empty_token(self, manager):
        with pytest.raises(InvalidTokenError):
            manager.tokens.resolve_token("")

    def test_expired_token(self, manager, admin):
        token = manager.tokens.issue_token(admin, ttl=timedelta(seconds=-1))
        with pytest.raises(InvalidTokenError):
            manager.tokens.resolve_token(token.token)

    def test_expires_at_boundary(self, manager, admin):
        token = manager.tokens.issue_token(admin, ttl=timedelta(minutes=5))

        assert manager.tokens.resolve_token(token.token, now=token.expires - timedelta(seconds=1))
        with pytest.raises(InvalidTokenError):
            manager.tokens.resolve_token(token.token, now=token.expires)

    def test_deleted_user(self, manager, admin, make_user):
        user = make_user("u1", "secret")
        _, token = manager.login("u1", "secret")

        manager.delete_user(admin, user.id)

        with pytest.raises(InvalidTokenError):
            manager.context_for_token(token.token)

    def test_disabled_user(self, manager, admin, make_user):
        user = make_user("u1", "secret")
        _, token = manager.login("u1", "secret")

        manager.update_user(admin, user.id, enabled=False)

        with pytest.raises(InvalidTokenError):
            manager.context_for_token(token.token)


class TestTokenModel:

    def test_expires_in_never_negative(self, manager, admin):
        token = manager.tokens.issue_token(admin, ttl=timedelta(seconds=-30))
        assert token.expires_in() == timedelta(0)
        assert not token.is_active()

    def test_expires_in(self, manager, admin):
        token = manager.tokens.issue_token(admin)
        assert token.expires_in(token.created) == timedelta(hours=1)
        assert token.is_active(utcnow())
