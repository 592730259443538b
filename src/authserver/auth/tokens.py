"""
Bearer token issue and validation.

Tokens are opaque random strings, not signed payloads: all state lives in
the token store and expiry is evaluated when a token is read.
"""

import secrets
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger

from .database import SystemDatabase, TokenDatabase
from .errors import InvalidTokenError
from .models import Token, User, utcnow


DEFAULT_TOKEN_TTL = timedelta(hours=1)


class TokenManager:
    """
    Issues and resolves bearer tokens.

    A user has at most one live token. Issuing a new one supersedes the
    old one in the same transaction. Rotations take the token store's
    write lock up front (BEGIN IMMEDIATE), so concurrent issues for one
    user run one after the other.
    """

    def __init__(self, token_db: TokenDatabase, system_db: SystemDatabase):
        """
        Args:
            token_db: Store holding tokens
            system_db: Store holding users, for token resolution
        """
        self.token_db = token_db
        self.system_db = system_db

    def issue_token(self, user: User, ttl: timedelta = DEFAULT_TOKEN_TTL) -> Token:
        """
        Issue a new token for a user, superseding any live one.

        Args:
            user: User the token stands in for
            ttl: Lifetime of the new token

        Returns:
            The new Token, including its plaintext ID

        Raises:
            StorageError: If the rotation fails; nothing is changed
        """
        now = utcnow()
        token = Token(
            token=secrets.token_urlsafe(32),
            user_id=user.id,
            created=now,
            created_by=user.name,
            expires=now + ttl,
        )

        superseded = self.token_db.rotate(token)

        logger.info(f"Token issued for {user.name} ({user.id}), {superseded} superseded")
        return token

    def resolve_token(self, token_id: str, now: Optional[datetime] = None) -> User:
        """
        Get the user a live token stands in for.

        Args:
            token_id: Plaintext token ID
            now: Evaluation time (defaults to the current time)

        Returns:
            The token's User

        Raises:
            InvalidTokenError: If the token is unknown, superseded, expired,
                or its user has been deleted
        """
        if not token_id:
            raise InvalidTokenError()

        token = self.token_db.get_active(token_id, now)
        if token is None:
            logger.warning("Invalid or expired token")
            raise InvalidTokenError()

        user = self.system_db.get_user_by_id(token.user_id)
        if user is None or not user.enabled:
            logger.warning(f"Token user {token.user_id} is missing or disabled")
            raise InvalidTokenError()

        return user
