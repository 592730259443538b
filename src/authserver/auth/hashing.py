"""
Secret hashing with bcrypt.

Raw secrets are never logged or returned by anything in this module
except generate_secret(), whose whole job is to produce one.
"""

import secrets
from functools import lru_cache

import bcrypt

from .errors import StorageError


BCRYPT_ROUNDS = 12


def hash_secret(secret: str) -> str:
    """
    Hash a secret with a fresh salt.

    Args:
        secret: Plain text secret

    Returns:
        Bcrypt hash string

    Raises:
        StorageError: If hashing fails (entropy or allocation failure)
    """
    try:
        return bcrypt.hashpw(
            secret.encode("utf-8"),
            bcrypt.gensalt(rounds=BCRYPT_ROUNDS),
        ).decode("utf-8")
    except (ValueError, TypeError) as e:
        raise StorageError("secret hashing", e) from e


def verify_secret(secret_hash: str, candidate: str) -> bool:
    """
    Check a candidate secret against a stored hash.

    A mismatch or a malformed stored hash is a normal False, not an error.
    """
    if not secret_hash:
        return False
    try:
        return bcrypt.checkpw(candidate.encode("utf-8"), secret_hash.encode("utf-8"))
    except ValueError:
        return False


def generate_secret(nbytes: int = 24) -> str:
    """Random URL-safe plaintext secret."""
    return secrets.token_urlsafe(nbytes)


@lru_cache(maxsize=1)
def dummy_hash() -> str:
    """Throwaway hash checked when a name is unknown, so a miss costs as much as a wrong secret."""
    return hash_secret(generate_secret())
