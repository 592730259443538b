"""
Exceptions raised by the authorization core.

Authentication failures deliberately share one message so callers cannot
tell an unknown user from a wrong secret.
"""

from typing import Optional


INVALID_CREDENTIALS = "The user was not found or the secret was incorrect"
INVALID_TOKEN = "The token is invalid or has expired"


class AuthServerError(Exception):
    """Base class for all authserver errors."""


class ValidationError(AuthServerError):
    """Malformed input, rejected before any storage access."""


class InvalidCredentialsError(AuthServerError):
    """Unknown user, disabled user or wrong secret."""

    def __init__(self):
        super().__init__(INVALID_CREDENTIALS)


class InvalidTokenError(AuthServerError):
    """Token is unknown, superseded, expired or its user is gone."""

    def __init__(self):
        super().__init__(INVALID_TOKEN)


class PermissionDeniedError(AuthServerError):
    """
    Raised when a user attempts an action they don't have permission for.

    Attributes:
        user_id: The user who was denied
        action: The action that was denied
        required: Description of the grant that was required
    """

    def __init__(self, user_id: str, action: str, required: Optional[str] = None):
        self.user_id = user_id
        self.action = action
        self.required = required

        message = f"User {user_id} denied permission for action: {action}"
        if required:
            message += f" (requires: {required})"

        super().__init__(message)


class NotFoundError(AuthServerError):
    """A referenced user, resource, role or grant does not exist."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class ConflictError(AuthServerError):
    """A unique name or grant triple already exists."""


class StorageError(AuthServerError):
    """
    I/O or transaction failure.

    Attributes:
        stage: The step that failed (e.g. "role fan-out")
    """

    def __init__(self, stage: str, cause: Optional[BaseException] = None):
        self.stage = stage
        message = f"Storage failure during {stage}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
