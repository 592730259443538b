"""
Authorization core for authserver.

Provides credential checks, grant resolution, role-based write gates,
bearer token rotation and the idempotent system bootstrap.
"""

from .models import (
    User,
    Resource,
    Role,
    Grant,
    Token,
    GrantUser,
    GrantResource,
    GrantRole,
    WellKnownIDs,
)
from .errors import (
    AuthServerError,
    ValidationError,
    InvalidCredentialsError,
    InvalidTokenError,
    PermissionDeniedError,
    NotFoundError,
    ConflictError,
    StorageError,
)
from .database import SystemDatabase, TokenDatabase
from .grants import GrantResolver
from .permissions import AccessPolicy
from .tokens import TokenManager, DEFAULT_TOKEN_TTL
from .bootstrap import BootstrapResult, bootstrap
from .manager import AuthManager

__all__ = [
    # Models
    "User",
    "Resource",
    "Role",
    "Grant",
    "Token",
    "GrantUser",
    "GrantResource",
    "GrantRole",
    "WellKnownIDs",
    # Errors
    "AuthServerError",
    "ValidationError",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "PermissionDeniedError",
    "NotFoundError",
    "ConflictError",
    "StorageError",
    # Storage
    "SystemDatabase",
    "TokenDatabase",
    # Core services
    "GrantResolver",
    "AccessPolicy",
    "TokenManager",
    "DEFAULT_TOKEN_TTL",
    "BootstrapResult",
    "bootstrap",
    "AuthManager",
]
