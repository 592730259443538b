"""
Authorization manager.

Combines the stores, grant resolver, access policy and token manager into
the operations the HTTP layer calls.
"""

import uuid
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Tuple, Union

from loguru import logger

from .bootstrap import BootstrapResult, bootstrap
from .database import SystemDatabase, TokenDatabase
from .errors import NotFoundError, ValidationError
from .grants import GrantResolver
from .hashing import hash_secret
from .models import Grant, GrantUser, Resource, Role, Token, User, WellKnownIDs, utcnow
from .permissions import AccessPolicy
from .tokens import DEFAULT_TOKEN_TTL, TokenManager


class AuthManager:
    """
    Authentication and authorization manager.

    Provides:
    - Login (credential check, grant hierarchy, token issue)
    - Token resolution to a context user
    - User/resource/role/grant management, gated by the access policy

    Every gated operation takes the acting ("context") user first and
    checks its grants before any write reaches storage.
    """

    def __init__(
        self,
        system_db_path: Union[str, Path],
        token_db_path: Union[str, Path],
        ids: WellKnownIDs = WellKnownIDs(),
        token_ttl: timedelta = DEFAULT_TOKEN_TTL,
    ):
        """
        Initialize manager.

        Args:
            system_db_path: Path to the system database
            token_db_path: Path to the token database
            ids: Well-known IDs seeded by bootstrap
            token_ttl: Default lifetime of issued tokens
        """
        self.ids = ids
        self.token_ttl = token_ttl
        self.db = SystemDatabase(system_db_path)
        self.token_db = TokenDatabase(token_db_path)
        self.resolver = GrantResolver(self.db)
        self.policy = AccessPolicy(self.db, ids)
        self.tokens = TokenManager(self.token_db, self.db)

    def bootstrap(self) -> BootstrapResult:
        """Seed schema and defaults. See bootstrap.bootstrap()."""
        return bootstrap(self.db, self.token_db, self.ids)

    # ========================================================================
    # Authentication
    # ========================================================================

    def login(self, name: str, secret: str, ttl: Optional[timedelta] = None) -> Tuple[GrantUser, Token]:
        """
        Authenticate a user and issue a token.

        Args:
            name: User name
            secret: Plain text secret
            ttl: Token lifetime (defaults to the manager's token_ttl)

        Returns:
            (grant hierarchy, new token) tuple

        Raises:
            InvalidCredentialsError: If the credentials are wrong
        """
        user = self.resolver.authenticate(name, secret)
        grants = self.resolver.resolve_grants(user)
        token = self.tokens.issue_token(user, ttl or self.token_ttl)

        logger.success(f"User logged in: {user.name}")
        return grants, token

    def context_for_token(self, token_id: str) -> User:
        """Resolve a bearer token to its user. Raises InvalidTokenError."""
        return self.tokens.resolve_token(token_id)

    def grants_for_token(self, token_id: str) -> GrantUser:
        """Grant hierarchy of the user a bearer token stands in for."""
        return self.resolver.resolve_grants(self.tokens.resolve_token(token_id))

    # ========================================================================
    # Users
    # ========================================================================

    def add_user(
        self,
        context: User,
        name: str,
        secret: str,
        description: str = "",
        enabled: bool = True,
    ) -> User:
        """
        Create a user.

        Requires system admin or resource delegate.

        Raises:
            ValidationError: If name or secret is empty
            PermissionDeniedError: If the context user may not add users
            ConflictError: If the name is taken
        """
        _require_text(name=name, secret=secret)
        self.policy.require_manager(context, "add user")

        now = utcnow()
        user = User(
            id=str(uuid.uuid4()),
            name=name.strip(),
            description=description,
            enabled=enabled,
            secret_hash=hash_secret(secret),
            created=now,
            created_by=context.name,
            updated=now,
            updated_by=context.name,
        )
        return self.db.create_user(user)

    def update_user(
        self,
        context: User,
        user_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        enabled: Optional[bool] = None,
        secret: Optional[str] = None,
    ) -> User:
        """
        Update a user.

        Users may change their own description and secret; anything else,
        or any change to another user, requires system admin.

        Raises:
            ValidationError: If a given name or secret is empty
            PermissionDeniedError: If the change is not allowed
            NotFoundError: If the user doesn't exist
        """
        if name is not None:
            _require_text(name=name)
        if secret is not None:
            _require_text(secret=secret)

        self_service = context.id == user_id and name is None and enabled is None
        if not self_service:
            self.policy.require_system_admin(context, "update user")

        user = self._get_or_raise(self.db.get_user_by_id, "User", user_id)
        if name is not None:
            user.name = name.strip()
        if description is not None:
            user.description = description
        if enabled is not None:
            user.enabled = enabled
        if secret is not None:
            user.secret_hash = hash_secret(secret)
        user.updated = utcnow()
        user.updated_by = context.name

        return self.db.update_user(user)

    def delete_user(self, context: User, user_id: str) -> None:
        """
        Soft-delete a user and its grants. Requires system admin.

        Raises:
            ValidationError: If a user tries to delete itself
        """
        self.policy.require_system_admin(context, "delete user")
        if user_id == context.id:
            raise ValidationError("Users cannot delete themselves")
        self.db.delete_user(user_id, context.name)

    def list_users(self, context: User) -> List[User]:
        self.policy.require_manager(context, "list users")
        return self.db.list_users()

    # ========================================================================
    # Resources
    # ========================================================================

    def add_resource(self, context: User, name: str, description: str = "") -> Resource:
        """
        Create a resource. Requires system admin or resource delegate.

        Raises:
            ValidationError: If name is empty
            PermissionDeniedError: If the context user may not add resources
            ConflictError: If the name is taken
        """
        _require_text(name=name)
        self.policy.require_manager(context, "add resource")

        now = utcnow()
        return self.db.create_resource(Resource(
            id=str(uuid.uuid4()),
            name=name.strip(),
            description=description,
            created=now,
            created_by=context.name,
            updated=now,
            updated_by=context.name,
        ))

    def update_resource(
        self,
        context: User,
        resource_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Resource:
        """Rename or re-describe a resource. Requires system admin or delegate on it."""
        if name is not None:
            _require_text(name=name)
        self.policy.require_resource_manager(context, resource_id, "update resource")

        resource = self._get_or_raise(self.db.get_resource_by_id, "Resource", resource_id)
        if name is not None:
            resource.name = name.strip()
        if description is not None:
            resource.description = description
        resource.updated = utcnow()
        resource.updated_by = context.name
        return self.db.update_resource(resource)

    def delete_resource(self, context: User, resource_id: str) -> None:
        """Soft-delete a resource and its grants. The system resource can't be deleted."""
        self.policy.require_resource_manager(context, resource_id, "delete resource")
        if resource_id == self.ids.system_resource_id:
            raise ValidationError("The system resource cannot be deleted")
        self.db.delete_resource(resource_id, context.name)

    def list_resources(self, context: User) -> List[Resource]:
        self.policy.require_manager(context, "list resources")
        return self.db.list_resources()

    # ========================================================================
    # Roles
    # ========================================================================

    def add_role(self, context: User, name: str, description: str = "") -> Role:
        """
        Create a role. Requires system admin or resource delegate.

        Raises:
            ValidationError: If name is empty
            PermissionDeniedError: If the context user may not add roles
            ConflictError: If the name is taken
        """
        _require_text(name=name)
        self.policy.require_manager(context, "add role")

        now = utcnow()
        return self.db.create_role(Role(
            id=str(uuid.uuid4()),
            name=name.strip(),
            description=description,
            created=now,
            created_by=context.name,
            updated=now,
            updated_by=context.name,
        ))

    def update_role(
        self,
        context: User,
        role_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Role:
        """Rename or re-describe a role. Requires system admin."""
        if name is not None:
            _require_text(name=name)
        self.policy.require_system_admin(context, "update role")

        role = self._get_or_raise(self.db.get_role_by_id, "Role", role_id)
        if name is not None:
            role.name = name.strip()
        if description is not None:
            role.description = description
        role.updated = utcnow()
        role.updated_by = context.name
        return self.db.update_role(role)

    def delete_role(self, context: User, role_id: str) -> None:
        """Soft-delete a role and its grants. Built-in roles can't be deleted."""
        self.policy.require_system_admin(context, "delete role")
        if role_id in (self.ids.system_admin_role_id, self.ids.resource_delegate_role_id):
            raise ValidationError("Built-in roles cannot be deleted")
        self.db.delete_role(role_id, context.name)

    def list_roles(self, context: User) -> List[Role]:
        self.policy.require_manager(context, "list roles")
        return self.db.list_roles()

    # ========================================================================
    # Grants
    # ========================================================================

    def add_grant(self, context: User, user_id: str, resource_id: str, role_id: str) -> Grant:
        """
        Grant a user a role on a resource.

        Requires system admin, or resource delegate on that resource.
        Granting the system admin role always requires system admin.

        Raises:
            PermissionDeniedError: If the context user may not grant here
            NotFoundError: If the user, resource or role doesn't exist
            ConflictError: If the grant already exists
        """
        _require_text(user_id=user_id, resource_id=resource_id, role_id=role_id)
        if role_id == self.ids.system_admin_role_id:
            self.policy.require_system_admin(context, "grant system admin")
        else:
            self.policy.require_resource_manager(context, resource_id, "add grant")

        now = utcnow()
        return self.db.create_grant(Grant(
            user_id=user_id,
            resource_id=resource_id,
            role_id=role_id,
            created=now,
            created_by=context.name,
            updated=now,
            updated_by=context.name,
        ))

    def revoke_grant(self, context: User, user_id: str, resource_id: str, role_id: str) -> None:
        """Revoke a grant. Same permission rules as add_grant."""
        _require_text(user_id=user_id, resource_id=resource_id, role_id=role_id)
        if role_id == self.ids.system_admin_role_id:
            self.policy.require_system_admin(context, "revoke system admin")
        else:
            self.policy.require_resource_manager(context, resource_id, "revoke grant")

        self.db.delete_grant(user_id, resource_id, role_id, context.name)

    def list_grants(self, context: User, user_id: Optional[str] = None) -> List[Grant]:
        """Live grants, optionally for one user. Users may always list their own."""
        if user_id != context.id:
            self.policy.require_manager(context, "list grants")
        return self.db.list_grants(user_id)

    def _get_or_raise(self, getter, kind: str, key: str):
        found = getter(key)
        if found is None:
            raise NotFoundError(kind, key)
        return found


def _require_text(**fields: str) -> None:
    for field_name, value in fields.items():
        if not value or not value.strip():
            raise ValidationError(f"{field_name} must not be empty")
