"""
Role-based access control for write operations.

This module provides:
- Grant predicates (system admin, resource delegate, per-resource role)
- Gate helpers that raise PermissionDeniedError before storage is touched

Every predicate fails closed: a missing grant and a storage failure both
answer False. System admins pass every gate, including per-resource ones.
"""

import sqlite3
from typing import Optional

from loguru import logger

from .database import SystemDatabase
from .errors import AuthServerError, PermissionDeniedError
from .models import User, WellKnownIDs


class AccessPolicy:
    """
    Checks whether a user holds the grants an action requires.

    Reads storage on every call; nothing is cached between requests so
    grant changes take effect immediately.
    """

    def __init__(self, db: SystemDatabase, ids: WellKnownIDs):
        """
        Args:
            db: System store holding the grants
            ids: Well-known resource and role IDs seeded by bootstrap
        """
        self.db = db
        self.ids = ids

    def is_system_admin(self, user_id: str) -> bool:
        """True if the user holds the system admin role on the system resource."""
        return self._check(
            "is_system_admin",
            lambda: self.db.grant_exists(
                user_id, self.ids.system_resource_id, [self.ids.system_admin_role_id]
            ),
        )

    def is_resource_delegate(self, user_id: str) -> bool:
        """True if the user holds the resource delegate role on any resource."""
        return self._check(
            "is_resource_delegate",
            lambda: self.db.role_granted_anywhere(user_id, self.ids.resource_delegate_role_id),
        )

    def has_resource_role(self, user_id: str, resource_id: str, *role_ids: str) -> bool:
        """
        Check if the user holds any one of the roles on a resource.

        Args:
            user_id: The user to check
            resource_id: The resource the roles must be held on
            *role_ids: Acceptable role IDs (logical OR)

        Returns:
            bool: True if at least one grant matches. False when no role IDs
                are given (no query is made) or on any storage failure.
        """
        if not role_ids:
            logger.warning("has_resource_role called without role IDs")
            return False
        return self._check(
            "has_resource_role",
            lambda: self.db.grant_exists(user_id, resource_id, list(role_ids)),
        )

    def can_manage(self, user_id: str) -> bool:
        """System admin, or delegate on at least one resource."""
        return self.is_system_admin(user_id) or self.is_resource_delegate(user_id)

    def can_manage_resource(self, user_id: str, resource_id: str) -> bool:
        """System admin, or delegate on this particular resource."""
        return self.is_system_admin(user_id) or self.has_resource_role(
            user_id, resource_id, self.ids.resource_delegate_role_id
        )

    def _check(self, name: str, query) -> bool:
        try:
            return bool(query())
        except (AuthServerError, sqlite3.Error) as e:
            logger.error(f"{name} failed, denying: {e}")
            return False

    # ========================================================================
    # Gates
    # ========================================================================

    def require_manager(self, context: User, action: str) -> None:
        """
        Require system admin or resource delegate.

        Raises:
            PermissionDeniedError: If the context user is neither
        """
        if not self.can_manage(context.id):
            self._deny(context, action, f"{self.ids.system_admin_role_name} or {self.ids.resource_delegate_role_name}")

    def require_resource_manager(self, context: User, resource_id: str, action: str) -> None:
        """
        Require system admin or resource delegate on the given resource.

        Raises:
            PermissionDeniedError: If the context user is neither
        """
        if not self.can_manage_resource(context.id, resource_id):
            self._deny(
                context,
                action,
                f"{self.ids.system_admin_role_name} or {self.ids.resource_delegate_role_name} on {resource_id}",
            )

    def require_system_admin(self, context: User, action: str) -> None:
        """
        Require the system admin grant.

        Raises:
            PermissionDeniedError: If the context user is not a system admin
        """
        if not self.is_system_admin(context.id):
            self._deny(context, action, self.ids.system_admin_role_name)

    def _deny(self, context: User, action: str, required: Optional[str]) -> None:
        logger.warning(f"Permission denied: {context.name} ({context.id}) attempted {action}")
        raise PermissionDeniedError(user_id=context.id, action=action, required=required)
