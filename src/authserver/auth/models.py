"""
Authorization data models.

Data classes for users, resources, roles, grants, tokens and the
resolved grant hierarchy returned to callers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class WellKnownIDs:
    """
    Fixed identifiers seeded by bootstrap.

    Built once at startup and handed to the access policy and the
    bootstrap procedure.

    Attributes:
        admin_user_id: ID of the default admin user
        system_resource_id: ID of the "system" resource
        system_admin_role_id: ID of the system admin role
        resource_delegate_role_id: ID of the resource delegate role
    """
    admin_user_id: str = "bdldpjad2pm0cd64ra80"
    system_resource_id: str = "bdldpjad2pm0cd64ra81"
    system_admin_role_id: str = "bdldpjad2pm0cd64ra82"
    resource_delegate_role_id: str = "bdldpjad2pm0cd64ra83"
    admin_name: str = "admin"
    system_resource_name: str = "system"
    system_admin_role_name: str = "sys_admin"
    resource_delegate_role_name: str = "sys_delegate"


@dataclass
class User:
    """
    User account.

    Attributes:
        id: Unique user identifier
        name: Unique name among non-deleted users
        description: Free-form description
        enabled: Whether the user may authenticate
        secret_hash: Bcrypt hash of the user's secret (never printed)
        created: Creation timestamp
        created_by: Name of the creating actor
        updated: Last update timestamp
        updated_by: Name of the last updating actor
        deleted: Soft-delete timestamp, None while live
        deleted_by: Name of the deleting actor
    """
    id: str
    name: str
    description: str = ""
    enabled: bool = True
    secret_hash: str = field(default="", repr=False)
    created: Optional[datetime] = None
    created_by: str = ""
    updated: Optional[datetime] = None
    updated_by: str = ""
    deleted: Optional[datetime] = None
    deleted_by: Optional[str] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "created": _iso(self.created),
            "created_by": self.created_by,
            "updated": _iso(self.updated),
            "updated_by": self.updated_by,
        }


@dataclass
class Resource:
    """An application or service boundary that grants are scoped to."""
    id: str
    name: str
    description: str = ""
    created: Optional[datetime] = None
    created_by: str = ""
    updated: Optional[datetime] = None
    updated_by: str = ""
    deleted: Optional[datetime] = None
    deleted_by: Optional[str] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created": _iso(self.created),
            "created_by": self.created_by,
            "updated": _iso(self.updated),
            "updated_by": self.updated_by,
        }


@dataclass
class Role:
    """A named permission label (e.g. "sys_admin")."""
    id: str
    name: str
    description: str = ""
    created: Optional[datetime] = None
    created_by: str = ""
    updated: Optional[datetime] = None
    updated_by: str = ""
    deleted: Optional[datetime] = None
    deleted_by: Optional[str] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created": _iso(self.created),
            "created_by": self.created_by,
            "updated": _iso(self.updated),
            "updated_by": self.updated_by,
        }


@dataclass
class Grant:
    """
    User/resource/role association.

    Means "this user holds this role on this resource".
    """
    user_id: str
    resource_id: str
    role_id: str
    created: Optional[datetime] = None
    created_by: str = ""
    updated: Optional[datetime] = None
    updated_by: str = ""
    deleted: Optional[datetime] = None
    deleted_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "resource_id": self.resource_id,
            "role_id": self.role_id,
            "created": _iso(self.created),
            "created_by": self.created_by,
        }


@dataclass
class Token:
    """
    Opaque bearer token.

    Attributes:
        token: Opaque unique token string
        user_id: User the token stands in for
        created: Issue timestamp
        created_by: Actor that issued the token
        expires: Expiry timestamp
        deleted: Set when the token was superseded
        deleted_by: Actor that superseded the token
    """
    token: str
    user_id: str
    created: datetime
    expires: datetime
    created_by: str = ""
    deleted: Optional[datetime] = None
    deleted_by: Optional[str] = None

    def is_active(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.deleted is None and self.expires > now

    def expires_in(self, now: Optional[datetime] = None) -> timedelta:
        """Time remaining before expiry (never negative)."""
        remaining = self.expires - (now or utcnow())
        return max(remaining, timedelta(0))


@dataclass
class GrantRole:
    id: str
    name: str
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "description": self.description}


@dataclass
class GrantResource:
    id: str
    name: str
    description: str = ""
    roles: List[GrantRole] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "roles": [role.to_dict() for role in self.roles],
        }


@dataclass
class GrantUser:
    """
    A user and the resource/role grants they hold.

    This is the hierarchy returned by a successful login.
    """
    id: str
    name: str
    description: str = ""
    resources: List[GrantResource] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "resources": [resource.to_dict() for resource in self.resources],
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
