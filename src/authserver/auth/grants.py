"""
Grant resolution.

Builds the resource/role hierarchy a user is entitled to, either for an
already-verified user or by checking a name and secret first.
"""

from loguru import logger

from .database import SystemDatabase
from .errors import InvalidCredentialsError, StorageError
from .hashing import dummy_hash, verify_secret
from .models import GrantResource, GrantRole, GrantUser, User


class GrantResolver:
    """
    Resolves a user's grants into a GrantUser hierarchy.

    Resolution is a two-level fan-out: one query for the user's resources,
    then one query per resource for the roles held on it. Storage is
    re-read on every call.
    """

    def __init__(self, db: SystemDatabase):
        """
        Args:
            db: System store holding users, resources, roles and grants
        """
        self.db = db

    def resolve_grants(self, user: User) -> GrantUser:
        """
        Get the grant hierarchy for a verified user.

        Args:
            user: User whose grants to resolve

        Returns:
            GrantUser with resources ordered by name, each with its roles

        Raises:
            StorageError: If either fan-out stage fails; the stage is named
                in the error and no partial hierarchy is returned
        """
        try:
            resources = self.db.resources_for_user(user.id)
        except StorageError as e:
            raise StorageError(f"resource fan-out for user {user.name}", e) from e

        hierarchy = []
        for resource in resources:
            try:
                roles = self.db.roles_for_user_resource(user.id, resource.id)
            except StorageError as e:
                raise StorageError(
                    f"role fan-out for user {user.name} on resource {resource.name}", e
                ) from e

            hierarchy.append(GrantResource(
                id=resource.id,
                name=resource.name,
                description=resource.description,
                roles=[GrantRole(id=role.id, name=role.name, description=role.description) for role in roles],
            ))

        return GrantUser(
            id=user.id,
            name=user.name,
            description=user.description,
            resources=hierarchy,
        )

    def authenticate(self, name: str, secret: str) -> User:
        """
        Verify a name and secret.

        Unknown names, disabled users and wrong secrets all raise the same
        error. A bcrypt check runs even for unknown names.

        Returns:
            The verified User

        Raises:
            InvalidCredentialsError: On any credential failure
            StorageError: If the user lookup itself fails
        """
        user = self.db.get_user_by_name(name)

        if user is None:
            verify_secret(dummy_hash(), secret)
            logger.warning(f"Authentication failed for '{name}'")
            raise InvalidCredentialsError()

        if not verify_secret(user.secret_hash, secret) or not user.enabled:
            logger.warning(f"Authentication failed for '{name}'")
            raise InvalidCredentialsError()

        return user

    def resolve_grants_with_credentials(self, name: str, secret: str) -> GrantUser:
        """
        Verify credentials, then resolve the user's grants.

        Args:
            name: User name
            secret: Plain text secret

        Returns:
            GrantUser hierarchy for the authenticated user

        Raises:
            InvalidCredentialsError: If the credentials don't match a live user
            StorageError: If lookup or resolution fails
        """
        user = self.authenticate(name, secret)
        grants = self.resolve_grants(user)
        logger.success(f"User authenticated: {user.name} ({user.id})")
        return grants
