"""
System bootstrap.

Seeds the schema, the default admin user, the "system" resource and the two
built-in roles, then grants the admin the system admin role. Safe to run on
every start: each row is inserted only if absent.
"""

import sqlite3
from typing import Callable, NamedTuple, TypeVar

from loguru import logger

from .database import SystemDatabase, TokenDatabase
from .errors import AuthServerError, StorageError
from .hashing import generate_secret, hash_secret
from .models import Grant, Resource, Role, User, WellKnownIDs, utcnow


SYSTEM_ACTOR = "system"

T = TypeVar("T")


class BootstrapResult(NamedTuple):
    """
    Outcome of a bootstrap run.

    Attributes:
        admin: The admin user as stored
        secret: Plaintext secret generated by this run
        seeded: True if this run created the admin; only then is secret valid
    """
    admin: User
    secret: str
    seeded: bool


def _step(stage: str, action: Callable[[], T]) -> T:
    try:
        return action()
    except StorageError:
        raise
    except (sqlite3.Error, AuthServerError) as e:
        raise StorageError(f"bootstrap: {stage}", e) from e


def bootstrap(
    system_db: SystemDatabase,
    token_db: TokenDatabase,
    ids: WellKnownIDs = WellKnownIDs(),
) -> BootstrapResult:
    """
    Ensure the default admin identity and root permission set exist.

    Runs two transactions: one on the system store for schema and seed
    rows, one on the token store for its schema. They are not atomic
    together; re-running bootstrap repairs a run interrupted between them.

    Args:
        system_db: System store
        token_db: Token store
        ids: Well-known IDs to seed

    Returns:
        BootstrapResult with the admin user and this run's plaintext secret.
        On an already seeded store the secret was never persisted and is
        useless.

    Raises:
        StorageError: Naming the step that failed; the system transaction
            is rolled back
    """
    secret = generate_secret()
    secret_hash = _step("hash admin secret", lambda: hash_secret(secret))
    now = utcnow()
    seeded = False

    def audit() -> dict:
        return dict(created=now, created_by=SYSTEM_ACTOR, updated=now, updated_by=SYSTEM_ACTOR)

    with system_db.transaction("bootstrap") as cur:
        _step("system schema", lambda: system_db.ensure_schema(cur))

        admin = _step(
            "admin lookup",
            lambda: system_db.get_user_by_id(ids.admin_user_id, include_deleted=True, cur=cur),
        )
        if admin is None:
            _step("admin user", lambda: system_db.create_user(User(
                id=ids.admin_user_id,
                name=ids.admin_name,
                description="Default admin user",
                enabled=True,
                secret_hash=secret_hash,
                **audit(),
            ), cur=cur))
            seeded = True

        resource = _step(
            "system resource lookup",
            lambda: system_db.get_resource_by_id(ids.system_resource_id, include_deleted=True, cur=cur),
        )
        if resource is None:
            _step("system resource", lambda: system_db.create_resource(Resource(
                id=ids.system_resource_id,
                name=ids.system_resource_name,
                description="Default authserver resource",
                **audit(),
            ), cur=cur))

        for role_id, role_name, description in (
            (ids.system_admin_role_id, ids.system_admin_role_name, "System admin role"),
            (ids.resource_delegate_role_id, ids.resource_delegate_role_name, "Resource delegate role"),
        ):
            existing = _step(
                f"role lookup {role_name}",
                lambda: system_db.get_role_by_id(role_id, include_deleted=True, cur=cur),
            )
            if existing is None:
                _step(f"role {role_name}", lambda: system_db.create_role(Role(
                    id=role_id,
                    name=role_name,
                    description=description,
                    **audit(),
                ), cur=cur))

        granted = _step("admin grant lookup", lambda: system_db.get_grant(
            ids.admin_user_id,
            ids.system_resource_id,
            ids.system_admin_role_id,
            include_deleted=True,
            cur=cur,
        ))
        if granted is None:
            _step("admin grant", lambda: system_db.create_grant(Grant(
                user_id=ids.admin_user_id,
                resource_id=ids.system_resource_id,
                role_id=ids.system_admin_role_id,
                **audit(),
            ), cur=cur))

    _step("token schema", token_db.ensure_schema)

    admin = _step("admin read-back", lambda: system_db.get_user_by_id(ids.admin_user_id, include_deleted=True))
    if admin is None:
        raise StorageError("bootstrap: admin read-back")

    if seeded:
        logger.info(f"Bootstrap seeded admin user {admin.name} ({admin.id})")
    else:
        logger.debug("Bootstrap found an already seeded store")

    return BootstrapResult(admin=admin, secret=secret, seeded=seeded)
