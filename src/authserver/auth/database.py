"""
SQLite storage for the authorization core.

Two logically separate stores:

- SystemDatabase holds users, resources, roles and grants
- TokenDatabase holds bearer tokens

Every multi-step write runs inside one explicit transaction; a failure
anywhere rolls the whole transaction back. Nothing spans both stores, so
no operation is atomic across them.
"""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Type, TypeVar, Union

from loguru import logger

from .errors import ConflictError, NotFoundError, StorageError
from .models import Grant, Resource, Role, Token, User, utcnow


Entity = TypeVar("Entity", Resource, Role)

SUPERSEDED_BY = "issue_token"

_SYSTEM_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        enabled INTEGER NOT NULL DEFAULT 1,
        secret_hash TEXT NOT NULL,
        created TEXT NOT NULL,
        created_by TEXT NOT NULL,
        updated TEXT NOT NULL,
        updated_by TEXT NOT NULL,
        deleted TEXT,
        deleted_by TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS resources (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        created TEXT NOT NULL,
        created_by TEXT NOT NULL,
        updated TEXT NOT NULL,
        updated_by TEXT NOT NULL,
        deleted TEXT,
        deleted_by TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS roles (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        created TEXT NOT NULL,
        created_by TEXT NOT NULL,
        updated TEXT NOT NULL,
        updated_by TEXT NOT NULL,
        deleted TEXT,
        deleted_by TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_resource_roles (
        user_id TEXT NOT NULL,
        resource_id TEXT NOT NULL,
        role_id TEXT NOT NULL,
        created TEXT NOT NULL,
        created_by TEXT NOT NULL,
        updated TEXT NOT NULL,
        updated_by TEXT NOT NULL,
        deleted TEXT,
        deleted_by TEXT
    )
    """,
    # Names and grant triples are unique among live rows only
    "CREATE UNIQUE INDEX IF NOT EXISTS ix_users_name ON users(name) WHERE deleted IS NULL",
    "CREATE UNIQUE INDEX IF NOT EXISTS ix_resources_name ON resources(name) WHERE deleted IS NULL",
    "CREATE UNIQUE INDEX IF NOT EXISTS ix_roles_name ON roles(name) WHERE deleted IS NULL",
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ix_grants_triple
        ON user_resource_roles(user_id, resource_id, role_id) WHERE deleted IS NULL
    """,
    "CREATE INDEX IF NOT EXISTS ix_grants_user ON user_resource_roles(user_id)",
)

_TOKEN_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS tokens (
        token TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        created TEXT NOT NULL,
        created_by TEXT NOT NULL,
        expires TEXT NOT NULL,
        deleted TEXT,
        deleted_by TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_tokens_user ON tokens(user_id)",
)


def _ts(value: Optional[datetime]) -> Optional[str]:
    """Fixed-width UTC text form, so stored timestamps compare correctly as strings."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class _SQLiteStore:
    """
    Connection and transaction handling shared by both stores.

    A connection is opened per call, as the stores are used from many
    worker threads. Writes take the database write lock up front
    (BEGIN IMMEDIATE) so concurrent writers serialize instead of
    interleaving.
    """

    def __init__(self, db_path: Union[str, Path]):
        """
        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._lock = threading.RLock()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), isolation_level=None, timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def transaction(self, stage: str = "transaction") -> Iterator[sqlite3.Cursor]:
        """
        Run a block inside one atomic transaction.

        Commits when the block finishes, rolls back if it raises.
        sqlite errors are re-raised as ConflictError (unique constraint)
        or StorageError naming the stage.

        Args:
            stage: Name of the operation, used in error messages

        Yields:
            Cursor bound to the open transaction
        """
        with self._lock:
            try:
                conn = self._connect()
            except sqlite3.Error as e:
                raise StorageError(stage, e) from e

            try:
                conn.execute("BEGIN IMMEDIATE")
                yield conn.cursor()
                conn.execute("COMMIT")
            except BaseException as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                if isinstance(e, sqlite3.IntegrityError):
                    raise ConflictError(f"Duplicate entry during {stage}: {e}") from e
                if isinstance(e, sqlite3.Error):
                    raise StorageError(stage, e) from e
                raise
            finally:
                conn.close()

    @contextmanager
    def _reader(self, stage: str) -> Iterator[sqlite3.Cursor]:
        with self._lock:
            try:
                conn = self._connect()
            except sqlite3.Error as e:
                raise StorageError(stage, e) from e
            try:
                yield conn.cursor()
            except sqlite3.Error as e:
                raise StorageError(stage, e) from e
            finally:
                conn.close()

    @contextmanager
    def _cursor(
        self,
        cur: Optional[sqlite3.Cursor],
        stage: str,
        write: bool = False,
    ) -> Iterator[sqlite3.Cursor]:
        """Reuse the caller's transaction cursor, or open a fresh one."""
        if cur is not None:
            yield cur
            return
        scope = self.transaction(stage) if write else self._reader(stage)
        with scope as own:
            yield own


class SystemDatabase(_SQLiteStore):
    """
    Store for users, resources, roles and grants.

    Rows are soft-deleted, never removed. Deleting a user, resource or
    role also soft-deletes every live grant that references it, in the
    same transaction.
    """

    def ensure_schema(self, cur: Optional[sqlite3.Cursor] = None) -> None:
        """Create tables and indices if they don't exist. Never destructive."""
        with self._cursor(cur, "system schema", write=True) as c:
            for statement in _SYSTEM_SCHEMA:
                c.execute(statement)

    # ========================================================================
    # User Operations
    # ========================================================================

    def create_user(self, user: User, cur: Optional[sqlite3.Cursor] = None) -> User:
        """
        Insert a new user.

        Args:
            user: Fully populated user (ID, hash and audit fields set)
            cur: Optional cursor of an enclosing transaction

        Returns:
            The stored user

        Raises:
            ConflictError: If the ID or a live user with this name exists
        """
        with self._cursor(cur, "create user", write=True) as c:
            try:
                c.execute("""
                    INSERT INTO users (id, name, description, enabled, secret_hash,
                                       created, created_by, updated, updated_by)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    user.id,
                    user.name,
                    user.description,
                    1 if user.enabled else 0,
                    user.secret_hash,
                    _ts(user.created),
                    user.created_by,
                    _ts(user.updated),
                    user.updated_by,
                ))
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"User already exists: {user.name}") from e

        logger.info(f"User created: {user.name} ({user.id}) by {user.created_by}")
        return user

    def get_user_by_id(
        self,
        user_id: str,
        include_deleted: bool = False,
        cur: Optional[sqlite3.Cursor] = None,
    ) -> Optional[User]:
        """
        Get user by ID.

        Returns:
            User object if found, None otherwise
        """
        query = "SELECT * FROM users WHERE id = ?"
        if not include_deleted:
            query += " AND deleted IS NULL"

        with self._cursor(cur, "get user") as c:
            row = c.execute(query, (user_id,)).fetchone()

        return _row_to_user(row) if row else None

    def get_user_by_name(self, name: str, cur: Optional[sqlite3.Cursor] = None) -> Optional[User]:
        """
        Get live user by unique name.

        Returns:
            User object if found, None otherwise
        """
        with self._cursor(cur, "get user") as c:
            row = c.execute(
                "SELECT * FROM users WHERE name = ? AND deleted IS NULL", (name,)
            ).fetchone()

        return _row_to_user(row) if row else None

    def list_users(self, include_deleted: bool = False) -> List[User]:
        """
        Get all users, ordered by name.

        Returns:
            List of User objects
        """
        query = "SELECT * FROM users"
        if not include_deleted:
            query += " WHERE deleted IS NULL"
        query += " ORDER BY name, id"

        with self._reader("list users") as c:
            rows = c.execute(query).fetchall()

        return [_row_to_user(row) for row in rows]

    def update_user(self, user: User) -> User:
        """
        Update name, description, enabled flag and secret hash of a live user.

        Raises:
            NotFoundError: If no live user has this ID
            ConflictError: If the new name is taken
        """
        with self.transaction("update user") as c:
            try:
                c.execute("""
                    UPDATE users
                    SET name = ?, description = ?, enabled = ?, secret_hash = ?,
                        updated = ?, updated_by = ?
                    WHERE id = ? AND deleted IS NULL
                """, (
                    user.name,
                    user.description,
                    1 if user.enabled else 0,
                    user.secret_hash,
                    _ts(user.updated),
                    user.updated_by,
                    user.id,
                ))
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"User name already exists: {user.name}") from e
            if c.rowcount == 0:
                raise NotFoundError("User", user.id)

        logger.info(f"User updated: {user.name} ({user.id}) by {user.updated_by}")
        return user

    def delete_user(self, user_id: str, actor: str) -> int:
        """
        Soft-delete a user and every live grant it holds.

        Returns:
            Number of grants invalidated alongside the user

        Raises:
            NotFoundError: If no live user has this ID
        """
        return self._soft_delete("users", "User", "user_id", user_id, actor)

    # ========================================================================
    # Resource / Role Operations
    # ========================================================================

    def create_resource(self, resource: Resource, cur: Optional[sqlite3.Cursor] = None) -> Resource:
        """Insert a new resource. Raises ConflictError on a duplicate ID or live name."""
        return self._create_entity("resources", resource, cur)

    def get_resource_by_id(
        self,
        resource_id: str,
        include_deleted: bool = False,
        cur: Optional[sqlite3.Cursor] = None,
    ) -> Optional[Resource]:
        return self._get_entity("resources", Resource, "id", resource_id, include_deleted, cur)

    def get_resource_by_name(self, name: str) -> Optional[Resource]:
        return self._get_entity("resources", Resource, "name", name, False, None)

    def list_resources(self, include_deleted: bool = False) -> List[Resource]:
        return self._list_entities("resources", Resource, include_deleted)

    def update_resource(self, resource: Resource) -> Resource:
        return self._update_entity("resources", "Resource", resource)

    def delete_resource(self, resource_id: str, actor: str) -> int:
        """Soft-delete a resource and every live grant on it."""
        return self._soft_delete("resources", "Resource", "resource_id", resource_id, actor)

    def create_role(self, role: Role, cur: Optional[sqlite3.Cursor] = None) -> Role:
        """Insert a new role. Raises ConflictError on a duplicate ID or live name."""
        return self._create_entity("roles", role, cur)

    def get_role_by_id(
        self,
        role_id: str,
        include_deleted: bool = False,
        cur: Optional[sqlite3.Cursor] = None,
    ) -> Optional[Role]:
        return self._get_entity("roles", Role, "id", role_id, include_deleted, cur)

    def get_role_by_name(self, name: str) -> Optional[Role]:
        return self._get_entity("roles", Role, "name", name, False, None)

    def list_roles(self, include_deleted: bool = False) -> List[Role]:
        return self._list_entities("roles", Role, include_deleted)

    def update_role(self, role: Role) -> Role:
        return self._update_entity("roles", "Role", role)

    def delete_role(self, role_id: str, actor: str) -> int:
        """Soft-delete a role and every live grant of it."""
        return self._soft_delete("roles", "Role", "role_id", role_id, actor)

    # ========================================================================
    # Grant Operations
    # ========================================================================

    def create_grant(self, grant: Grant, cur: Optional[sqlite3.Cursor] = None) -> Grant:
        """
        Grant a role on a resource to a user.

        Existence checks, insert and read-back share one transaction, so a
        failure at any step leaves no row behind.

        Raises:
            NotFoundError: If the user, resource or role is missing or deleted
            ConflictError: If the same live grant already exists
        """
        with self._cursor(cur, "create grant", write=True) as c:
            if self.get_user_by_id(grant.user_id, cur=c) is None:
                raise NotFoundError("User", grant.user_id)
            if self.get_resource_by_id(grant.resource_id, cur=c) is None:
                raise NotFoundError("Resource", grant.resource_id)
            if self.get_role_by_id(grant.role_id, cur=c) is None:
                raise NotFoundError("Role", grant.role_id)

            try:
                c.execute("""
                    INSERT INTO user_resource_roles (user_id, resource_id, role_id,
                                                     created, created_by, updated, updated_by)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    grant.user_id,
                    grant.resource_id,
                    grant.role_id,
                    _ts(grant.created),
                    grant.created_by,
                    _ts(grant.updated),
                    grant.updated_by,
                ))
            except sqlite3.IntegrityError as e:
                raise ConflictError(
                    f"Grant already exists: {grant.user_id}/{grant.resource_id}/{grant.role_id}"
                ) from e

            stored = self.get_grant(grant.user_id, grant.resource_id, grant.role_id, cur=c)
            if stored is None:
                raise StorageError("create grant read-back")

        logger.info(
            f"Grant created: user {stored.user_id} / resource {stored.resource_id} "
            f"/ role {stored.role_id} by {stored.created_by}"
        )
        return stored

    def get_grant(
        self,
        user_id: str,
        resource_id: str,
        role_id: str,
        include_deleted: bool = False,
        cur: Optional[sqlite3.Cursor] = None,
    ) -> Optional[Grant]:
        """
        Get a grant by its triple.

        Returns:
            The live grant (or the latest one with include_deleted), None if absent
        """
        query = """
            SELECT * FROM user_resource_roles
            WHERE user_id = ? AND resource_id = ? AND role_id = ?
        """
        if not include_deleted:
            query += " AND deleted IS NULL"
        query += " ORDER BY rowid DESC LIMIT 1"

        with self._cursor(cur, "get grant") as c:
            row = c.execute(query, (user_id, resource_id, role_id)).fetchone()

        return _row_to_grant(row) if row else None

    def delete_grant(self, user_id: str, resource_id: str, role_id: str, actor: str) -> None:
        """
        Revoke a live grant (soft delete).

        Raises:
            NotFoundError: If no such live grant exists
        """
        now = _ts(utcnow())
        with self.transaction("delete grant") as c:
            c.execute("""
                UPDATE user_resource_roles
                SET deleted = ?, deleted_by = ?, updated = ?, updated_by = ?
                WHERE user_id = ? AND resource_id = ? AND role_id = ? AND deleted IS NULL
            """, (now, actor, now, actor, user_id, resource_id, role_id))
            if c.rowcount == 0:
                raise NotFoundError("Grant", f"{user_id}/{resource_id}/{role_id}")

        logger.info(f"Grant revoked: user {user_id} / resource {resource_id} / role {role_id} by {actor}")

    def list_grants(self, user_id: Optional[str] = None, include_deleted: bool = False) -> List[Grant]:
        """Live grants in insertion order, optionally for one user."""
        clauses = []
        params: list = []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if not include_deleted:
            clauses.append("deleted IS NULL")

        query = "SELECT * FROM user_resource_roles"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY rowid"

        with self._reader("list grants") as c:
            rows = c.execute(query, params).fetchall()

        return [_row_to_grant(row) for row in rows]

    def resources_for_user(self, user_id: str) -> List[Resource]:
        """Distinct live resources the user holds any live grant on, ordered by name."""
        with self._reader("resource fan-out") as c:
            rows = c.execute("""
                SELECT DISTINCT r.*
                FROM resources r
                JOIN user_resource_roles g ON g.resource_id = r.id
                WHERE g.user_id = ? AND g.deleted IS NULL AND r.deleted IS NULL
                ORDER BY r.name, r.id
            """, (user_id,)).fetchall()

        return [_row_to_entity(Resource, row) for row in rows]

    def roles_for_user_resource(self, user_id: str, resource_id: str) -> List[Role]:
        """Distinct live roles the user holds on one resource, ordered by name."""
        with self._reader("role fan-out") as c:
            rows = c.execute("""
                SELECT DISTINCT r.*
                FROM roles r
                JOIN user_resource_roles g ON g.role_id = r.id
                WHERE g.user_id = ? AND g.resource_id = ?
                  AND g.deleted IS NULL AND r.deleted IS NULL
                ORDER BY r.name, r.id
            """, (user_id, resource_id)).fetchall()

        return [_row_to_entity(Role, row) for row in rows]

    def grant_exists(self, user_id: str, resource_id: str, role_ids: Sequence[str]) -> bool:
        """True if the user holds any one of role_ids on the resource."""
        if not role_ids:
            return False
        placeholders = ", ".join("?" for _ in role_ids)
        with self._reader("grant lookup") as c:
            row = c.execute(f"""
                SELECT 1 FROM user_resource_roles
                WHERE user_id = ? AND resource_id = ? AND role_id IN ({placeholders})
                  AND deleted IS NULL
                LIMIT 1
            """, (user_id, resource_id, *role_ids)).fetchone()
        return row is not None

    def role_granted_anywhere(self, user_id: str, role_id: str) -> bool:
        """True if the user holds the role on any resource."""
        with self._reader("grant lookup") as c:
            row = c.execute("""
                SELECT 1 FROM user_resource_roles
                WHERE user_id = ? AND role_id = ? AND deleted IS NULL
                LIMIT 1
            """, (user_id, role_id)).fetchone()
        return row is not None

    # ========================================================================
    # Shared helpers
    # ========================================================================

    def _create_entity(self, table: str, entity: Entity, cur: Optional[sqlite3.Cursor]) -> Entity:
        kind = type(entity).__name__
        with self._cursor(cur, f"create {kind.lower()}", write=True) as c:
            try:
                c.execute(f"""
                    INSERT INTO {table} (id, name, description, created, created_by, updated, updated_by)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    entity.id,
                    entity.name,
                    entity.description,
                    _ts(entity.created),
                    entity.created_by,
                    _ts(entity.updated),
                    entity.updated_by,
                ))
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"{kind} already exists: {entity.name}") from e

        logger.info(f"{kind} created: {entity.name} ({entity.id}) by {entity.created_by}")
        return entity

    def _get_entity(
        self,
        table: str,
        cls: Type[Entity],
        column: str,
        value: str,
        include_deleted: bool,
        cur: Optional[sqlite3.Cursor],
    ) -> Optional[Entity]:
        query = f"SELECT * FROM {table} WHERE {column} = ?"
        if not include_deleted:
            query += " AND deleted IS NULL"

        with self._cursor(cur, f"get {cls.__name__.lower()}") as c:
            row = c.execute(query, (value,)).fetchone()

        return _row_to_entity(cls, row) if row else None

    def _list_entities(self, table: str, cls: Type[Entity], include_deleted: bool) -> List[Entity]:
        query = f"SELECT * FROM {table}"
        if not include_deleted:
            query += " WHERE deleted IS NULL"
        query += " ORDER BY name, id"

        with self._reader(f"list {table}") as c:
            rows = c.execute(query).fetchall()

        return [_row_to_entity(cls, row) for row in rows]

    def _update_entity(self, table: str, kind: str, entity: Entity) -> Entity:
        with self.transaction(f"update {kind.lower()}") as c:
            try:
                c.execute(f"""
                    UPDATE {table}
                    SET name = ?, description = ?, updated = ?, updated_by = ?
                    WHERE id = ? AND deleted IS NULL
                """, (entity.name, entity.description, _ts(entity.updated), entity.updated_by, entity.id))
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"{kind} name already exists: {entity.name}") from e
            if c.rowcount == 0:
                raise NotFoundError(kind, entity.id)

        logger.info(f"{kind} updated: {entity.name} ({entity.id}) by {entity.updated_by}")
        return entity

    def _soft_delete(self, table: str, kind: str, grant_column: str, row_id: str, actor: str) -> int:
        now = _ts(utcnow())
        with self.transaction(f"delete {kind.lower()}") as c:
            c.execute(f"""
                UPDATE {table}
                SET deleted = ?, deleted_by = ?, updated = ?, updated_by = ?
                WHERE id = ? AND deleted IS NULL
            """, (now, actor, now, actor, row_id))
            if c.rowcount == 0:
                raise NotFoundError(kind, row_id)

            c.execute(f"""
                UPDATE user_resource_roles
                SET deleted = ?, deleted_by = ?, updated = ?, updated_by = ?
                WHERE {grant_column} = ? AND deleted IS NULL
            """, (now, actor, now, actor, row_id))
            cascaded = c.rowcount

        logger.info(f"{kind} deleted: {row_id} by {actor} ({cascaded} grants invalidated)")
        return cascaded


class TokenDatabase(_SQLiteStore):
    """Store for bearer tokens, kept apart from the system store."""

    def ensure_schema(self) -> None:
        """Create the token table and indices if they don't exist."""
        with self.transaction("token schema") as c:
            for statement in _TOKEN_SCHEMA:
                c.execute(statement)

    def rotate(self, token: Token) -> int:
        """
        Supersede the user's live tokens and store a new one.

        Both steps share one transaction: the user never ends up with two
        live tokens, nor with none after a failed rotation.

        Args:
            token: New token (user_id, created and expires set)

        Returns:
            Number of tokens superseded
        """
        now = _ts(token.created)
        with self.transaction("token rotation") as c:
            c.execute("""
                UPDATE tokens
                SET expires = ?, deleted = ?, deleted_by = ?
                WHERE user_id = ? AND deleted IS NULL
            """, (now, now, SUPERSEDED_BY, token.user_id))
            superseded = c.rowcount

            c.execute("""
                INSERT INTO tokens (token, user_id, created, created_by, expires)
                VALUES (?, ?, ?, ?, ?)
            """, (token.token, token.user_id, now, token.created_by, _ts(token.expires)))

        return superseded

    def get_active(self, token_id: str, now: Optional[datetime] = None) -> Optional[Token]:
        """
        Get a token that is neither deleted nor expired.

        Returns:
            Token if live, None otherwise
        """
        with self._reader("token lookup") as c:
            row = c.execute("""
                SELECT * FROM tokens
                WHERE token = ? AND expires > ? AND deleted IS NULL
            """, (token_id, _ts(now or utcnow()))).fetchone()

        return _row_to_token(row) if row else None

    def list_for_user(self, user_id: str) -> List[Token]:
        """All tokens ever issued to a user, oldest first."""
        with self._reader("token list") as c:
            rows = c.execute(
                "SELECT * FROM tokens WHERE user_id = ? ORDER BY created, rowid", (user_id,)
            ).fetchall()

        return [_row_to_token(row) for row in rows]


# ============================================================================
# Row conversion
# ============================================================================

def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        enabled=bool(row["enabled"]),
        secret_hash=row["secret_hash"],
        created=_dt(row["created"]),
        created_by=row["created_by"],
        updated=_dt(row["updated"]),
        updated_by=row["updated_by"],
        deleted=_dt(row["deleted"]),
        deleted_by=row["deleted_by"],
    )


def _row_to_entity(cls: Type[Entity], row: sqlite3.Row) -> Entity:
    return cls(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        created=_dt(row["created"]),
        created_by=row["created_by"],
        updated=_dt(row["updated"]),
        updated_by=row["updated_by"],
        deleted=_dt(row["deleted"]),
        deleted_by=row["deleted_by"],
    )


def _row_to_grant(row: sqlite3.Row) -> Grant:
    return Grant(
        user_id=row["user_id"],
        resource_id=row["resource_id"],
        role_id=row["role_id"],
        created=_dt(row["created"]),
        created_by=row["created_by"],
        updated=_dt(row["updated"]),
        updated_by=row["updated_by"],
        deleted=_dt(row["deleted"]),
        deleted_by=row["deleted_by"],
    )


def _row_to_token(row: sqlite3.Row) -> Token:
    return Token(
        token=row["token"],
        user_id=row["user_id"],
        created=_dt(row["created"]),
        created_by=row["created_by"],
        expires=_dt(row["expires"]),
        deleted=_dt(row["deleted"]),
        deleted_by=row["deleted_by"],
    )
