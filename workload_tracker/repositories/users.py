"""Credential store: user records, password hashes and login checks."""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete, func, insert, select, update

from workload_tracker.core.database import Database, TransactionScope
from workload_tracker.core.errors import ConflictError
from workload_tracker.core.security import hash_password, verify_password
from workload_tracker.models import ROLE_USER, User, Workload

logger = logging.getLogger(__name__)

users = User.__table__
workloads = Workload.__table__

# Every read path selects these; password_hash never leaves the repository.
PUBLIC_COLUMNS = [column for column in users.c if column.name != "password_hash"]

# Columns update() may touch; "password" is accepted separately and hashed.
UPDATABLE_COLUMNS = frozenset({"username", "name", "badge_number", "rank", "position", "role"})


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class UserRepository:
    """User persistence; all queries go through Database."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def get_by_id(self, user_id: int) -> dict[str, Any] | None:
        return self._db.get_one(select(*PUBLIC_COLUMNS).where(users.c.id == user_id))

    def get_by_username(self, username: str) -> dict[str, Any] | None:
        return self._db.get_one(select(*PUBLIC_COLUMNS).where(users.c.username == username))

    def find_all(self, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        stmt = (
            select(*PUBLIC_COLUMNS)
            .order_by(users.c.created_at.desc(), users.c.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return self._db.query(stmt)

    def count(self) -> int:
        row = self._db.get_one(select(func.count().label("total")).select_from(users))
        return int(row["total"]) if row else 0

    def create(
        self,
        *,
        username: str,
        password: str,
        name: str,
        badge_number: str | None = None,
        rank: str | None = None,
        position: str | None = None,
        role: str = ROLE_USER,
    ) -> dict[str, Any]:
        """Insert a user with a bcrypt-hashed password. Raises ConflictError on duplicate username."""
        stmt = insert(users).values(
            username=username.strip(),
            password_hash=hash_password(password, rounds=self._db.settings.BCRYPT_ROUNDS),
            name=name.strip(),
            badge_number=_blank_to_none(badge_number),
            rank=_blank_to_none(rank),
            position=_blank_to_none(position),
            role=role,
        )
        try:
            result = self._db.execute(stmt)
        except ConflictError as e:
            raise ConflictError("Username already exists", cause=e) from e
        created = self.get_by_id(result.lastrowid)
        logger.info("Created user", extra={"user_id": result.lastrowid, "role": role})
        return created

    def update(self, user_id: int, changes: Mapping[str, Any]) -> dict[str, Any] | None:
        """
        Apply column changes (already filtered by the authorization policy).

        A "password" key is hashed into password_hash; unknown keys are ignored.
        Returns the updated public record, or None when the user does not exist.
        """
        values: dict[str, Any] = {k: v for k, v in changes.items() if k in UPDATABLE_COLUMNS}
        for key in ("badge_number", "rank", "position"):
            if key in values:
                values[key] = _blank_to_none(values[key])
        if changes.get("password"):
            values["password_hash"] = hash_password(
                changes["password"], rounds=self._db.settings.BCRYPT_ROUNDS
            )
        if values:
            try:
                self._db.execute(update(users).where(users.c.id == user_id).values(**values))
            except ConflictError as e:
                if "username" not in values:
                    raise
                raise ConflictError("Username already exists", cause=e) from e
        return self.get_by_id(user_id)

    def count_workloads(self, user_id: int) -> int:
        row = self._db.get_one(
            select(func.count().label("total"))
            .select_from(workloads)
            .where(workloads.c.user_id == user_id)
        )
        return int(row["total"]) if row else 0

    def delete(self, user_id: int, *, force: bool = False) -> bool:
        """
        Delete a user. Owned workloads block the delete unless force is set,
        in which case they are removed in the same transaction.
        """

        def body(tx: TransactionScope) -> bool:
            row = tx.get_one(
                select(func.count().label("total"))
                .select_from(workloads)
                .where(workloads.c.user_id == user_id)
            )
            owned = int(row["total"]) if row else 0
            if owned and not force:
                raise ConflictError(
                    "Cannot delete user with existing workloads. Use ?force=true to override.",
                    details={"workload_count": owned},
                )
            if owned:
                tx.execute(delete(workloads).where(workloads.c.user_id == user_id))
            result = tx.execute(delete(users).where(users.c.id == user_id))
            return result.rowcount > 0

        deleted = self._db.transaction(body)
        if deleted:
            logger.info("Deleted user", extra={"user_id": user_id, "force": force})
        return deleted

    def authenticate(self, username: str, password: str) -> dict[str, Any] | None:
        """
        Return the public user record when username and password match, else None.

        Callers must not distinguish unknown usernames from wrong passwords.
        """
        row = self._db.get_one(select(users).where(users.c.username == username))
        if row is None:
            return None
        if not verify_password(password, row["password_hash"]):
            return None
        row.pop("password_hash", None)
        return row
