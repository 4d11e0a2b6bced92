"""Workload persistence: CRUD, filtered listing, dropdown options and statistics."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, distinct, func, insert, or_, select, update
from sqlalchemy.sql import Select

from workload_tracker.core.database import Database
from workload_tracker.models import User, Workload
from workload_tracker.models.workload import DEFAULT_STATUS

users = User.__table__
workloads = Workload.__table__

UPDATABLE_COLUMNS = frozenset(
    {"user_id", "name", "type", "description", "status", "received_date", "function"}
)


LIKE_ESCAPE = "\\"


def _escape_like(value: str) -> str:
    """Make %, _ and the escape character match literally in a LIKE pattern."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


@dataclass(frozen=True)
class WorkloadFilters:
    """List filters; user_id is the ownership scope applied by the policy layer."""

    user_id: int | None = None
    status: str | None = None
    type: str | None = None
    search: str | None = None


def _with_owner() -> Select:
    return select(
        workloads,
        users.c.name.label("user_name"),
        users.c.username.label("user_username"),
    ).select_from(workloads.outerjoin(users, workloads.c.user_id == users.c.id))


def _apply_filters(stmt: Select, filters: WorkloadFilters) -> Select:
    if filters.user_id is not None:
        stmt = stmt.where(workloads.c.user_id == filters.user_id)
    if filters.status:
        stmt = stmt.where(workloads.c.status == filters.status)
    if filters.type:
        stmt = stmt.where(workloads.c.type == filters.type)
    if filters.search:
        term = f"%{_escape_like(filters.search)}%"
        stmt = stmt.where(
            or_(
                workloads.c.name.like(term, escape=LIKE_ESCAPE),
                workloads.c.description.like(term, escape=LIKE_ESCAPE),
                workloads.c.function.like(term, escape=LIKE_ESCAPE),
            )
        )
    return stmt


class WorkloadRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def get_by_id(self, workload_id: int) -> dict[str, Any] | None:
        return self._db.get_one(_with_owner().where(workloads.c.id == workload_id))

    def find_all(
        self,
        filters: WorkloadFilters,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        stmt = (
            _apply_filters(_with_owner(), filters)
            .order_by(workloads.c.created_at.desc(), workloads.c.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return self._db.query(stmt)

    def count(self, filters: WorkloadFilters) -> int:
        stmt = _apply_filters(select(func.count().label("total")).select_from(workloads), filters)
        row = self._db.get_one(stmt)
        return int(row["total"]) if row else 0

    def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a workload; data must already carry the owner chosen by the policy layer."""
        values = {k: v for k, v in data.items() if k in UPDATABLE_COLUMNS}
        values.setdefault("status", DEFAULT_STATUS)
        if values["status"] is None:
            values["status"] = DEFAULT_STATUS
        result = self._db.execute(insert(workloads).values(**values))
        return self.get_by_id(result.lastrowid)

    def update(self, workload_id: int, changes: Mapping[str, Any]) -> dict[str, Any] | None:
        values = {k: v for k, v in changes.items() if k in UPDATABLE_COLUMNS}
        if values:
            self._db.execute(
                update(workloads).where(workloads.c.id == workload_id).values(**values)
            )
        return self.get_by_id(workload_id)

    def delete(self, workload_id: int) -> bool:
        result = self._db.execute(delete(workloads).where(workloads.c.id == workload_id))
        return result.rowcount > 0

    def options(self) -> dict[str, list[str]]:
        """Distinct non-empty type, status and function values for dropdowns."""

        def distinct_values(column) -> list[str]:
            rows = self._db.query(
                select(distinct(column).label("value"))
                .where(column.is_not(None))
                .where(column != "")
                .order_by(column)
            )
            return [row["value"] for row in rows]

        return {
            "types": distinct_values(workloads.c.type),
            "statuses": distinct_values(workloads.c.status),
            "functions": distinct_values(workloads.c.function),
        }

    def statistics(self, user_id: int | None = None) -> dict[str, Any]:
        """Total and per-status counts, optionally scoped to one owner."""
        stmt = select(workloads.c.status, func.count().label("count")).group_by(workloads.c.status)
        if user_id is not None:
            stmt = stmt.where(workloads.c.user_id == user_id)
        by_status = {row["status"]: int(row["count"]) for row in self._db.query(stmt)}
        return {
            "total": sum(by_status.values()),
            "completed": by_status.get("Completed", 0),
            "in_progress": by_status.get("In Progress", 0),
            "new": by_status.get("New", 0),
            "by_status": [
                {"status": status, "count": count} for status, count in sorted(by_status.items())
            ],
        }
