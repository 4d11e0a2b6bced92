"""SQLAlchemy ORM models."""

from workload_tracker.models.base import Base
from workload_tracker.models.user import ROLE_ADMIN, ROLE_USER, ROLES, User
from workload_tracker.models.workload import WORKLOAD_STATUSES, WORKLOAD_TYPES, Workload

__all__ = [
    "Base",
    "ROLE_ADMIN",
    "ROLE_USER",
    "ROLES",
    "User",
    "WORKLOAD_STATUSES",
    "WORKLOAD_TYPES",
    "Workload",
]
