"""Data access for users and workloads through the Database query surface."""

from workload_tracker.repositories.users import UserRepository
from workload_tracker.repositories.workloads import WorkloadFilters, WorkloadRepository

__all__ = ["UserRepository", "WorkloadFilters", "WorkloadRepository"]
