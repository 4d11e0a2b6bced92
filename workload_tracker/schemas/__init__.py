"""Pydantic request/response schemas."""

from workload_tracker.schemas.auth import AuthResponse, CurrentUser, LoginRequest
from workload_tracker.schemas.common import MessageResponse, Pagination
from workload_tracker.schemas.health import DatabaseHealthResponse, LivenessResponse
from workload_tracker.schemas.users import UserCreate, UserOut, UsersListResponse, UserUpdate
from workload_tracker.schemas.workloads import (
    WorkloadCreate,
    WorkloadListResponse,
    WorkloadOptions,
    WorkloadOut,
    WorkloadStatistics,
    WorkloadUpdate,
)

__all__ = [
    "AuthResponse",
    "CurrentUser",
    "DatabaseHealthResponse",
    "LivenessResponse",
    "LoginRequest",
    "MessageResponse",
    "Pagination",
    "UserCreate",
    "UserOut",
    "UserUpdate",
    "UsersListResponse",
    "WorkloadCreate",
    "WorkloadListResponse",
    "WorkloadOptions",
    "WorkloadOut",
    "WorkloadStatistics",
    "WorkloadUpdate",
]
