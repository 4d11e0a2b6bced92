"""Request/response schemas for workload endpoints."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from workload_tracker.schemas.common import Pagination

WorkloadType = Literal["Rutin", "Proyek", "Tambahan", "Lainnya"]
WorkloadStatus = Literal["New", "In Progress", "Completed", "On Hold", "Cancelled"]


class WorkloadCreate(BaseModel):
    """
    New workload. user_id is honoured for admins only; for everyone else the
    owner is forced to the caller.
    """

    user_id: int | None = None
    name: str = Field(..., min_length=2, max_length=100)
    type: WorkloadType | None = None
    description: str | None = Field(default=None, min_length=10)
    status: WorkloadStatus = "New"
    received_date: date | None = None
    function: str | None = Field(default=None, min_length=2, max_length=100)


class WorkloadUpdate(BaseModel):
    user_id: int | None = None
    name: str | None = Field(default=None, min_length=2, max_length=100)
    type: WorkloadType | None = None
    description: str | None = Field(default=None, min_length=10)
    status: WorkloadStatus | None = None
    received_date: date | None = None
    function: str | None = Field(default=None, min_length=2, max_length=100)

    @field_validator("name", "status")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class WorkloadOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    user_name: str | None = None
    user_username: str | None = None
    name: str
    type: str | None = None
    description: str | None = None
    status: str
    received_date: date | None = None
    function: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WorkloadListResponse(BaseModel):
    workloads: list[WorkloadOut]
    pagination: Pagination


class WorkloadOptions(BaseModel):
    """Distinct values already in use, for dropdowns."""

    types: list[str]
    statuses: list[str]
    functions: list[str]


class StatusCount(BaseModel):
    status: str
    count: int


class WorkloadStatistics(BaseModel):
    total: int
    completed: int
    in_progress: int
    new: int
    by_status: list[StatusCount]
