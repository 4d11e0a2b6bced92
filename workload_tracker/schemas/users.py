"""Request/response schemas for user management."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from workload_tracker.schemas.common import Pagination

# Civil-service rank (golongan) codes accepted for the rank field.
RANKS = (
    "I/a", "I/b", "I/c", "I/d",
    "II/a", "II/b", "II/c", "II/d",
    "III/a", "III/b", "III/c", "III/d",
    "IV/a", "IV/b", "IV/c", "IV/d",
)

USERNAME_PATTERN = r"^[a-zA-Z0-9_.]+$"
USERNAME_MIN_LEN = 3
USERNAME_MAX_LEN = 50
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128

Role = Literal["Admin", "User"]


def _reject_null(v):
    if v is None:
        raise ValueError("Field cannot be null")
    return v


def _validate_rank(v: str | None) -> str | None:
    if v is None or not v.strip():
        return None
    v = v.strip()
    if v not in RANKS:
        raise ValueError(f"Invalid rank. Must be one of: {', '.join(RANKS)}")
    return v


class UserOut(BaseModel):
    """User record as returned by the API (no password field)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    name: str
    badge_number: str | None = None
    rank: str | None = None
    position: str | None = None
    role: Role
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserCreate(BaseModel):
    """Admin-only user creation."""

    username: str = Field(
        ..., min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN, pattern=USERNAME_PATTERN
    )
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    name: str = Field(..., min_length=2, max_length=100)
    badge_number: str | None = Field(default=None, max_length=18)
    rank: str | None = None
    position: str | None = Field(default=None, max_length=100)
    role: Role = "User"

    @field_validator("rank")
    @classmethod
    def validate_rank(cls, v: str | None) -> str | None:
        return _validate_rank(v)


class UserUpdate(BaseModel):
    """
    Partial update. Which of these fields are honoured depends on the caller's
    role (see services.policy); unset fields are left untouched.
    """

    username: str | None = Field(
        default=None, min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN, pattern=USERNAME_PATTERN
    )
    password: str | None = Field(default=None, min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    name: str | None = Field(default=None, min_length=2, max_length=100)
    badge_number: str | None = Field(default=None, max_length=18)
    rank: str | None = None
    position: str | None = Field(default=None, max_length=100)
    role: Role | None = None

    @field_validator("rank")
    @classmethod
    def validate_rank(cls, v: str | None) -> str | None:
        return _validate_rank(v)

    @field_validator("username", "password", "name", "role")
    @classmethod
    def reject_null(cls, v):
        # Omit a field to leave it unchanged; these columns cannot be cleared.
        return _reject_null(v)


class UsersListResponse(BaseModel):
    """Response for GET /users (admin only)."""

    users: list[UserOut]
    pagination: Pagination
