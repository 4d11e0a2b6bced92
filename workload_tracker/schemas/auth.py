"""Request/response schemas for auth endpoints."""

from pydantic import BaseModel, ConfigDict, Field

from workload_tracker.schemas.users import UserOut


class LoginRequest(BaseModel):
    """Credentials for login. Missing fields are answered with 401, not 422."""

    username: str = Field(default="", description="Username")
    password: str = Field(default="", description="Password")


class CurrentUser(UserOut):
    """Authenticated user resolved from the bearer token, for dependency injection."""


class AuthResponse(BaseModel):
    """Login / refresh result: user record, JWT and its lifetime in seconds."""

    model_config = ConfigDict(populate_by_name=True)

    user: UserOut
    token: str = Field(..., description="JWT access token")
    expires_in: int = Field(..., serialization_alias="expiresIn", description="Token lifetime in seconds")
