"""JWT login, logout, current user and token refresh."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from workload_tracker.api.deps import (
    AuthContext,
    get_app_settings,
    get_current_user,
    get_user_repository,
    warn_if_token_expiring,
)
from workload_tracker.core.config import Settings
from workload_tracker.core.errors import UnauthorizedError
from workload_tracker.core.security import create_access_token, expires_in_seconds
from workload_tracker.repositories.users import UserRepository
from workload_tracker.schemas.auth import AuthResponse, LoginRequest
from workload_tracker.schemas.common import MessageResponse
from workload_tracker.schemas.users import UserOut

logger = logging.getLogger(__name__)
router = APIRouter()


def _issue(user: UserOut, settings: Settings) -> AuthResponse:
    token = create_access_token(user.id, user.username, user.role, settings=settings)
    return AuthResponse(user=user, token=token, expires_in=expires_in_seconds(settings))


@router.post("/login", response_model=AuthResponse)
def login(
    users: Annotated[UserRepository, Depends(get_user_repository)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    body: LoginRequest | None = None,
) -> AuthResponse:
    """
    Authenticate with username and password; returns the user and a JWT.
    Include the token in the Authorization header as: Bearer <token>
    """
    if body is None or not body.username or not body.password:
        raise UnauthorizedError("Username and password are required")

    user = users.authenticate(body.username, body.password)
    if user is None:
        # Same message for unknown user and wrong password.
        logger.info("Login failed", extra={"username": body.username})
        raise UnauthorizedError("Invalid username or password")

    logger.info("Login succeeded", extra={"user_id": user["id"]})
    return _issue(UserOut.model_validate(user), settings)


@router.post(
    "/logout",
    response_model=MessageResponse,
    dependencies=[Depends(get_current_user)],
)
def logout() -> MessageResponse:
    """
    Stateless logout: the server keeps no session, the client discards its token.
    Tokens stay valid until they expire.
    """
    return MessageResponse(message="Logout successful")


@router.get(
    "/user",
    response_model=UserOut,
    dependencies=[Depends(warn_if_token_expiring)],
)
def get_user(auth: Annotated[AuthContext, Depends(get_current_user)]) -> UserOut:
    """Current user, reloaded from the database on every request."""
    return UserOut.model_validate(auth.user.model_dump())


@router.post("/refresh", response_model=AuthResponse)
def refresh(
    auth: Annotated[AuthContext, Depends(get_current_user)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AuthResponse:
    """Issue a fresh token for the (still valid) bearer token's user."""
    return _issue(UserOut.model_validate(auth.user.model_dump()), settings)
