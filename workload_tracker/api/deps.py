"""
Request-scoped dependencies: settings, database, repositories and authentication.

get_current_user turns the bearer token into an AuthContext stored on
request.state.auth; get_optional_user does the same without failing;
require_roles gates on role; warn_if_token_expiring adds the expiring-soon
response headers.
"""

import logging
from collections.abc import Callable, Collection
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Annotated

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from workload_tracker.core.config import Settings
from workload_tracker.core.database import Database
from workload_tracker.core.errors import ForbiddenError, UnauthorizedError
from workload_tracker.core.security import (
    TokenClaims,
    TokenError,
    TokenExpiredError,
    TokenInvalidError,
    TokenNotActiveError,
    decode_access_token,
)
from workload_tracker.models import ROLE_ADMIN
from workload_tracker.repositories.users import UserRepository
from workload_tracker.repositories.workloads import WorkloadRepository
from workload_tracker.schemas.auth import CurrentUser

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

EXPIRING_SOON_HEADER = "X-Token-Expiring-Soon"
EXPIRES_AT_HEADER = "X-Token-Expires-At"


@dataclass(frozen=True)
class AuthContext:
    """Identity resolved for the current request plus the decoded token claims."""

    user: CurrentUser
    claims: TokenClaims


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_user_repository(db: Annotated[Database, Depends(get_database)]) -> UserRepository:
    return UserRepository(db)


def get_workload_repository(
    db: Annotated[Database, Depends(get_database)],
) -> WorkloadRepository:
    return WorkloadRepository(db)


def authenticate_token(token: str | None, users: UserRepository, settings: Settings) -> AuthContext:
    """
    Verify a bearer token and reload its user.

    Raises UnauthorizedError with a message naming the failure kind.
    """
    if not token:
        raise UnauthorizedError("Access token required")
    try:
        claims = decode_access_token(token, settings=settings)
    except TokenExpiredError as e:
        raise UnauthorizedError("Token expired") from e
    except TokenNotActiveError as e:
        raise UnauthorizedError("Token not active") from e
    except TokenInvalidError as e:
        raise UnauthorizedError("Invalid token") from e
    except TokenError as e:
        raise UnauthorizedError("Authentication failed") from e

    # Tokens outlive deleted accounts; the user row is the source of truth.
    user = users.get_by_id(claims.user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    return AuthContext(user=CurrentUser.model_validate(user), claims=claims)


def _bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str | None:
    return credentials.credentials if credentials is not None else None


def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AuthContext:
    """Dependency: require a valid Bearer JWT for a live user. Raises 401 otherwise."""
    try:
        auth = authenticate_token(_bearer_token(credentials), users, settings)
    except UnauthorizedError as e:
        logger.info(
            "Authentication failed: %s",
            e.message,
            extra={"path": request.url.path, "reason": e.message},
        )
        raise
    request.state.auth = auth
    return auth


def get_optional_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AuthContext | None:
    """Dependency: like get_current_user, but any auth failure yields None."""
    try:
        auth = authenticate_token(_bearer_token(credentials), users, settings)
    except UnauthorizedError:
        return None
    request.state.auth = auth
    return auth


def authorize_role(auth: AuthContext | None, allowed_roles: Collection[str]) -> AuthContext:
    if auth is None:
        raise UnauthorizedError("Authentication required")
    if auth.user.role not in allowed_roles:
        raise ForbiddenError("Insufficient permissions")
    return auth


def require_roles(*roles: str) -> Callable[..., AuthContext]:
    """Dependency factory: authenticated user whose role is one of roles, else 403."""

    def dependency(auth: Annotated[AuthContext, Depends(get_current_user)]) -> AuthContext:
        return authorize_role(auth, roles)

    return dependency


require_admin = require_roles(ROLE_ADMIN)


def token_expiry_headers(
    claims: TokenClaims, window_seconds: int, now: datetime | None = None
) -> dict[str, str]:
    """Headers signalling that the token expires within window_seconds; empty otherwise."""
    now = now or datetime.now(UTC)
    remaining = (claims.expires_at - now).total_seconds()
    if remaining > window_seconds:
        return {}
    return {
        EXPIRING_SOON_HEADER: "true",
        EXPIRES_AT_HEADER: claims.expires_at.isoformat(),
    }


def warn_if_token_expiring(
    response: Response,
    auth: Annotated[AuthContext, Depends(get_current_user)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> None:
    """Dependency: annotate the response when the caller should refresh soon. Never denies."""
    for name, value in token_expiry_headers(auth.claims, settings.TOKEN_EXPIRY_WARNING_SEC).items():
        response.headers[name] = value
