"""Password hashing and JWT creation/verification for authentication."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from workload_tracker.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Claims every token must carry; tokens without them are rejected as invalid.
REQUIRED_CLAIMS = ["sub", "username", "role", "iat", "nbf", "exp"]


class TokenError(Exception):
    """Base class for token verification failures."""

    reason = "Token verification failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.reason
        super().__init__(self.message)


class TokenExpiredError(TokenError):
    reason = "Token expired"


class TokenInvalidError(TokenError):
    """Bad signature, wrong algorithm, malformed structure or missing claims."""

    reason = "Invalid token"


class TokenNotActiveError(TokenError):
    """Token used before its nbf (or iat) time."""

    reason = "Token not active"


@dataclass(frozen=True)
class TokenClaims:
    """Decoded session token claims."""

    user_id: int
    username: str
    role: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime


def hash_password(plain_password: str, rounds: int | None = None) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    if rounds is None:
        rounds = get_settings().BCRYPT_ROUNDS
    # bcrypt has a 72-byte limit; truncate to avoid errors.
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def warn_if_default_secret(settings: Settings) -> None:
    """Log loudly when production runs with the placeholder JWT secret. Never raises."""
    if settings.is_production and settings.uses_default_jwt_secret:
        logger.warning(
            "WARNING: using the default JWT secret in production! "
            "Set JWT_SECRET to a strong random value."
        )


def create_access_token(
    user_id: int,
    username: str,
    role: str,
    *,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> str:
    """Create a signed JWT with sub, username, role, iat, nbf and exp."""
    settings = settings or get_settings()
    now = now or datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "iat": now,
        "nbf": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
    }
    return jwt.encode(
        payload,
        settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str, *, settings: Settings | None = None) -> TokenClaims:
    """
    Verify signature, algorithm and temporal claims; return the decoded claims.

    Raises TokenExpiredError, TokenNotActiveError or TokenInvalidError.
    """
    settings = settings or get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET.get_secret_value(),
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError() from e
    except jwt.ImmatureSignatureError as e:
        raise TokenNotActiveError() from e
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError() from e

    try:
        return TokenClaims(
            user_id=int(payload["sub"]),
            username=str(payload["username"]),
            role=str(payload["role"]),
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            not_before=datetime.fromtimestamp(payload["nbf"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )
    except (TypeError, ValueError) as e:
        raise TokenInvalidError("Invalid token payload") from e


def expires_in_seconds(settings: Settings | None = None) -> int:
    """Lifetime of newly issued tokens, as reported to clients."""
    settings = settings or get_settings()
    return settings.JWT_EXPIRE_MINUTES * 60
