"""Tests for token authentication, role checks and expiry headers."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

from fastapi.security import HTTPAuthorizationCredentials

from factories import make_database, make_settings, seed_users
from workload_tracker.api.deps import (
    EXPIRES_AT_HEADER,
    EXPIRING_SOON_HEADER,
    authenticate_token,
    authorize_role,
    get_optional_user,
    token_expiry_headers,
)
from workload_tracker.core.errors import ForbiddenError, UnauthorizedError
from workload_tracker.core.security import create_access_token, decode_access_token
from workload_tracker.repositories.users import UserRepository


class TestAuthenticateToken(unittest.TestCase):
    """Bearer token verification and user reload."""

    def setUp(self) -> None:
        self.db = make_database()
        self.settings = self.db.settings
        self.users = UserRepository(self.db)
        self.admin, self.jdoe = seed_users(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def _token(self, user: dict, **kwargs) -> str:
        return create_access_token(
            user["id"], user["username"], user["role"], settings=self.settings, **kwargs
        )

    def _assert_rejected(self, token: str | None, message: str) -> None:
        with self.assertRaises(UnauthorizedError) as ctx:
            authenticate_token(token, self.users, self.settings)
        self.assertEqual(ctx.exception.message, message)

    def test_valid_token_loads_current_user(self) -> None:
        auth = authenticate_token(self._token(self.jdoe), self.users, self.settings)
        self.assertEqual(auth.user.id, self.jdoe["id"])
        self.assertEqual(auth.user.role, "User")
        self.assertEqual(auth.claims.username, "jdoe")

    def test_failure_kinds_are_distinguished(self) -> None:
        self._assert_rejected(None, "Access token required")
        self._assert_rejected("", "Access token required")
        self._assert_rejected("garbage", "Invalid token")
        past = datetime.now(UTC) - timedelta(days=2)
        self._assert_rejected(self._token(self.jdoe, now=past), "Token expired")
        future = datetime.now(UTC) + timedelta(hours=1)
        self._assert_rejected(self._token(self.jdoe, now=future), "Token not active")

    def test_token_for_deleted_user_is_rejected(self) -> None:
        token = self._token(self.jdoe)
        self.users.delete(self.jdoe["id"])
        self._assert_rejected(token, "User not found")

    def test_optional_user_never_fails(self) -> None:
        request = MagicMock()
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=self._token(self.admin))
        auth = get_optional_user(request, credentials, self.users, self.settings)
        self.assertEqual(auth.user.username, "admin")
        self.assertIs(request.state.auth, auth)
        self.assertIsNone(get_optional_user(MagicMock(), None, self.users, self.settings))
        garbage = HTTPAuthorizationCredentials(scheme="Bearer", credentials="garbage")
        self.assertIsNone(get_optional_user(MagicMock(), garbage, self.users, self.settings))

    def test_role_comes_from_database_not_token(self) -> None:
        self.users.update(self.jdoe["id"], {"role": "Admin"})
        auth = authenticate_token(self._token(self.jdoe), self.users, self.settings)
        self.assertEqual(auth.user.role, "Admin")


class TestAuthorizeRole(unittest.TestCase):
    """Role gate: 401 without identity, 403 for a disallowed role."""

    def setUp(self) -> None:
        self.db = make_database()
        self.admin, self.jdoe = seed_users(self.db)
        self.users = UserRepository(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def _auth(self, user: dict):
        token = create_access_token(
            user["id"], user["username"], user["role"], settings=self.db.settings
        )
        return authenticate_token(token, self.users, self.db.settings)

    def test_allowed_role_passes(self) -> None:
        auth = self._auth(self.admin)
        self.assertIs(authorize_role(auth, ["Admin"]), auth)

    def test_missing_identity_is_unauthorized(self) -> None:
        with self.assertRaises(UnauthorizedError):
            authorize_role(None, ["Admin"])

    def test_wrong_role_is_forbidden(self) -> None:
        with self.assertRaises(ForbiddenError) as ctx:
            authorize_role(self._auth(self.jdoe), ["Admin"])
        self.assertEqual(ctx.exception.message, "Insufficient permissions")


class TestTokenExpiryHeaders(unittest.TestCase):
    """Expiry warning headers inside and outside the window."""

    def setUp(self) -> None:
        self.settings = make_settings(JWT_EXPIRE_MINUTES=10)
        now = datetime.now(UTC).replace(microsecond=0)
        token = create_access_token(1, "admin", "Admin", settings=self.settings, now=now)
        self.claims = decode_access_token(token, settings=self.settings)

    def test_no_headers_far_from_expiry(self) -> None:
        self.assertEqual(token_expiry_headers(self.claims, 300, now=self.claims.issued_at), {})

    def test_headers_inside_warning_window(self) -> None:
        now = self.claims.expires_at - timedelta(seconds=120)
        headers = token_expiry_headers(self.claims, 300, now=now)
        self.assertEqual(headers[EXPIRING_SOON_HEADER], "true")
        self.assertEqual(headers[EXPIRES_AT_HEADER], self.claims.expires_at.isoformat())


if __name__ == "__main__":
    unittest.main()
