"""
Async HTTP client for the Workload Tracker API with session handling.

The client keeps the bearer token in memory, refreshes it before it expires
(or when the server flags it as expiring soon) and shares one in-flight
refresh between concurrent requests.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
import jwt

logger = logging.getLogger(__name__)

EXPIRING_SOON_HEADER = "X-Token-Expiring-Soon"
DEFAULT_REFRESH_MARGIN_SEC = 300.0


class ApiError(Exception):
    """Error response from the API, carrying its status and error code."""

    def __init__(self, status_code: int, code: str, message: str) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"{status_code} {code}: {message}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> ApiError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return cls(
            response.status_code,
            str(body.get("code") or "HTTP_ERROR"),
            str(body.get("message") or response.reason_phrase or "Request failed"),
        )


class SessionExpiredError(ApiError):
    """The session can no longer be used; log in again."""

    def __init__(self, message: str = "Session expired. Please login again.") -> None:
        super().__init__(401, "SESSION_EXPIRED", message)


def token_expires_at(token: str) -> float | None:
    """exp claim of a token as a Unix timestamp, read without verifying the signature."""
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return None
    exp = payload.get("exp")
    return float(exp) if isinstance(exp, (int, float)) else None


class WorkloadClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000/api",
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
        refresh_margin_sec: float = DEFAULT_REFRESH_MARGIN_SEC,
    ) -> None:
        self._http = client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout, transport=transport
        )
        self._owns_http = client is None
        self._refresh_margin = refresh_margin_sec
        self._refresh_task: asyncio.Task[str] | None = None
        self._expiring_soon = False
        self.token: str | None = None
        self.user: dict[str, Any] | None = None

    async def __aenter__(self) -> WorkloadClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def _set_session(self, body: dict[str, Any]) -> None:
        self.token = body["token"]
        self.user = body.get("user")
        self._expiring_soon = False

    def clear_session(self) -> None:
        self.token = None
        self.user = None
        self._expiring_soon = False

    async def login(self, username: str, password: str) -> dict[str, Any]:
        """Log in and keep the returned token. Returns the user."""
        response = await self._http.post(
            "/auth/login", json={"username": username, "password": password}
        )
        if response.is_error:
            raise ApiError.from_response(response)
        self._set_session(response.json())
        return self.user or {}

    async def logout(self) -> None:
        """Tell the server (best effort) and drop the token locally."""
        token = self.token
        self.clear_session()
        if token is None:
            return
        try:
            await self._http.post("/auth/logout", headers=_bearer(token))
        except httpx.HTTPError as e:
            logger.info("Logout request failed: %s", e)

    async def refresh_token(self) -> str:
        """
        Exchange the current token for a new one.

        Concurrent callers share a single in-flight refresh. When it fails the
        session is cleared and every caller gets the same SessionExpiredError.
        """
        task = self._refresh_task
        if task is None:
            task = asyncio.ensure_future(self._refresh())
            self._refresh_task = task
            task.add_done_callback(self._refresh_finished)
        # shield: a cancelled waiter must not cancel the refresh for the others
        return await asyncio.shield(task)

    def _refresh_finished(self, task: asyncio.Task[str]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled():
            # Mark the exception retrieved when nobody is left waiting.
            task.exception()

    async def _refresh(self) -> str:
        token = self.token
        if token is None:
            raise SessionExpiredError()
        try:
            response = await self._http.post("/auth/refresh", headers=_bearer(token))
        except httpx.HTTPError as e:
            self.clear_session()
            raise SessionExpiredError() from e
        if response.is_error:
            logger.info("Token refresh rejected with status %s", response.status_code)
            self.clear_session()
            raise SessionExpiredError()
        self._set_session(response.json())
        logger.debug("Token refreshed")
        return self.token

    def _needs_refresh(self) -> bool:
        if self.token is None:
            return False
        if self._expiring_soon:
            return True
        expires_at = token_expires_at(self.token)
        return expires_at is not None and expires_at - time.time() <= self._refresh_margin

    async def get_current_user(self) -> dict[str, Any]:
        self.user = await self.request("GET", "/auth/user")
        return self.user

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Authenticated request returning the decoded JSON body.

        Raises SessionExpiredError when the session is gone and ApiError for
        any other error response.
        """
        if self._needs_refresh():
            await self.refresh_token()
        token = self.token
        response = await self._send(method, path, token, **kwargs)

        if response.status_code == 401 and token is not None:
            if self.token is not None and self.token != token:
                # Another request refreshed meanwhile; the old token may simply be stale.
                response = await self._send(method, path, self.token, **kwargs)
            if response.status_code == 401:
                self.clear_session()
                raise SessionExpiredError()

        if response.is_error:
            raise ApiError.from_response(response)
        if response.headers.get(EXPIRING_SOON_HEADER, "").lower() == "true":
            self._expiring_soon = True
        if not response.content:
            return None
        return response.json()

    async def _send(
        self, method: str, path: str, token: str | None, **kwargs: Any
    ) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if token is not None:
            headers.update(_bearer(token))
        return await self._http.request(method, path, headers=headers, **kwargs)


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
