# Overview: Login delegation to the external identity service.

"""
Two-step delegation:
1. POST /api/v1/auth/token with the system account -> {"token": ...}
2. POST /api/v2/auth/login with the user's email/password, authorized by the
   system token (raw value, no scheme) -> payload returned verbatim

Every failure, including an unreachable service, is an AuthError: the login
endpoint answers 401 for all of them.
"""

from __future__ import annotations

import logging

import httpx

from ..errors import AuthError


logger = logging.getLogger(__name__)


def _message(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"]:
        return body["message"]
    return default


class IdentityService:
    def __init__(
        self,
        base_url: str,
        system_username: str | None,
        system_password: str | None,
        *,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._system_username = system_username
        self._system_password = system_password
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def _post(self, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.post(path, **kwargs)
        except httpx.RequestError as exc:
            logger.error("Identity service unreachable: %s", type(exc).__name__)
            raise AuthError("Identity service unreachable") from exc

    def system_token(self) -> str:
        if not self._system_username or not self._system_password:
            raise AuthError("Identity service credentials are not configured")

        response = self._post(
            "/api/v1/auth/token",
            json={"username": self._system_username, "password": self._system_password},
        )
        if response.is_error:
            raise AuthError(f"Could not obtain system token: {_message(response, response.reason_phrase)}")

        try:
            token = response.json().get("token")
        except (ValueError, AttributeError):
            token = None
        if not token:
            raise AuthError("Could not obtain system token: no token in response")
        return token

    def login(self, email: str, password: str):
        token = self.system_token()
        response = self._post(
            "/api/v2/auth/login",
            json={"email": email, "password": password},
            headers={"Authorization": token},
        )
        if response.is_error:
            raise AuthError(_message(response, "Login failed"))

        try:
            return response.json()
        except ValueError as exc:
            raise AuthError("Login failed: invalid response from identity service") from exc

    def close(self) -> None:
        self._client.close()
