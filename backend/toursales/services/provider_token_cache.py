# Overview: OAuth2 client-credentials token cache for the tour provider API.

"""
Provider Token Cache

One instance per process, built by the app factory and injected into the
ProviderGateway. Holds at most one bearer token and the instant it expires.

RULES:
- A cached token is reused while now < expiry - margin (default 300 s)
- A token response without expires_in is never reused
- Remote rejection or a response without access_token -> AuthError
- No retries: one exchange per miss, failures surface to the caller
- The token itself is never logged
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable

import httpx

from ..errors import AuthError, ProviderUnreachableError


logger = logging.getLogger(__name__)

DEFAULT_MARGIN_SECONDS = 300


class ProviderTokenCache:
    def __init__(
        self,
        token_url: str,
        client_id: str | None,
        client_secret: str | None,
        scope: str,
        *,
        margin_seconds: int = DEFAULT_MARGIN_SECONDS,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.time,
        single_flight: bool = True,
    ):
        self.token_url = token_url
        self.scope = scope
        self.margin_seconds = margin_seconds
        self._client_id = client_id
        self._client_secret = client_secret
        self._clock = clock
        self._client = httpx.Client(timeout=timeout, transport=transport)

        self._token: str | None = None
        self._expires_at: float | None = None  # epoch seconds, as reported by the provider
        # Optional single-flight guard: concurrent callers racing past an
        # expired token wait for one exchange instead of issuing several.
        self._lock = threading.Lock() if single_flight else None

    def _is_valid(self, now: float) -> bool:
        if self._token is None or self._expires_at is None:
            return False
        return now < self._expires_at - self.margin_seconds

    def get_token(self) -> str:
        """Return a bearer token, exchanging credentials only on miss or expiry."""
        if self._is_valid(self._clock()):
            return self._token

        if self._lock is None:
            return self._refresh()

        with self._lock:
            # Another thread may have refreshed while we waited
            if self._is_valid(self._clock()):
                return self._token
            return self._refresh()

    def invalidate(self) -> None:
        """Drop the cached token (e.g. after the API answered 401)."""
        self._token = None
        self._expires_at = None

    def state(self) -> dict:
        """Cache state for health checks. Never includes the token."""
        now = self._clock()
        return {
            "cached": self._token is not None,
            "valid": self._is_valid(now),
            "expires_at": (
                datetime.fromtimestamp(self._expires_at, tz=timezone.utc).isoformat().replace("+00:00", "Z")
                if self._expires_at is not None else None
            ),
        }

    def _refresh(self) -> str:
        if not self._client_id or not self._client_secret:
            raise AuthError("Provider client credentials are not configured")

        logger.info("Requesting provider access token from %s", self.token_url)
        try:
            response = self._client.post(
                self.token_url,
                data={"grant_type": "client_credentials", "scope": self.scope},
                auth=(self._client_id, self._client_secret),
                headers={"Accept": "application/json"},
            )
        except httpx.RequestError as exc:
            logger.error("Provider token endpoint unreachable: %s", exc)
            raise ProviderUnreachableError(
                "Provider authentication failed: no response from token endpoint"
            ) from exc

        if response.status_code >= 400:
            logger.warning("Provider token endpoint rejected credentials (HTTP %s)", response.status_code)
            raise AuthError(
                "Provider authentication failed: credentials rejected",
                details={"remote_status": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError:
            payload = None

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            logger.error("Provider token response did not include an access token")
            raise AuthError("Provider authentication failed: no token in response")

        try:
            expires_in = float(payload.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0.0

        self._token = access_token
        self._expires_at = self._clock() + expires_in
        logger.info("Provider access token obtained (expires in %ss)", int(expires_in))
        return access_token

    def close(self) -> None:
        self._client.close()
