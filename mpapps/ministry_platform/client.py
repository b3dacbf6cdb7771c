from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from mpapps.ministry_platform.errors import (
    MinistryPlatformAuthError,
    MinistryPlatformConfigError,
    MinistryPlatformError,
)

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "http://www.thinkministry.com/dataplatform/scopes/all"
DEFAULT_EXPIRES_IN = 3600


@dataclass
class TokenSet:
    access_token: str
    expires_at: float
    refresh_token: str | None = None
    id_token: str | None = None


def clean_params(params: Mapping[str, Any] | None) -> list[tuple[str, Any]]:
    """Flatten query params, dropping ``None`` and repeating sequence values."""

    if not params:
        return []
    cleaned: list[tuple[str, Any]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set)):
            cleaned.extend((key, _format_param(item)) for item in value if item is not None)
        else:
            cleaned.append((key, _format_param(value)))
    return cleaned


def _format_param(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


class MinistryPlatformClient:
    """Thin HTTP wrapper over the MinistryPlatform REST API.

    Without an explicit ``access_token`` the client authenticates itself with the
    client-credentials grant and refreshes the token shortly before it expires.
    A caller-supplied token (a signed-in user's) is used as-is and never refreshed.
    """

    def __init__(
        self,
        base_url: str,
        client_id: str | None = None,
        client_secret: str | None = None,
        *,
        scope: str = DEFAULT_SCOPE,
        oauth_url: str | None = None,
        access_token: str | None = None,
        timeout: float = 30.0,
        refresh_buffer_seconds: int = 60,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not base_url:
            raise MinistryPlatformConfigError("MINISTRY_PLATFORM_BASE_URL is not configured")
        self.base_url = base_url.rstrip("/")
        self.oauth_url = (oauth_url or f"{self.base_url}/oauth").rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self.refresh_buffer_seconds = refresh_buffer_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._access_token = access_token
        self._expires_at: float | None = None
        self._uses_user_token = access_token is not None
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "MinistryPlatformClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def with_access_token(self, access_token: str) -> "MinistryPlatformClient":
        """Return a client sharing this transport that acts as the given user."""

        clone = MinistryPlatformClient.__new__(MinistryPlatformClient)
        clone.__dict__.update(self.__dict__)
        clone._lock = threading.Lock()
        clone._access_token = access_token
        clone._expires_at = None
        clone._uses_user_token = True
        return clone

    # -- tokens -----------------------------------------------------------------

    def ensure_valid_token(self) -> str:
        if self._uses_user_token:
            return self._access_token or ""
        with self._lock:
            if self._access_token and self._expires_at is not None and self._clock() < self._expires_at:
                return self._access_token
            token = self._request_client_token()
            self._access_token = token.access_token
            self._expires_at = token.expires_at
            return token.access_token

    def _request_client_token(self) -> TokenSet:
        if not self.client_id or not self.client_secret:
            raise MinistryPlatformConfigError("MinistryPlatform client credentials are not configured")
        logger.info("mp_client_token_refresh", extra={"client_id": self.client_id})
        return self._token_request(
            {
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "scope": self.scope,
            }
        )

    def refresh_user_token(self, refresh_token: str) -> TokenSet:
        token = self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id or "",
                "client_secret": self.client_secret or "",
            }
        )
        if token.refresh_token is None:
            token.refresh_token = refresh_token
        return token

    def exchange_authorization_code(self, code: str, redirect_uri: str) -> TokenSet:
        return self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": self.client_id or "",
                "client_secret": self.client_secret or "",
            }
        )

    def build_authorize_url(self, redirect_uri: str, state: str) -> str:
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self.client_id or "",
                "redirect_uri": redirect_uri,
                "scope": f"openid offline_access {self.scope}",
                "state": state,
            }
        )
        return f"{self.oauth_url}/connect/authorize?{query}"

    def get_user_info(self, access_token: str) -> dict[str, Any]:
        url = f"{self.oauth_url}/connect/userinfo"
        try:
            response = self._http.get(
                url,
                headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.exception("mp_userinfo_request_failed")
            raise MinistryPlatformAuthError("Unable to load user info", endpoint=url) from exc
        if response.is_error:
            raise MinistryPlatformAuthError(
                "User info request rejected",
                status_code=response.status_code,
                endpoint=url,
                body=response.text,
            )
        return response.json()

    def _token_request(self, data: dict[str, str]) -> TokenSet:
        url = f"{self.oauth_url}/connect/token"
        try:
            response = self._http.post(url, data=data, headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            logger.exception("mp_token_request_failed", extra={"grant_type": data.get("grant_type")})
            raise MinistryPlatformAuthError("Unable to reach MinistryPlatform OAuth server", endpoint=url) from exc

        if response.is_error:
            logger.error(
                "mp_token_request_rejected",
                extra={
                    "grant_type": data.get("grant_type"),
                    "status_code": response.status_code,
                    "body": response.text,
                },
            )
            raise MinistryPlatformAuthError(
                f"Token request failed: {response.status_code}",
                status_code=response.status_code,
                method="POST",
                endpoint=url,
                body=response.text,
            )

        payload = response.json()
        expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        return TokenSet(
            access_token=payload["access_token"],
            expires_at=self._clock() + expires_in - self.refresh_buffer_seconds,
            refresh_token=payload.get("refresh_token"),
            id_token=payload.get("id_token"),
        )

    # -- requests ---------------------------------------------------------------

    def get(self, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        return self._request("GET", endpoint, params=params)

    def post(self, endpoint: str, json: Any = None, params: Mapping[str, Any] | None = None) -> Any:
        return self._request("POST", endpoint, params=params, json=json)

    def put(self, endpoint: str, json: Any = None, params: Mapping[str, Any] | None = None) -> Any:
        return self._request("PUT", endpoint, params=params, json=json)

    def delete(self, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        return self._request("DELETE", endpoint, params=params)

    def post_files(
        self,
        endpoint: str,
        files: list[tuple[str, tuple[str, bytes, str]]],
        data: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        return self._request("POST", endpoint, params=params, files=files, data=data)

    def put_files(
        self,
        endpoint: str,
        files: list[tuple[str, tuple[str, bytes, str]]],
        data: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        return self._request("PUT", endpoint, params=params, files=files, data=data)

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        files: Any = None,
        data: Mapping[str, Any] | None = None,
    ) -> Any:
        token = self.ensure_valid_token()
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        try:
            response = self._http.request(
                method,
                endpoint,
                params=clean_params(params),
                json=json,
                files=files,
                data=dict(data) if data else None,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.exception("mp_request_failed", extra={"method": method, "endpoint": endpoint})
            raise MinistryPlatformError(
                f"{method} {endpoint} failed",
                method=method,
                endpoint=endpoint,
            ) from exc

        if response.is_error:
            logger.error(
                "mp_request_rejected",
                extra={
                    "method": method,
                    "endpoint": endpoint,
                    "status_code": response.status_code,
                    "body": response.text,
                },
            )
            raise MinistryPlatformError(
                f"{method} {endpoint} failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                method=method,
                endpoint=endpoint,
                body=response.text,
            )

        if not response.content:
            return None
        return response.json()
