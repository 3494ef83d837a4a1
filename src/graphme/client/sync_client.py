"""Synchronous HTTP client for the remote API.

This module provides :class:`ApiClient`, a thin wrapper around
:class:`httpx.Client` that layers on:

- **Bearer injection** -- :class:`BearerTokenAuth` adds
  ``Authorization: Bearer <token>`` to every outgoing request. It is the
  client's only interception point.
- **Error mapping** -- non-success statuses become
  :class:`~graphme.exceptions.ApiError`, network failures
  :class:`~graphme.exceptions.ApiConnectionError`.

Requests are sent once; there is no retry policy.
"""

from __future__ import annotations

from typing import Generator, Optional

import httpx

from graphme.client.response import parse_user_profile
from graphme.exceptions import ApiConnectionError, ApiError
from graphme.models import RequestConfig, UserProfile
from graphme.output import debug

ME_PATH = "me"
"""Current-user endpoint, relative to the API root."""


class BearerTokenAuth(httpx.Auth):
    """httpx auth hook that presents a bearer token on every request."""

    def __init__(self, token: str) -> None:
        self._token = token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self._token}"
        yield request


class ApiClient:
    """Client for the remote API, authenticated with one bearer token.

    Must be used as a context manager so that the underlying transport is
    properly opened and closed.

    Args:
        base_url: API root, e.g. ``https://graph.microsoft.com/v1.0/``.
        token: Access token to present.
        request: Timeout and TLS verification settings.
        transport: Optional httpx transport (tests pass a
            :class:`httpx.MockTransport`).

    Example::

        with ApiClient(config.api_base_url, result.access_token) as client:
            profile = client.get_me()
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        request: Optional[RequestConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._token = token
        self._request_config = request or RequestConfig()
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> ApiClient:
        self._client = httpx.Client(
            base_url=self._base_url,
            auth=BearerTokenAuth(self._token),
            timeout=self._request_config.timeout,
            verify=self._request_config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def get(self, path: str) -> httpx.Response:
        """Send one GET request relative to the API root.

        Raises:
            ApiError: On a non-success status.
            ApiConnectionError: On network / timeout errors.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        url = f"{self._base_url}{path.lstrip('/')}"
        debug(f"GET {url}")
        try:
            response = self._client.get(path.lstrip("/"), headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            raise ApiConnectionError(f"Request to {url} failed: {exc}") from exc

        debug(f"HTTP {response.status_code} {url}")
        self._map_response_error(response)
        return response

    def get_me(self) -> UserProfile:
        """Fetch the signed-in user's profile from the current-user endpoint.

        Raises:
            ApiError: On a non-success status.
            DeserializationError: If the body lacks ``id``, ``displayName``
                or ``mail``.
        """
        return parse_user_profile(self.get(ME_PATH))

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise :class:`ApiError` for any non-2xx status."""
        status = response.status_code
        if response.is_success:
            return

        # Graph-style bodies: {"error": {"code": ..., "message": ...}}
        try:
            detail = response.json()
        except ValueError:
            detail = None
        msg = ""
        if isinstance(detail, dict):
            err = detail.get("error")
            if isinstance(err, dict):
                msg = err.get("message") or err.get("code") or ""
            else:
                msg = detail.get("message") or (err if isinstance(err, str) else "") or ""
        elif response.text:
            msg = response.text[:200]

        prefix = f"HTTP {status}"
        raise ApiError(f"{prefix}: {msg}" if msg else prefix, status_code=status)


def call_api(
    token: str,
    base_url: str,
    request: Optional[RequestConfig] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> UserProfile:
    """Fetch the current user's profile with *token* (one GET, no retry)."""
    with ApiClient(base_url, token, request, transport=transport) as client:
        return client.get_me()
