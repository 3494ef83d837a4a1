"""Public-client side of the identity provider's OAuth2 v2.0 endpoints.

:class:`PublicClient` talks to one authority on behalf of one client
application. It owns everything that is common to the sign-in strategies:

- the token endpoint (``refresh_token``, ``authorization_code`` and
  ``device_code`` grants) and the mapping of its error responses onto
  :class:`~graphme.exceptions.InteractionRequiredError` and
  :class:`~graphme.exceptions.AuthenticationError`,
- the device authorization endpoint,
- the authorize URL used by the browser flow,
- reading the signed-in account out of the id token,
- the :class:`~graphme.auth.token_cache.TokenCache` that makes silent
  acquisition possible.

The id token is only decoded, not verified: it arrives directly from the
token endpoint over TLS and is used to label the cache entry, never to
make an authorization decision.
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlencode, urlparse

import httpx
from pydantic import ValidationError

from graphme.auth.token_cache import TokenCache, TokenCacheEntry
from graphme.exceptions import AuthenticationError, InteractionRequiredError
from graphme.models import Account, AuthenticationResult, DeviceCodeInfo
from graphme.output import debug

RESERVED_SCOPES = ("openid", "profile", "offline_access")
"""Added to every request so the provider returns an id token and a refresh token."""

INTERACTION_REQUIRED_ERRORS = frozenset(
    {"interaction_required", "login_required", "consent_required", "invalid_grant"}
)
"""Token endpoint ``error`` codes that only the user can resolve."""

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"


def scope_param(scopes: list[str]) -> str:
    """Join *scopes* and the reserved scopes into a ``scope`` parameter, without duplicates."""
    return " ".join(dict.fromkeys([*scopes, *RESERVED_SCOPES]))


def decode_id_token(id_token: str) -> dict[str, Any]:
    """Return the claims of a JWT without verifying its signature.

    Raises:
        AuthenticationError: If *id_token* is not a well-formed JWT.
    """
    try:
        payload = id_token.split(".")[1]
        padded = payload + "=" * (-len(payload) % 4)
        claims = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (AttributeError, IndexError, ValueError, UnicodeError) as exc:
        raise AuthenticationError(f"Malformed id_token in token response: {exc}") from exc
    if not isinstance(claims, dict):
        raise AuthenticationError("Malformed id_token in token response: claims are not an object")
    return claims


class PublicClient:
    """OAuth2 public client bound to one client id and one authority.

    Args:
        client_id: Application (client) id registered with the provider.
        authority: Authority URL, e.g.
            ``https://login.microsoftonline.com/<tenant>``.
        cache: Token cache used for silent acquisition. Defaults to the
            per-user cache file.
        timeout: Timeout in seconds for each HTTP request.

    Example::

        client = PublicClient("<client-id>", "https://login.microsoftonline.com/common")
        accounts = client.get_accounts()
        result = client.acquire_token_silent(["user.read"], accounts[0])
    """

    def __init__(
        self,
        client_id: str,
        authority: str,
        cache: Optional[TokenCache] = None,
        timeout: float = 30.0,
    ) -> None:
        self.client_id = client_id
        self.authority = authority
        self.cache = cache if cache is not None else TokenCache()
        self._timeout = timeout

    # ------------------------------------------------------------------ #
    # Endpoints
    # ------------------------------------------------------------------ #

    @property
    def token_endpoint(self) -> str:
        return f"{self.authority.rstrip('/')}/oauth2/v2.0/token"

    @property
    def device_code_endpoint(self) -> str:
        return f"{self.authority.rstrip('/')}/oauth2/v2.0/devicecode"

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.authority.rstrip('/')}/oauth2/v2.0/authorize"

    def authorization_url(self, params: dict[str, str]) -> str:
        """Return the authorize endpoint URL with *params* and this client's id."""
        query = {"client_id": self.client_id, **params}
        return f"{self.authorize_endpoint}?{urlencode(query)}"

    # ------------------------------------------------------------------ #
    # Silent acquisition
    # ------------------------------------------------------------------ #

    def get_accounts(self) -> list[Account]:
        """Return the accounts cached for this client at this authority."""
        return self.cache.accounts(self.client_id, self.authority)

    def acquire_token_silent(
        self, scopes: list[str], account: Account
    ) -> AuthenticationResult:
        """Acquire a token for *account* without user interaction.

        Returns the cached access token when it is still valid and covers
        *scopes*; otherwise redeems the cached refresh token.

        Raises:
            InteractionRequiredError: If nothing usable is cached for the
                account, or the token endpoint demands interaction.
            AuthenticationError: On network failures and any other
                token endpoint error.
        """
        entry = self.cache.get(account, self.client_id, self.authority)
        if entry is None:
            raise InteractionRequiredError(f"No cached tokens for {account.username}")

        if not entry.is_expired() and entry.covers(scopes):
            debug(f"Using cached access token for {account.username}")
            return AuthenticationResult(
                access_token=entry.access_token,
                account=entry.account,
                expires_on=entry.expires_on,
                scopes=entry.scopes,
            )

        if not entry.refresh_token:
            raise InteractionRequiredError(
                f"Cached tokens for {account.username} cannot be renewed silently"
            )

        debug(f"Refreshing access token for {account.username}")
        token_data = self.request_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": entry.refresh_token,
                "scope": scope_param(scopes),
            }
        )
        self.raise_for_token_error(token_data, "Token refresh")
        return self.complete(
            token_data,
            scopes,
            account=entry.account,
            refresh_token=entry.refresh_token,
        )

    # ------------------------------------------------------------------ #
    # Interactive grants
    # ------------------------------------------------------------------ #

    def acquire_token_by_authorization_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str,
        scopes: list[str],
        claims: Optional[str] = None,
    ) -> AuthenticationResult:
        """Redeem an authorization code (PKCE) for tokens.

        Raises:
            AuthenticationError: On network failures or any token endpoint error.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": code_verifier,
            "scope": scope_param(scopes),
        }
        if claims:
            data["claims"] = claims
        token_data = self.request_token(data)
        self.raise_for_token_error(token_data, "Token exchange", interactive=True)
        return self.complete(token_data, scopes)

    def initiate_device_flow(
        self, scopes: list[str], claims: Optional[str] = None
    ) -> DeviceCodeInfo:
        """Request a device code and user code (:rfc:`8628` section 3.1).

        *claims*, when given, is forwarded so the resulting token satisfies
        the challenge that made silent acquisition fail.

        Raises:
            AuthenticationError: On HTTP errors or a malformed response.
        """
        data = {"client_id": self.client_id, "scope": scope_param(scopes)}
        if claims:
            data["claims"] = claims

        debug(f"POST {self.device_code_endpoint}")
        try:
            response = httpx.post(
                self.device_code_endpoint,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            result: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise AuthenticationError(
                f"Device authorization request failed with status "
                f"{exc.response.status_code}: {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Device authorization request failed: {exc}") from exc
        except ValueError as exc:
            raise AuthenticationError(
                f"Device authorization response is not JSON: {exc}"
            ) from exc

        if "device_code" not in result:
            raise AuthenticationError("Device authorization response missing 'device_code'")
        if "user_code" not in result:
            raise AuthenticationError("Device authorization response missing 'user_code'")
        try:
            return DeviceCodeInfo.model_validate(result)
        except ValueError as exc:
            raise AuthenticationError(f"Malformed device authorization response: {exc}") from exc

    def device_code_token_request(self, flow: DeviceCodeInfo) -> dict[str, Any]:
        """Send one device-code poll to the token endpoint and return its JSON body."""
        return self.request_token(
            {"grant_type": DEVICE_CODE_GRANT, "device_code": flow.device_code}
        )

    # ------------------------------------------------------------------ #
    # Token endpoint plumbing
    # ------------------------------------------------------------------ #

    def request_token(self, data: dict[str, str]) -> dict[str, Any]:
        """POST a grant to the token endpoint and return the parsed body.

        Error bodies (4xx with ``error``) are returned, not raised, so that
        callers can tell ``authorization_pending`` from a real failure.

        Raises:
            AuthenticationError: On network failures or a non-JSON body.
        """
        debug(f"POST {self.token_endpoint} ({data.get('grant_type')})")
        try:
            response = httpx.post(
                self.token_endpoint,
                data={"client_id": self.client_id, **data},
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Token request failed: {exc}") from exc

        try:
            token_data = response.json()
        except ValueError as exc:
            raise AuthenticationError(
                f"Token endpoint returned status {response.status_code} "
                f"with a non-JSON body"
            ) from exc
        if not isinstance(token_data, dict):
            raise AuthenticationError("Token endpoint returned an unexpected JSON body")
        return token_data

    @staticmethod
    def raise_for_token_error(
        token_data: dict[str, Any], context: str, interactive: bool = False
    ) -> None:
        """Raise for a token endpoint error body; return for a success body.

        During silent acquisition the interaction-required codes become
        :class:`InteractionRequiredError`, carrying the response's
        ``claims`` challenge. Once the user has already been involved
        (*interactive*), every error is a plain :class:`AuthenticationError`.
        """
        error = token_data.get("error")
        if error:
            desc = token_data.get("error_description") or error
            if not interactive and error in INTERACTION_REQUIRED_ERRORS:
                raise InteractionRequiredError(
                    f"{context} requires user interaction: {desc}",
                    error=error,
                    claims=token_data.get("claims"),
                )
            raise AuthenticationError(f"{context} failed: {desc}", error=error)
        if "access_token" not in token_data:
            raise AuthenticationError(f"{context} response missing 'access_token' field")

    def complete(
        self,
        token_data: dict[str, Any],
        scopes: list[str],
        account: Optional[Account] = None,
        refresh_token: Optional[str] = None,
    ) -> AuthenticationResult:
        """Turn a successful token response into a result and cache it.

        Args:
            token_data: Token endpoint success body.
            scopes: Scopes that were requested.
            account: Account to fall back on when the response carries no
                id token (refresh responses may omit it).
            refresh_token: Refresh token to keep when the response does
                not rotate it.

        Raises:
            AuthenticationError: If the account cannot be determined or the
                response fields have the wrong types.
        """
        if token_data.get("id_token"):
            account = self._account_from_id_token(token_data["id_token"])
        if account is None:
            raise AuthenticationError(
                "Token response carries no id_token; cannot identify the signed-in account"
            )

        expires_in = token_data.get("expires_in", 3600)
        try:
            lifetime = float(expires_in)
        except (TypeError, ValueError):
            lifetime = 3600.0
        expires_on = datetime.now(timezone.utc) + timedelta(seconds=lifetime)

        granted = token_data.get("scope")
        granted_scopes = granted.split() if isinstance(granted, str) and granted else list(scopes)

        try:
            result = AuthenticationResult(
                access_token=token_data["access_token"],
                account=account,
                expires_on=expires_on,
                scopes=granted_scopes,
            )
        except ValidationError as exc:
            raise AuthenticationError(f"Malformed token response: {_describe(exc)}") from exc
        self._store(result, token_data.get("refresh_token") or refresh_token)
        return result

    def _store(self, result: AuthenticationResult, refresh_token: Optional[str]) -> None:
        entry = TokenCacheEntry(
            account=result.account,
            client_id=self.client_id,
            authority=self.authority,
            access_token=result.access_token,
            refresh_token=refresh_token,
            expires_on=result.expires_on,
            scopes=result.scopes,
        )
        try:
            self.cache.save(entry)
        except OSError as exc:
            # The token is still good for this run.
            debug(f"Could not write token cache {self.cache.path}: {exc}")

    def _account_from_id_token(self, id_token: str) -> Account:
        claims = decode_id_token(id_token)
        oid = claims.get("oid")
        tid = claims.get("tid")
        home_account_id = f"{oid}.{tid}" if oid and tid else claims.get("sub")
        username = (
            claims.get("preferred_username")
            or claims.get("upn")
            or claims.get("email")
            or claims.get("name")
        )
        if not home_account_id or not username:
            raise AuthenticationError("id_token does not identify the signed-in account")
        try:
            return Account(
                username=username,
                home_account_id=home_account_id,
                environment=urlparse(self.authority).hostname or self.authority,
                tenant_id=tid,
            )
        except ValidationError as exc:
            raise AuthenticationError(
                f"Malformed id_token in token response: {_describe(exc)}"
            ) from exc


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(item) for item in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
