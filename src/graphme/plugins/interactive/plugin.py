"""Browser sign-in strategy (OAuth2 Authorization Code grant with PKCE).

This module provides :class:`BrowserStrategy`, registered as
``interactive``. It performs the Authorization Code grant with PKCE
(:rfc:`7636`) against the authority's v2.0 endpoints:

1. Opens the authorize URL in the user's browser.
2. Listens on a one-shot loopback HTTP server for the redirect.
3. Checks ``state`` and redeems the code for tokens.

Also exports :func:`generate_pkce_pair`.

See Also:
    :class:`graphme.auth.base.InteractiveStrategy` for the base interface.
    :mod:`graphme.plugins.device_code` for the browserless alternative.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import socket
import sys
import threading
import time
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from graphme.auth.base import InteractiveStrategy
from graphme.auth.identity import PublicClient, scope_param
from graphme.exceptions import AuthenticationError
from graphme.models import AuthenticationResult
from graphme.output import debug, info

_LOOPBACK_HOST = "localhost"


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    # RFC 7636: 43-128 characters from unreserved character set
    code_verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return code_verifier, code_challenge


def _find_free_port() -> int:
    """Find a free TCP port on the loopback interface."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((_LOOPBACK_HOST, 0))
        return s.getsockname()[1]


class BrowserStrategy(InteractiveStrategy):
    """Sign in through the system browser.

    Args:
        callback_timeout: Seconds to wait for the browser to come back to
            the loopback redirect before giving up.
    """

    def __init__(self, callback_timeout: float = 300.0) -> None:
        self._callback_timeout = callback_timeout

    @property
    def name(self) -> str:
        return "interactive"

    def acquire(
        self,
        identity: PublicClient,
        scopes: list[str],
        claims: Optional[str] = None,
    ) -> AuthenticationResult:
        """Run the full authorization code flow.

        Requires a TTY. *claims* is sent with both the authorize request
        and the code redemption.

        Raises:
            AuthenticationError: If stdin is not a TTY, the provider or the
                user rejects the sign-in, or no redirect with the expected
                ``state`` arrives before the timeout.
        """
        if not sys.stdin.isatty():
            raise AuthenticationError(
                "Browser sign-in requires an interactive terminal "
                "(stdin must be a TTY); use 'graphme device-code' instead"
            )

        code_verifier, code_challenge = generate_pkce_pair()
        state = secrets.token_urlsafe(16)
        port = _find_free_port()
        redirect_uri = f"http://{_LOOPBACK_HOST}:{port}"

        params: dict[str, str] = {
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "scope": scope_param(scopes),
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
            "state": state,
            "prompt": "select_account",
        }
        if claims:
            params["claims"] = claims

        auth_url = identity.authorization_url(params)
        info("Opening the browser to sign in. Complete the sign-in there.")
        debug(f"Authorize URL: {identity.authorize_endpoint}")

        auth_code = self._wait_for_callback(port, auth_url, state)

        return identity.acquire_token_by_authorization_code(
            auth_code, redirect_uri, code_verifier, scopes, claims=claims
        )

    def _wait_for_callback(self, port: int, auth_url: str, state: str) -> str:
        """Start a loopback HTTP server, open the browser, and wait for the redirect.

        Requests that carry neither ``code`` nor ``error`` (a browser's
        favicon probe, for instance) are answered with 404 and ignored.
        Redirects whose ``state`` does not match are answered with 400 and
        ignored too, so a stray local request cannot end the sign-in.

        Args:
            port: TCP port for the loopback server.
            auth_url: The fully-formed authorize URL to open.
            state: The ``state`` value the redirect must echo.

        Returns:
            The authorization code from the redirect's query string.

        Raises:
            AuthenticationError: If the provider returns an error, or no
                redirect with the expected ``state`` arrives within the timeout.
        """
        result: dict[str, Optional[str]] = {"code": None, "error": None}

        class CallbackHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                params = parse_qs(urlparse(self.path).query)

                if "error" not in params and "code" not in params:
                    self.send_response(404)
                    self.end_headers()
                    return
                if params.get("state", [""])[0] != state:
                    debug("Ignoring redirect with a mismatched state")
                    self.send_response(400)
                    self.end_headers()
                    return

                if "error" in params:
                    result["error"] = params["error"][0]
                    error_desc = params.get("error_description", [""])[0]
                    if error_desc:
                        result["error"] += f": {error_desc}"
                    body = "Sign-in failed. You can close this window."
                else:
                    result["code"] = params["code"][0]
                    body = (
                        "Sign-in complete. You can close this window "
                        "and return to the terminal."
                    )

                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(
                    f"<html><body><h2>{body}</h2></body></html>".encode("utf-8")
                )

            def log_message(self, format: str, *args: Any) -> None:
                # Suppress default logging
                pass

        server = HTTPServer((_LOOPBACK_HOST, port), CallbackHandler)

        # Open browser in a separate thread to avoid blocking
        browser_thread = threading.Thread(
            target=webbrowser.open, args=(auth_url,), daemon=True
        )
        browser_thread.start()

        deadline = time.monotonic() + self._callback_timeout
        try:
            while result["code"] is None and result["error"] is None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                server.timeout = remaining
                server.handle_request()
        finally:
            server.server_close()

        if result["error"]:
            raise AuthenticationError(f"Browser sign-in failed: {result['error']}")
        if not result["code"]:
            raise AuthenticationError("Browser sign-in timed out waiting for the redirect")

        return result["code"]
