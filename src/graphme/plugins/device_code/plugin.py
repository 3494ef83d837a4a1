"""Device-code sign-in strategy (OAuth2 Device Authorization Grant, :rfc:`8628`).

For headless terminals (SSH, Docker, CI) where a browser cannot be opened
locally.

Flow:
    1. POST to the authority's ``devicecode`` endpoint to obtain
       ``device_code`` + ``user_code``.
    2. Print the provider's sign-in message verbatim on stdout, e.g.
       "To sign in, use a web browser to open the page
       https://microsoft.com/devicelogin and enter the code ABCD1234 to
       authenticate."
    3. Poll the token endpoint until the user completes sign-in, declines,
       or the code expires.

See Also:
    :class:`graphme.auth.base.InteractiveStrategy` for the base interface.
    :mod:`graphme.plugins.interactive` for the browser-based alternative.
"""

from __future__ import annotations

import time
from typing import Any, Optional

from graphme.auth.base import InteractiveStrategy
from graphme.auth.identity import PublicClient
from graphme.exceptions import AuthenticationError
from graphme.models import AuthenticationResult, DeviceCodeInfo
from graphme.output import debug, print_data


class DeviceCodeStrategy(InteractiveStrategy):
    """Sign in via the device-code flow.

    The user is shown a short code to enter at a verification URI on any
    device. The strategy blocks, polling the token endpoint at the
    interval the provider asked for, until sign-in completes or the code
    expires (typically after 15 minutes).
    """

    greets_account = True

    @property
    def name(self) -> str:
        return "device_code"

    def acquire(
        self,
        identity: PublicClient,
        scopes: list[str],
        claims: Optional[str] = None,
    ) -> AuthenticationResult:
        """Run the device-code flow and return the resulting token.

        Raises:
            AuthenticationError: If the device code request fails, the user
                declines, the code expires, or polling fails.
        """
        flow = identity.initiate_device_flow(scopes, claims=claims)
        self._display_message(flow)
        token_data = self._poll_for_token(identity, flow)
        return identity.complete(token_data, scopes)

    def _display_message(self, flow: DeviceCodeInfo) -> None:
        """Print the provider's sign-in instructions, unmodified."""
        print_data(flow.message)

    def _poll_for_token(
        self, identity: PublicClient, flow: DeviceCodeInfo
    ) -> dict[str, Any]:
        """Poll the token endpoint until the user authorizes or the code expires.

        Implements the polling rules of :rfc:`8628` section 3.5:
        ``authorization_pending`` keeps polling, ``slow_down`` adds five
        seconds to the interval, and ``authorization_declined`` /
        ``access_denied`` / ``expired_token`` end the flow.

        Returns:
            The token endpoint success body.

        Raises:
            AuthenticationError: If the user declines, the code expires,
                the deadline passes, or another error is returned.
        """
        deadline = time.monotonic() + flow.expires_in
        poll_interval = max(flow.interval, 1)

        while time.monotonic() < deadline:
            time.sleep(poll_interval)

            token_data = identity.device_code_token_request(flow)
            error = token_data.get("error", "")

            if not error and "access_token" in token_data:
                return token_data

            if error == "authorization_pending":
                continue
            elif error == "slow_down":
                poll_interval += 5
                debug(f"Provider asked to slow down; polling every {poll_interval}s")
                continue
            elif error in ("authorization_declined", "access_denied"):
                raise AuthenticationError("Sign-in was declined by the user", error=error)
            elif error in ("expired_token", "code_expired"):
                raise AuthenticationError(
                    "Device code expired -- please try again", error=error
                )
            elif error:
                desc = token_data.get("error_description", error)
                raise AuthenticationError(f"Device code sign-in failed: {desc}", error=error)
            else:
                raise AuthenticationError("Token response missing 'access_token' field")

        raise AuthenticationError("Device code flow timed out -- please try again")
