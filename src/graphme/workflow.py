"""The sequence shared by both sign-in commands.

settings -> token -> one authenticated GET -> printed profile. The only
thing that differs between ``graphme interactive`` and
``graphme device-code`` is the :class:`~graphme.auth.base.InteractiveStrategy`
handed to :func:`run`.
"""

from __future__ import annotations

from typing import Optional

import httpx

from graphme.auth.base import InteractiveStrategy
from graphme.auth.identity import PublicClient
from graphme.auth.manager import TokenAcquirer
from graphme.client import call_api, profile_lines
from graphme.models import AppConfiguration, AuthenticationResult, UserProfile
from graphme.output import OutputFormat, get_output, info, print_data, print_record

PROFILE_HEADER = "-------- User's info from the API --------"


def run(
    config: AppConfiguration,
    strategy: InteractiveStrategy,
    identity: Optional[PublicClient] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> UserProfile:
    """Acquire a token, fetch the current user, and print the result.

    Nothing is printed unless the profile was fetched and deserialised.

    Args:
        config: Loaded settings.
        strategy: Interactive fallback for the token acquirer.
        identity: Protocol client override (tests pass a fake).
        transport: httpx transport override for the API call.

    Returns:
        The fetched :class:`~graphme.models.UserProfile`.

    Raises:
        AuthenticationError: If no token could be acquired.
        ApiError: If the API call fails.
        DeserializationError: If the response lacks the profile fields.
    """
    result = TokenAcquirer(strategy).acquire_token(config, identity=identity)

    profile = call_api(
        result.access_token,
        config.api_base_url,
        config.request,
        transport=transport,
    )

    print_profile(profile, result if strategy.greets_account else None)
    return profile


def print_profile(
    profile: UserProfile, greet: Optional[AuthenticationResult] = None
) -> None:
    """Print the greeting (when *greet* is given) and the three profile fields."""
    if get_output().format == OutputFormat.JSON:
        if greet is not None:
            info(f"Hello {greet.account.username}")
        print_record(profile.model_dump(by_alias=True))
        return

    if greet is not None:
        print_data("")
        print_data(f"Hello {greet.account.username}")
    print_data("")
    print_data(PROFILE_HEADER)
    print_data("")
    for line in profile_lines(profile):
        print_data(line)
