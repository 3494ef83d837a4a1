"""HTTP client module for graphme.

Provides :class:`ApiClient`, which wraps :mod:`httpx` with bearer-token
injection and error mapping, and :func:`call_api`, which performs the one
current-user request the workflow needs.

Example::

    from graphme.client import call_api

    profile = call_api(result.access_token, config.api_base_url)
"""

from graphme.client.response import parse_user_profile, profile_lines
from graphme.client.sync_client import ApiClient, BearerTokenAuth, call_api

__all__ = [
    "ApiClient",
    "BearerTokenAuth",
    "call_api",
    "parse_user_profile",
    "profile_lines",
]
