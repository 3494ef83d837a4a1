"""Projection of API responses onto :class:`~graphme.models.UserProfile`.

The current-user resource carries many more properties than the three
that are printed; everything else is ignored.
"""

from __future__ import annotations

import httpx
from pydantic import ValidationError

from graphme.exceptions import DeserializationError
from graphme.models import UserProfile


def parse_user_profile(response: httpx.Response) -> UserProfile:
    """Deserialise a current-user response.

    Args:
        response: A successful response from the current-user endpoint.

    Returns:
        The :class:`~graphme.models.UserProfile`.

    Raises:
        DeserializationError: If the body is not a JSON object or lacks
            ``id``, ``displayName`` or ``mail``.
    """
    try:
        data = response.json()
    except ValueError as exc:
        raise DeserializationError(f"Response body is not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise DeserializationError("Response body is not a JSON object")

    try:
        return UserProfile.model_validate(data)
    except ValidationError as exc:
        missing = [str(err["loc"][0]) for err in exc.errors() if err["type"] == "missing"]
        if missing:
            raise DeserializationError(
                f"Response is missing required field(s): {', '.join(missing)}"
            ) from exc
        raise DeserializationError(f"Unexpected response shape: {exc}") from exc


def profile_lines(profile: UserProfile) -> list[str]:
    """Return the ``Id:``, ``Display Name:`` and ``Email:`` lines for *profile*."""
    return [
        f"Id: {profile.id}",
        f"Display Name: {profile.display_name or ''}",
        f"Email: {profile.mail or ''}",
    ]
