"""Exception hierarchy for graphme.

All exceptions inherit from :class:`GraphmeError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`graphme.exit_codes`.
The top-level error handler in :func:`graphme.app.main` catches
``GraphmeError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    GraphmeError (exit 1)
    +-- ConfigurationError          (exit 1)
    +-- AuthenticationError         (exit 3)
    |   +-- InteractionRequiredError (exit 3, recovered by the acquirer)
    +-- ApiError                    (exit 5)
    |   +-- ApiConnectionError      (exit 6)
    +-- DeserializationError        (exit 7)
"""

from __future__ import annotations

from typing import Optional

from graphme.exit_codes import (
    EXIT_API_ERROR,
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_RESPONSE_ERROR,
)


class GraphmeError(Exception):
    """Base exception for all graphme errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(GraphmeError):
    """Raised when the settings file is missing, malformed, or incomplete."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthenticationError(GraphmeError):
    """Raised when a token cannot be obtained.

    Covers every failure of the interactive and device-code steps
    (expired code, denied consent, network failure) and every failure of
    silent acquisition that is not an :class:`InteractionRequiredError`.

    Args:
        message: Human-readable error description.
        error: The provider's OAuth2 ``error`` code, when there is one.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.error = error


class InteractionRequiredError(AuthenticationError):
    """Silent acquisition cannot succeed without the user.

    Raised when there is no cached account, the cached account has no
    refresh token, or the token endpoint answers with one of the
    interaction-required error codes. The token acquirer recovers from
    this by running exactly one interactive strategy.

    Args:
        message: Human-readable reason.
        error: The provider's ``error`` code, if the condition came from
            the token endpoint.
        claims: Claims challenge the next interactive request must carry.
    """

    def __init__(
        self,
        message: str,
        error: Optional[str] = None,
        claims: Optional[str] = None,
    ):
        super().__init__(message, error=error)
        self.claims = claims


class ApiError(GraphmeError):
    """Raised when the remote API answers with a non-success status.

    Args:
        message: Human-readable error description.
        status_code: The HTTP status code, or ``None`` for network errors.
    """

    exit_code = EXIT_API_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ApiConnectionError(ApiError):
    """Raised on network-level failures (timeout, DNS, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class DeserializationError(GraphmeError):
    """Raised when the API response lacks the fields the profile needs."""

    exit_code = EXIT_RESPONSE_ERROR
