"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~graphme.exceptions.GraphmeError` subclass.
Shell wrappers can inspect the exit code to tell a sign-in failure from
an API failure without parsing stderr.

Example::

    $ graphme device-code
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the device code expired
"""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred, or the settings file is unusable."""

EXIT_AUTH_FAILURE = 3
"""Token acquisition failed."""

EXIT_API_ERROR = 5
"""The remote API answered with a non-success HTTP status."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred talking to the remote API."""

EXIT_RESPONSE_ERROR = 7
"""The remote API's response did not have the expected shape."""

EXIT_CANCELLED = 130
"""The user interrupted the command (Ctrl-C)."""
