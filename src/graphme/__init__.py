"""graphme -- sign in against an identity provider and call an API's ``/me`` endpoint.

This package acquires a delegated access token for the signed-in user and
uses it for a single authenticated GET against the "current user" endpoint
of a remote API (Microsoft Graph by default), printing the user's id,
display name and email address.

Two sign-in strategies are available::

    graphme interactive    # browser sign-in (authorization code + PKCE)
    graphme device-code    # device-code flow for headless terminals

Both try the local token cache first and only fall back to user
interaction when the identity provider requires it.

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: Settings-file loading and XDG data paths.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    workflow: The load -> acquire -> call sequence shared by both commands.
"""

__version__ = "0.1.0"
