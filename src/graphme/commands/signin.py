"""Sign-in commands -- fetch the current user's profile.

Both commands run :func:`graphme.workflow.run`; they differ only in the
interactive fallback used when no cached token can be used silently.

Typical usage::

    graphme interactive                # browser sign-in
    graphme device-code                # sign in from another device
    graphme -s ./other.json device-code
"""

from __future__ import annotations

import typer

from graphme.exceptions import GraphmeError
from graphme.output import error


def interactive_command(ctx: typer.Context) -> None:
    """Sign in with the system browser and print your profile.

    A cached sign-in is reused without opening the browser.

    Example::

        graphme interactive
    """
    _sign_in(ctx, "interactive")


def device_code_command(ctx: typer.Context) -> None:
    """Sign in with a device code and print your profile.

    Prints a URL and a code to enter on any device with a browser, then
    waits for the sign-in to complete. A cached sign-in is reused without
    prompting.

    Example::

        graphme device-code
    """
    _sign_in(ctx, "device_code")


def _sign_in(ctx: typer.Context, strategy_name: str) -> None:
    """Resolve settings and run the workflow with the named strategy.

    Raises:
        typer.Exit: With the error's exit code if any step fails.
    """
    from graphme.auth import create_default_registry
    from graphme.config import resolve_config
    from graphme.workflow import run

    obj = ctx.obj or {}
    try:
        config = resolve_config(obj.get("settings"), obj.get("api_url"))
        strategy = create_default_registry().get(strategy_name)
        run(config, strategy)
    except GraphmeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
