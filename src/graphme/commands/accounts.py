"""Token cache commands -- list and remove cached sign-ins.

Typical workflow::

    graphme accounts                 # who is signed in
    graphme logout alice@contoso.com # forget one account
    graphme logout --force           # forget everyone, no prompt
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import typer

from graphme.output import info, print_table, success


def accounts_command() -> None:
    """List the accounts in the token cache.

    Prints a table with each cached account's username, tenant, authority,
    client id and access-token status. Tokens themselves are never shown.

    Example::

        graphme accounts
    """
    from graphme.auth.token_cache import TokenCache

    cache = TokenCache()
    entries = cache.load()
    if not entries:
        info("No cached accounts.")
        return

    now = datetime.now(timezone.utc)
    headers = ["Username", "Tenant", "Authority", "Client ID", "Access Token"]
    rows: list[list[str]] = []
    for entry in entries:
        status = "expired" if entry.is_expired(now) else "valid"
        if entry.refresh_token:
            status += ", renewable"
        rows.append([
            entry.account.username,
            entry.account.tenant_id or "-",
            entry.authority,
            entry.client_id,
            status,
        ])

    print_table(headers, rows, title="Cached Accounts")


def logout_command(
    ctx: typer.Context,
    username: Optional[str] = typer.Argument(
        None, help="Account to remove. Omit to remove every cached account."
    ),
) -> None:
    """Remove cached tokens so the next sign-in asks the user again.

    Asks for confirmation unless the ``--force`` flag is active.

    Example::

        graphme logout alice@contoso.com
        graphme logout --force
    """
    from graphme.auth.token_cache import TokenCache

    cache = TokenCache()
    entries = cache.load()
    if username is not None:
        entries = [e for e in entries if e.account.username.lower() == username.lower()]
    if not entries:
        info(f'No cached tokens for "{username}".' if username else "No cached accounts.")
        return

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        target = f'"{username}"' if username else f"all {len(entries)} cached account(s)"
        confirmed = typer.confirm(f"Remove cached tokens for {target}?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    removed = cache.remove(username)
    success(f"Removed {removed} cached account(s).")
