"""Built-in CLI sub-commands for graphme.

* :mod:`~graphme.commands.signin` -- ``interactive`` and ``device-code``:
  sign in and print the current user's profile.
* :mod:`~graphme.commands.accounts` -- ``accounts`` and ``logout``:
  inspect and prune the token cache.

Each module exports plain callback functions registered directly on the
root app in :mod:`graphme.app`.
"""
