"""Built-in interactive sign-in strategies.

Each sub-package provides one :class:`~graphme.auth.base.InteractiveStrategy`:

- :mod:`graphme.plugins.interactive` -- browser sign-in.
- :mod:`graphme.plugins.device_code` -- device-code flow.
"""
