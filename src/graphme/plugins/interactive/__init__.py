"""Browser sign-in strategy (authorization code + PKCE).

Implements the ``interactive`` strategy: the system browser is opened on
the authority's sign-in page and the redirect is received on a loopback
port.

See Also:
    :class:`~graphme.plugins.interactive.plugin.BrowserStrategy`
"""

from graphme.plugins.interactive.plugin import BrowserStrategy, generate_pkce_pair

__all__ = ["BrowserStrategy", "generate_pkce_pair"]
