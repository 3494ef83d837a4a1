"""Token acquisition for graphme.

The main entry points are:

- :class:`TokenAcquirer` -- silent acquisition from the token cache with a
  single interactive fallback.
- :class:`InteractiveStrategy` -- abstract base class for the fallbacks.
- :func:`create_default_registry` -- a :class:`StrategyRegistry` pre-loaded
  with the browser and device-code strategies.
- :class:`PublicClient` -- the OAuth2 public client for one authority.
- :class:`TokenCache` -- persistent, per-user token storage on disk.

Typical usage::

    from graphme.auth import TokenAcquirer, create_default_registry

    strategy = create_default_registry().get("device_code")
    result = TokenAcquirer(strategy).acquire_token(config)
"""

from graphme.auth.base import InteractiveStrategy
from graphme.auth.identity import PublicClient
from graphme.auth.manager import (
    SCOPES,
    StrategyRegistry,
    TokenAcquirer,
    create_default_registry,
)
from graphme.auth.token_cache import TokenCache, TokenCacheEntry

__all__ = [
    "InteractiveStrategy",
    "PublicClient",
    "SCOPES",
    "StrategyRegistry",
    "TokenAcquirer",
    "TokenCache",
    "TokenCacheEntry",
    "create_default_registry",
]
