"""Token acquirer and strategy registry.

:class:`TokenAcquirer` implements the one sequence every command shares:
try the token cache silently, and when (and only when) that signals
:class:`~graphme.exceptions.InteractionRequiredError`, run the
interactive strategy exactly once, forwarding the claims challenge.

:class:`StrategyRegistry` maps strategy names (``"interactive"``,
``"device_code"``) to :class:`~graphme.auth.base.InteractiveStrategy`
instances. Call :func:`create_default_registry` for one pre-loaded with
the built-in strategies.

See Also:
    :class:`~graphme.auth.identity.PublicClient` -- the protocol client
    both steps run against.
"""

from __future__ import annotations

from typing import Optional

from graphme.auth.base import InteractiveStrategy
from graphme.auth.identity import PublicClient
from graphme.exceptions import InteractionRequiredError
from graphme.models import AppConfiguration, AuthenticationResult
from graphme.output import debug

SCOPES = ["user.read"]
"""Scopes requested for the current-user endpoint."""


class TokenAcquirer:
    """Obtain one access token: silently if possible, interactively otherwise.

    Args:
        strategy: The interactive fallback to use.
        scopes: Scopes to request. Defaults to :data:`SCOPES`.

    Example::

        acquirer = TokenAcquirer(DeviceCodeStrategy())
        result = acquirer.acquire_token(config)
    """

    def __init__(
        self,
        strategy: InteractiveStrategy,
        scopes: Optional[list[str]] = None,
    ) -> None:
        self._strategy = strategy
        self._scopes = list(scopes) if scopes is not None else list(SCOPES)

    def acquire_token(
        self,
        config: AppConfiguration,
        identity: Optional[PublicClient] = None,
    ) -> AuthenticationResult:
        """Acquire a token for the configured client and authority.

        Args:
            config: Loaded settings.
            identity: Protocol client to use. Built from *config* when
                omitted.

        Returns:
            The :class:`~graphme.models.AuthenticationResult`.

        Raises:
            AuthenticationError: If the interactive step fails, or the
                silent step fails for any reason other than needing the
                user.
        """
        if identity is None:
            identity = PublicClient(
                config.client_id,
                config.authority,
                timeout=config.request.timeout,
            )
        debug(f"Authority: {identity.authority}")

        try:
            return self._acquire_silent(identity)
        except InteractionRequiredError as exc:
            debug(f"{exc}; falling back to {self._strategy.name}")
            return self._strategy.acquire(identity, self._scopes, claims=exc.claims)

    def _acquire_silent(self, identity: PublicClient) -> AuthenticationResult:
        accounts = identity.get_accounts()
        if not accounts:
            raise InteractionRequiredError("No cached account")
        return identity.acquire_token_silent(self._scopes, accounts[0])


class StrategyRegistry:
    """Registry of interactive strategies, keyed by :attr:`~InteractiveStrategy.name`."""

    def __init__(self) -> None:
        self._strategies: dict[str, InteractiveStrategy] = {}

    def register(self, strategy: InteractiveStrategy) -> None:
        """Register *strategy*, replacing any strategy with the same name."""
        self._strategies[strategy.name] = strategy

    def get(self, name: str) -> InteractiveStrategy:
        """Retrieve a registered strategy by name.

        Raises:
            KeyError: If no strategy is registered under *name*.
        """
        strategy = self._strategies.get(name)
        if strategy is None:
            available = ", ".join(sorted(self._strategies)) or "(none)"
            raise KeyError(
                f"No sign-in strategy registered as '{name}'. Available: {available}"
            )
        return strategy

    def names(self) -> list[str]:
        """Return the registered strategy names, sorted."""
        return sorted(self._strategies)


def create_default_registry() -> StrategyRegistry:
    """Create a :class:`StrategyRegistry` with the built-in strategies.

    - ``interactive`` -- browser sign-in (authorization code + PKCE).
    - ``device_code`` -- device-code flow.
    """
    from graphme.plugins.device_code import DeviceCodeStrategy
    from graphme.plugins.interactive import BrowserStrategy

    registry = StrategyRegistry()
    registry.register(BrowserStrategy())
    registry.register(DeviceCodeStrategy())
    return registry
