"""Abstract base class for interactive sign-in strategies.

Silent acquisition is the same for every command; what differs is the
single interactive fallback that runs when the provider needs the user.
Each fallback is an :class:`InteractiveStrategy`.

To implement a new strategy, subclass :class:`InteractiveStrategy`, set
the :attr:`~InteractiveStrategy.name` property, and implement
:meth:`~InteractiveStrategy.acquire`.

See Also:
    :mod:`graphme.auth.manager` for strategy registration and the
    silent-then-interactive sequence.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from graphme.models import AuthenticationResult

if TYPE_CHECKING:
    from graphme.auth.identity import PublicClient


class InteractiveStrategy(ABC):
    """Abstract base class for interactive sign-in strategies.

    Strategies are registered with
    :class:`~graphme.auth.manager.StrategyRegistry` and looked up by
    :attr:`name` at runtime.
    """

    greets_account: bool = False
    """Whether the workflow prints ``Hello <username>`` before the profile."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the unique identifier this strategy is registered under.

        Returns:
            A lowercase string such as ``"interactive"`` or ``"device_code"``.
        """
        ...

    @abstractmethod
    def acquire(
        self,
        identity: PublicClient,
        scopes: list[str],
        claims: Optional[str] = None,
    ) -> AuthenticationResult:
        """Involve the user to obtain a token for *scopes*.

        Args:
            identity: Client for the authority being signed in to.
            scopes: Scopes to request.
            claims: Claims challenge from the failed silent attempt, to be
                forwarded to the provider.

        Returns:
            The :class:`~graphme.models.AuthenticationResult` for the
            signed-in user.

        Raises:
            AuthenticationError: If the user cannot be signed in.
        """
        ...
