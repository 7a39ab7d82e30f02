"""Protocol interface for bearer token providers.

The SDK never acquires OAuth tokens itself. It consumes whatever the host
application plugs in here and asks for a fresh token when the platform
answers 401.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol


class CredentialProvider(Protocol):
    """Supplies the bearer token attached to every platform request."""

    def get_token(self) -> str:
        """Return the current bearer token, fetching one if none is cached."""
        ...

    def refresh_token(self, stale_token: Optional[str] = None) -> str:
        """Return a token newer than ``stale_token``.

        Args:
            stale_token: The token the platform just rejected. Implementations
                use it to detect that another caller already refreshed.

        Returns:
            A bearer token
        """
        ...


# Black-box token acquisition (client credentials, device flow, ...) supplied by the host
TokenFetcher = Callable[[], str]
