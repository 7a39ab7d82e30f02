from __future__ import annotations

import logging
import threading
from typing import Optional

from ...domain.errors import CardPushError
from ...domain.shared import TokenFetcher

logger = logging.getLogger(__name__)


class CachedTokenProvider:
    """Caches the token returned by a host-supplied fetcher.

    - Fetches lazily on first use.
    - Coalesces concurrent refreshes into a single upstream fetch: a caller
      holding a stale token that lost the race gets the token the winner
      fetched.
    """

    def __init__(self, fetch_token: TokenFetcher) -> None:
        self._fetch_token = fetch_token
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    def get_token(self) -> str:
        token = self._token
        if token is not None:
            return token
        with self._lock:
            if self._token is None:
                self._token = self._fetch()
            return self._token

    def refresh_token(self, stale_token: Optional[str] = None) -> str:
        with self._lock:
            if self._token is not None and self._token != stale_token:
                # Someone else refreshed while we waited for the lock
                return self._token
            self._token = self._fetch()
            return self._token

    def _fetch(self) -> str:
        token = self._fetch_token()
        if not token:
            raise CardPushError.transport("Credential provider returned an empty token")
        logger.debug("Fetched new bearer token")
        return token
