"""Entry point for host applications registering cards with the platform."""

from __future__ import annotations

from typing import Dict, Optional, Type
from types import TracebackType

import httpx

from .application.use_cases.registration import CardRegistrationService
from .domain.entities import CardData, DeepLinkResult, HealthStatus, LinkEntry
from .domain.shared import CredentialProvider, TokenFetcher
from .envs.sdk_env import Settings, get_settings
from .infrastructure.auth.token_cache import CachedTokenProvider
from .infrastructure.http.http_client import HttpTransport
from .infrastructure.platform_client import PlatformClient


class CardPushClient:
    """Synchronous SDK client.

    Wires token cache, transport, link directory and registration service from
    ``Settings``. Safe to share between threads; each ``register_card`` call
    uses its own ephemeral keys.
    """

    def __init__(
        self,
        fetch_token: Optional[TokenFetcher] = None,
        *,
        settings: Optional[Settings] = None,
        credentials: Optional[CredentialProvider] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if credentials is None:
            if fetch_token is None:
                raise ValueError("Either fetch_token or credentials is required")
            credentials = CachedTokenProvider(fetch_token)
        self.settings = settings or get_settings()
        self._http = HttpTransport(
            self.settings.base_url,
            credentials,
            timeout=self.settings.timeout_seconds,
            user_agent=self.settings.user_agent,
            transport=transport,
        )
        self._platform = PlatformClient(self._http)
        self._service = CardRegistrationService(
            self._platform, credentials, self.settings.key_derivation
        )

    def register_card(self, card_data: CardData) -> DeepLinkResult:
        return self._service.register_card(card_data)

    def health_check(self) -> HealthStatus:
        return self._service.health_check()

    def refresh_links(self) -> Dict[str, LinkEntry]:
        return self._platform.get_root()

    def close(self) -> None:
        self._platform.close()

    def __enter__(self) -> "CardPushClient":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()
