"""Use case orchestrating secure card registration."""

from __future__ import annotations

import logging
from enum import Enum
from types import TracebackType
from typing import Optional, Type

from ...crypto.encryption import (
    EncryptedEnvelope,
    KeyDerivation,
    SharedSecret,
    derive_shared_secret,
    encrypt,
)
from ...crypto.keys import EphemeralKeyPair
from ...domain.entities import CardData, DeepLinkResult, ExchangeResult, HealthStatus
from ...domain.shared import CredentialProvider
from ...infrastructure.platform_client import PlatformClient
from .key_exchange import begin_exchange

logger = logging.getLogger(__name__)


class RegistrationState(str, Enum):
    INIT = "init"
    TOKEN_READY = "token_ready"
    KEYS_EXCHANGED = "keys_exchanged"
    SECRET_DERIVED = "secret_derived"
    ENCRYPTED = "encrypted"
    SUBMITTED = "submitted"
    DONE = "done"
    FAILED = "failed"


_ORDER = list(RegistrationState)


class RegistrationAttempt:
    """Owns the key material of one registration and disposes of it on exit.

    States only move forward; FAILED and DONE are terminal.
    """

    def __init__(self) -> None:
        self.state = RegistrationState.INIT
        self.key_pair: Optional[EphemeralKeyPair] = None
        self.exchange: Optional[ExchangeResult] = None
        self.shared_secret: Optional[SharedSecret] = None
        self.envelope: Optional[EncryptedEnvelope] = None

    def advance(self, state: RegistrationState) -> None:
        if self.state in (RegistrationState.DONE, RegistrationState.FAILED):
            raise RuntimeError(f"Registration attempt already {self.state.value}")
        if _ORDER.index(state) <= _ORDER.index(self.state):
            raise RuntimeError(
                f"Cannot move registration from {self.state.value} to {state.value}"
            )
        self.state = state

    def dispose(self) -> None:
        if self.shared_secret is not None:
            self.shared_secret.wipe()
        if self.key_pair is not None:
            self.key_pair.discard()
        self.shared_secret = None
        self.key_pair = None

    def __enter__(self) -> "RegistrationAttempt":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        if exc_type is not None:
            logger.warning(
                "Card registration failed in state %s: %s", self.state.value, exc_val
            )
            self.state = RegistrationState.FAILED
        self.dispose()


class CardRegistrationService:
    """Service orchestrating the card registration flow."""

    def __init__(
        self,
        platform: PlatformClient,
        credentials: CredentialProvider,
        key_derivation: KeyDerivation = KeyDerivation.HKDF_SHA256,
    ) -> None:
        self.platform = platform
        self.credentials = credentials
        self.key_derivation = key_derivation

    def register_card(self, card_data: CardData) -> DeepLinkResult:
        with RegistrationAttempt() as attempt:
            return self._run(attempt, card_data)

    def _run(self, attempt: RegistrationAttempt, card_data: CardData) -> DeepLinkResult:
        self.credentials.get_token()
        attempt.advance(RegistrationState.TOKEN_READY)

        attempt.key_pair, attempt.exchange = begin_exchange(self.platform)
        attempt.advance(RegistrationState.KEYS_EXCHANGED)

        attempt.shared_secret = derive_shared_secret(
            attempt.exchange.server_public_key,
            attempt.key_pair.private_key,
            self.key_derivation,
        )
        attempt.advance(RegistrationState.SECRET_DERIVED)

        attempt.envelope = encrypt(card_data, attempt.shared_secret, attempt.exchange.key_id)
        attempt.shared_secret.wipe()
        attempt.advance(RegistrationState.ENCRYPTED)

        result = self.platform.register_card(attempt.envelope)
        attempt.advance(RegistrationState.SUBMITTED)

        logger.info("Registered card under key %s", attempt.exchange.key_id)
        attempt.advance(RegistrationState.DONE)
        return result

    def health_check(self) -> HealthStatus:
        return self.platform.get_health()
