"""Ephemeral ECDH key exchange with the platform."""

from __future__ import annotations

import logging

from ...crypto.keys import EphemeralKeyPair, generate_ephemeral_key_pair
from ...domain.entities import ExchangeResult
from ...domain.errors import CardPushError
from ...infrastructure.link_directory import ENCRYPTION_KEYS
from ...infrastructure.platform_client import PlatformClient

logger = logging.getLogger(__name__)


def begin_exchange(platform: PlatformClient) -> tuple[EphemeralKeyPair, ExchangeResult]:
    """Generate an ephemeral key pair and trade public keys with the platform.

    Returns:
        The key pair (owned by the caller's attempt) and the server's half.

    Raises:
        CardPushError: KEY_GENERATION, MALFORMED_RESPONSE, or any transport/API
            kind raised by the platform call.
    """
    key_pair = generate_ephemeral_key_pair()
    try:
        response = platform.exchange_keys(key_pair.public_key_hex)
        if not response.server_public_key or not response.key_id:
            raise CardPushError.malformed_response(
                f"{ENCRYPTION_KEYS} response is missing serverPublicKey or keyId"
            )
        try:
            server_public_key = bytes.fromhex(response.server_public_key)
        except ValueError as e:
            raise CardPushError.malformed_response(
                f"{ENCRYPTION_KEYS} serverPublicKey is not hex encoded"
            ) from e
    except BaseException:
        key_pair.discard()
        raise

    if not response.active:
        logger.warning("Platform returned inactive encryption key %s", response.key_id)
    return key_pair, ExchangeResult(
        server_public_key=server_public_key,
        key_id=response.key_id,
        active=response.active,
    )
