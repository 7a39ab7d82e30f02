"""ECDH key agreement and AES-GCM encryption of card data.

The shared secret is derived from the client's ephemeral private key and the
server's public key, then used for AES-256-GCM over the canonical JSON form
of the card. The key id returned by the key exchange is bound to the
ciphertext as associated data, so an envelope cannot be replayed under a
different server key.
"""

from __future__ import annotations

import base64
import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from types import TracebackType
from typing import Optional, Type

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ..domain.entities import CardData
from ..domain.errors import CardPushError
from .keys import load_public_key

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
IV_LENGTH = 12
TAG_LENGTH = 16
HKDF_INFO = b"cardpush-card-encryption-v1"


class KeyDerivation(str, Enum):
    """How the raw ECDH agreement becomes the AES key."""

    RAW = "raw"
    HKDF_SHA256 = "hkdf-sha256"


class SharedSecret:
    """Symmetric key bytes for a single registration.

    Held in a ``bytearray`` so ``wipe()`` can zero them in place. Usable as a
    context manager that wipes on exit.
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise CardPushError.shared_secret(
                f"Shared secret must be {KEY_LENGTH} bytes, got {len(key)}"
            )
        self._key = bytearray(key)
        self._wiped = False

    @property
    def wiped(self) -> bool:
        return self._wiped

    def key_bytes(self) -> bytes:
        if self._wiped:
            raise CardPushError.encryption("Shared secret was already wiped")
        return bytes(self._key)

    def wipe(self) -> None:
        for i in range(len(self._key)):
            self._key[i] = 0
        self._wiped = True

    def __enter__(self) -> "SharedSecret":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return f"SharedSecret(wiped={self._wiped})"


@dataclass(frozen=True)
class EncryptedEnvelope:
    """AES-GCM output plus the key id the server needs to decrypt it."""

    key_id: str
    iv: bytes
    ciphertext: bytes = field(repr=False)
    auth_tag: bytes

    def to_wire(self) -> dict[str, str]:
        return {
            "keyId": self.key_id,
            "iv": b64url_encode(self.iv),
            "ciphertext": b64url_encode(self.ciphertext),
            "authTag": b64url_encode(self.auth_tag),
        }

    @classmethod
    def from_wire(cls, data: dict) -> "EncryptedEnvelope":
        return cls(
            key_id=data["keyId"],
            iv=b64url_decode(data["iv"]),
            ciphertext=b64url_decode(data["ciphertext"]),
            auth_tag=b64url_decode(data["authTag"]),
        )


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def json_to_bytes(data: dict) -> bytes:
    """Serialize dict to canonical JSON bytes."""
    return json.dumps(data, separators=(",", ":"), sort_keys=True).encode("utf-8")


def card_to_bytes(card_data: CardData) -> bytes:
    """Canonical byte form of a card: camelCase keys, unset fields omitted."""
    return json_to_bytes(card_data.model_dump(by_alias=True, exclude_none=True))


def derive_shared_secret(
    server_public_key: bytes,
    private_key: ec.EllipticCurvePrivateKey,
    kdf: KeyDerivation = KeyDerivation.HKDF_SHA256,
) -> SharedSecret:
    """Run ECDH against the server key and derive the AES-256 key.

    Args:
        server_public_key: Server key as an X9.62 point or DER SubjectPublicKeyInfo
        private_key: The attempt's ephemeral private key
        kdf: RAW uses the 32-byte agreement directly; HKDF_SHA256 expands it
            with no salt and a fixed info label

    Raises:
        CardPushError: SHARED_SECRET if the server key is malformed or off-curve.
    """
    try:
        peer_key = load_public_key(server_public_key)
        agreed = private_key.exchange(ec.ECDH(), peer_key)
    except (ValueError, TypeError) as e:
        raise CardPushError.shared_secret(
            "Server public key is malformed or not on P-256"
        ) from e

    if kdf is KeyDerivation.RAW:
        return SharedSecret(agreed)
    hkdf = HKDF(algorithm=hashes.SHA256(), length=KEY_LENGTH, salt=None, info=HKDF_INFO)
    return SharedSecret(hkdf.derive(agreed))


def encrypt(
    card_data: CardData,
    shared_secret: SharedSecret,
    key_id: str,
) -> EncryptedEnvelope:
    """Encrypt the card under the shared secret with a fresh random IV.

    Raises:
        CardPushError: ENCRYPTION on any cipher failure or a wiped secret.
    """
    if not key_id:
        raise CardPushError.encryption("A key id is required to encrypt card data")
    plaintext = card_to_bytes(card_data)
    iv = os.urandom(IV_LENGTH)
    try:
        sealed = AESGCM(shared_secret.key_bytes()).encrypt(
            iv, plaintext, key_id.encode("utf-8")
        )
    except (ValueError, TypeError, OverflowError) as e:
        raise CardPushError.encryption(
            f"Failed to encrypt card data: {type(e).__name__}"
        ) from e

    logger.debug("Encrypted card payload (%d bytes) for key %s", len(plaintext), key_id)
    return EncryptedEnvelope(
        key_id=key_id,
        iv=iv,
        ciphertext=sealed[:-TAG_LENGTH],
        auth_tag=sealed[-TAG_LENGTH:],
    )


def decrypt(envelope: EncryptedEnvelope, shared_secret: SharedSecret) -> bytes:
    """Inverse of ``encrypt``; what the platform does with its half of the secret.

    Raises:
        CardPushError: ENCRYPTION if the tag does not verify.
    """
    try:
        return AESGCM(shared_secret.key_bytes()).decrypt(
            envelope.iv,
            envelope.ciphertext + envelope.auth_tag,
            envelope.key_id.encode("utf-8"),
        )
    except (InvalidTag, ValueError) as e:
        raise CardPushError.encryption(
            "Envelope failed authentication: invalid key or corrupted data"
        ) from e
