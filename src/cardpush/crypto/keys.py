from __future__ import annotations

from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ..domain.errors import CardPushError

CURVE = ec.SECP256R1()

_POINT_PREFIXES = {0x02: 33, 0x03: 33, 0x04: 65}


class EphemeralKeyPair:
    """Single-use P-256 key pair owned by one registration attempt.

    ``discard()`` drops the private key reference; any later use fails.
    """

    def __init__(self, private_key: ec.EllipticCurvePrivateKey) -> None:
        self._private_key: Optional[ec.EllipticCurvePrivateKey] = private_key
        self._public_bytes = encode_public_key(private_key.public_key())

    @property
    def private_key(self) -> ec.EllipticCurvePrivateKey:
        if self._private_key is None:
            raise CardPushError.key_generation("Ephemeral key pair was already discarded")
        return self._private_key

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_bytes

    @property
    def public_key_hex(self) -> str:
        return self._public_bytes.hex()

    @property
    def discarded(self) -> bool:
        return self._private_key is None

    def discard(self) -> None:
        self._private_key = None

    def __repr__(self) -> str:
        state = "discarded" if self.discarded else "live"
        return f"EphemeralKeyPair({state})"


def generate_ephemeral_key_pair() -> EphemeralKeyPair:
    try:
        return EphemeralKeyPair(ec.generate_private_key(CURVE))
    except (ValueError, TypeError) as e:
        raise CardPushError.key_generation(
            f"Failed to generate ephemeral key: {type(e).__name__}"
        ) from e


def encode_public_key(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Uncompressed X9.62 point (0x04 || X || Y)."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )


def load_public_key(data: bytes) -> ec.EllipticCurvePublicKey:
    """Load a P-256 public key from an X9.62 point or DER SubjectPublicKeyInfo.

    Raises:
        ValueError: If the bytes are not a valid point on P-256.
    """
    if data and _POINT_PREFIXES.get(data[0]) == len(data):
        return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, data)
    try:
        public_key = serialization.load_der_public_key(data)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise ValueError("not an X9.62 point or DER public key") from e
    if not isinstance(public_key, ec.EllipticCurvePublicKey) or not isinstance(
        public_key.curve, ec.SECP256R1
    ):
        raise ValueError("public key is not on P-256")
    return public_key
