"""Domain-specific exceptions.

Every failure surfaced by the SDK is a ``CardPushError`` tagged with an
``ErrorKind``. Callers branch on ``kind`` instead of on exception subclasses.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Flat taxonomy of registration failures."""

    TRANSPORT = "transport"
    LINK_NOT_FOUND = "link_not_found"
    SERVICE_UNAVAILABLE = "service_unavailable"
    API = "api"
    KEY_GENERATION = "key_generation"
    SHARED_SECRET = "shared_secret"
    ENCRYPTION = "encryption"
    MALFORMED_RESPONSE = "malformed_response"


_RETRYABLE_KINDS = frozenset({ErrorKind.TRANSPORT, ErrorKind.SERVICE_UNAVAILABLE})


class CardPushError(Exception):
    """Raised when any step of the registration pipeline fails.

    Messages never carry card data or key material.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status: Optional[int] = None,
        path: Optional[str] = None,
        cf_ray: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.status = status
        self.path = path
        self.cf_ray = cf_ray
        super().__init__(self._format())

    def _format(self) -> str:
        parts = [f"[{self.kind.value}]"]
        if self.status is not None:
            parts.append(f"HTTP {self.status}")
        if self.path:
            parts.append(self.path)
        return f"{' '.join(parts)}: {self.message}"

    @property
    def is_retryable(self) -> bool:
        """True when a fresh attempt may succeed after a caller-side backoff."""
        return self.kind in _RETRYABLE_KINDS

    @classmethod
    def transport(cls, message: str, *, path: Optional[str] = None) -> "CardPushError":
        return cls(ErrorKind.TRANSPORT, message, path=path)

    @classmethod
    def link_not_found(
        cls, link_name: str, *, path: Optional[str] = None
    ) -> "CardPushError":
        return cls(
            ErrorKind.LINK_NOT_FOUND,
            f"Link '{link_name}' is not advertised by the root resource",
            path=path,
        )

    @classmethod
    def service_unavailable(
        cls,
        message: str,
        *,
        status: int,
        path: Optional[str] = None,
        cf_ray: Optional[str] = None,
    ) -> "CardPushError":
        return cls(
            ErrorKind.SERVICE_UNAVAILABLE,
            message,
            status=status,
            path=path,
            cf_ray=cf_ray,
        )

    @classmethod
    def api(
        cls,
        message: str,
        *,
        status: int,
        path: Optional[str] = None,
        cf_ray: Optional[str] = None,
    ) -> "CardPushError":
        return cls(ErrorKind.API, message, status=status, path=path, cf_ray=cf_ray)

    @classmethod
    def key_generation(cls, message: str) -> "CardPushError":
        return cls(ErrorKind.KEY_GENERATION, message)

    @classmethod
    def shared_secret(cls, message: str) -> "CardPushError":
        return cls(ErrorKind.SHARED_SECRET, message)

    @classmethod
    def encryption(cls, message: str) -> "CardPushError":
        return cls(ErrorKind.ENCRYPTION, message)

    @classmethod
    def malformed_response(
        cls, message: str, *, path: Optional[str] = None
    ) -> "CardPushError":
        return cls(ErrorKind.MALFORMED_RESPONSE, message, path=path)
