"""Test fixtures for the in-memory card platform."""

from .fake_platform import (
    BASE_URL,
    CF_RAY,
    DEEP_LINK,
    DEFAULT_LINKS,
    FakePlatform,
    StubCredentialProvider,
    error_response,
)

__all__ = [
    "BASE_URL",
    "CF_RAY",
    "DEEP_LINK",
    "DEFAULT_LINKS",
    "FakePlatform",
    "StubCredentialProvider",
    "error_response",
]
