from __future__ import annotations

import os
from urllib.parse import urlparse

from pydantic import BaseModel, field_validator

from ..crypto.encryption import KeyDerivation


class Settings(BaseModel):
    """Typed SDK settings built from environment variables."""

    base_url: str
    timeout_seconds: float = 10.0
    key_derivation: KeyDerivation = KeyDerivation.HKDF_SHA256
    user_agent: str = "cardpush-python/1.0.0"

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v:
            raise ValueError("Platform base URL cannot be empty")
        parsed = urlparse(v)
        if parsed.scheme not in {"http", "https"}:
            raise ValueError("Platform base URL must start with http:// or https://")
        if not parsed.netloc:
            raise ValueError("Platform base URL must include a host")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v


def get_settings() -> Settings:
    """Return typed settings instance sourced from env vars."""
    base_url = os.environ.get("CARDPUSH_BASE_URL")
    if not base_url:
        raise ValueError("CARDPUSH_BASE_URL is required")
    return Settings(
        base_url=base_url,
        timeout_seconds=float(os.environ.get("CARDPUSH_TIMEOUT_SECONDS", "10.0")),
        key_derivation=KeyDerivation(
            os.environ.get("CARDPUSH_KEY_DERIVATION", KeyDerivation.HKDF_SHA256.value)
        ),
    )
