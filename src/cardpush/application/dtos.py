"""Data Transfer Objects for the platform wire format."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HalLinkDTO(BaseModel):
    href: str = ""


class RootResponseDTO(BaseModel):
    """Root resource: a HAL link collection keyed by relation name."""

    links: Dict[str, HalLinkDTO] = Field(
        default_factory=dict, validation_alias=AliasChoices("_links", "links")
    )


class ExchangeKeysRequestDTO(_WireModel):
    """Client sends its ephemeral public key (uncompressed point, hex)."""

    client_public_key: str


class ExchangeKeysResponseDTO(_WireModel):
    """Server public key (hex) and the id the server files it under."""

    server_public_key: Optional[str] = None
    key_id: Optional[str] = None
    active: bool = True


class RegisterCardRequestDTO(_WireModel):
    """Encrypted card envelope; binary fields are unpadded base64url."""

    key_id: str
    iv: str
    ciphertext: str
    auth_tag: str


class ErrorResponseDTO(BaseModel):
    """Error body returned by the platform for non-2xx responses."""

    path: Optional[str] = None
    status: Optional[int] = None
    message: Optional[str] = None
