"""Card registration domain entities."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class Address(_CamelModel):
    """Billing address associated with a card."""

    street1: Optional[str] = None
    street2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: Optional[str] = None


class CardData(_CamelModel):
    """Sensitive card payload. Only ever leaves the process encrypted."""

    pan: str = Field(repr=False)
    cvv: Optional[str] = Field(default=None, repr=False)
    exp_month: Optional[int] = Field(default=None, ge=1, le=12)
    exp_year: Optional[int] = Field(default=None, ge=2000, le=2100)
    name: Optional[str] = None
    address: Optional[Address] = None

    @field_validator("pan")
    @classmethod
    def validate_pan(cls, v: str) -> str:
        if not v.isdigit() or not 12 <= len(v) <= 19:
            raise ValueError("PAN must be 12 to 19 digits")
        return v

    @field_validator("cvv")
    @classmethod
    def validate_cvv(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and (not v.isdigit() or len(v) not in (3, 4)):
            raise ValueError("CVV must be 3 or 4 digits")
        return v

    @property
    def masked_pan(self) -> str:
        return f"{'*' * (len(self.pan) - 4)}{self.pan[-4:]}"


class LinkEntry(BaseModel):
    """A named hyperlink advertised by the root resource."""

    model_config = ConfigDict(frozen=True)

    name: str
    href: str = Field(min_length=1)


class ExchangeResult(BaseModel):
    """Server half of the key exchange."""

    model_config = ConfigDict(frozen=True)

    server_public_key: bytes = Field(repr=False)
    key_id: str
    active: bool = True


class DeepLinkResult(_CamelModel):
    """Deep-link(s) into the companion app for the registered card."""

    deep_link_url: Optional[str] = None
    deep_link_url_ios: Optional[str] = None
    deep_link_url_android: Optional[str] = None
    push_id: Optional[str] = None

    @model_validator(mode="after")
    def require_a_link(self) -> "DeepLinkResult":
        if not (
            self.deep_link_url or self.deep_link_url_ios or self.deep_link_url_android
        ):
            raise ValueError("Registration response carries no deep link")
        return self


class HealthStatus(_CamelModel):
    """Platform health as reported by the health link."""

    health_status: str
