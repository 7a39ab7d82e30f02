from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, TypeVar
from types import TracebackType

from pydantic import BaseModel, ValidationError

from ..application.dtos import ExchangeKeysRequestDTO, ExchangeKeysResponseDTO
from ..crypto.encryption import EncryptedEnvelope
from ..domain.entities import DeepLinkResult, HealthStatus, LinkEntry
from ..domain.errors import CardPushError
from . import link_directory as rel
from .http.http_client import ApiResult, HttpTransport
from .http.status import raise_for_result
from .link_directory import LinkDirectory

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class PlatformClient:
    """Client for the card platform's link-addressed endpoints.

    Every call resolves its URL through the link directory. A 404 on a
    resolved link refreshes the directory and retries that call once.
    """

    def __init__(self, transport: HttpTransport, links: Optional[LinkDirectory] = None) -> None:
        self._transport = transport
        self._links = links or LinkDirectory(transport)

    @property
    def links(self) -> LinkDirectory:
        return self._links

    def get_root(self) -> Dict[str, LinkEntry]:
        return self._links.refresh()

    def get_health(self) -> HealthStatus:
        result = self._call_link("GET", rel.HEALTH)
        return self._parse(result, HealthStatus)

    def exchange_keys(self, client_public_key_hex: str) -> ExchangeKeysResponseDTO:
        dto = ExchangeKeysRequestDTO(client_public_key=client_public_key_hex)
        result = self._call_link(
            "POST", rel.ENCRYPTION_KEYS, dto.model_dump(by_alias=True)
        )
        return self._parse(result, ExchangeKeysResponseDTO)

    def register_card(self, envelope: EncryptedEnvelope) -> DeepLinkResult:
        result = self._call_link("POST", rel.PAYMENT_CARDS, envelope.to_wire())
        return self._parse(result, DeepLinkResult)

    def _call_link(
        self,
        method: str,
        link_name: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> ApiResult:
        href = self._links.resolve(link_name)
        result = self._transport.execute(method, href, body)
        if result.status == 404:
            logger.info("Link '%s' returned 404; refreshing links and retrying", link_name)
            self._links.invalidate(href)
            href = self._links.resolve(link_name)
            result = self._transport.execute(method, href, body)
        if result.cf_ray:
            logger.info("%s %s -> %s CF-RAY=%s", method, link_name, result.status, result.cf_ray)
        return raise_for_result(result)

    def _parse(self, result: ApiResult, model: Type[ModelT]) -> ModelT:
        try:
            return model.model_validate(result.json())
        except (ValueError, ValidationError) as e:
            raise CardPushError.malformed_response(
                f"Unexpected {model.__name__} body", path=result.path
            ) from e

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> "PlatformClient":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()
