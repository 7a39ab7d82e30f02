from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

import httpx
from pydantic import ValidationError

from ..application.dtos import RootResponseDTO
from ..domain.entities import LinkEntry
from ..domain.errors import CardPushError
from .http.http_client import HttpTransport
from .http.status import raise_for_result

logger = logging.getLogger(__name__)

HEALTH = "health"
ENCRYPTION_KEYS = "encryptionKeys"
PAYMENT_CARDS = "paymentCards"


class LinkDirectory:
    """Lazily fetched, shared cache of the root resource's HAL links.

    A refresh replaces the whole link set. Only one root fetch runs at a time;
    callers that queued behind it reuse its result instead of fetching again.
    """

    def __init__(self, transport: HttpTransport, root_url: Optional[str] = None) -> None:
        self._transport = transport
        self._root_url = root_url or transport.base_url
        self._links: Optional[Dict[str, LinkEntry]] = None
        self._generation = 0
        self._lock = threading.Lock()

    def resolve(self, link_name: str) -> str:
        generation = self._generation
        links = self._links
        if links is not None and link_name in links:
            return links[link_name].href

        links = self._refresh_if_unchanged(generation)
        entry = links.get(link_name)
        if entry is None:
            raise CardPushError.link_not_found(
                link_name, path=httpx.URL(self._root_url).path
            )
        return entry.href

    def refresh(self) -> Dict[str, LinkEntry]:
        """Force a root fetch and return the new link set."""
        return self._refresh_if_unchanged(self._generation)

    def invalidate(self, stale_href: Optional[str] = None) -> None:
        """Drop the cached links.

        With ``stale_href`` the cache is only dropped if it still serves that
        href, so a report about an already-replaced link set is a no-op.
        """
        with self._lock:
            if self._links is None:
                return
            if stale_href is not None and stale_href not in {
                e.href for e in self._links.values()
            }:
                return
            self._links = None
            self._generation += 1

    def cached_links(self) -> Dict[str, LinkEntry]:
        return dict(self._links or {})

    def _refresh_if_unchanged(self, seen_generation: int) -> Dict[str, LinkEntry]:
        with self._lock:
            if self._generation != seen_generation and self._links is not None:
                return self._links
            links = self._fetch_root()
            self._links = links
            self._generation += 1
            return links

    def _fetch_root(self) -> Dict[str, LinkEntry]:
        result = raise_for_result(self._transport.execute("GET", self._root_url))
        try:
            root = RootResponseDTO.model_validate(result.json())
        except (ValueError, ValidationError) as e:
            raise CardPushError.malformed_response(
                "Root resource is not a HAL link collection", path=result.path
            ) from e
        links = {
            name: LinkEntry(name=name, href=link.href)
            for name, link in root.links.items()
            if link.href
        }
        logger.info("Discovered platform links: %s", sorted(links))
        return links
