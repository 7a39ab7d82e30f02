from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type
from types import TracebackType

import httpx

from ...domain.errors import CardPushError
from ...domain.shared import CredentialProvider

logger = logging.getLogger(__name__)

CF_RAY_HEADER = "CF-RAY"


@dataclass(frozen=True)
class ApiResult:
    """Uniform result of a transport call. Non-2xx statuses are data, not errors."""

    status: int
    body: bytes = b""
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    path: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def cf_ray(self) -> Optional[str]:
        return self.headers.get(CF_RAY_HEADER)

    def json(self) -> Any:
        if not self.body:
            return None
        return json.loads(self.text)


class HttpTransport:
    """Thin synchronous HTTP transport around httpx.

    - Normalizes base URLs and paths.
    - Applies a default timeout.
    - Attaches the bearer token and retries once after a 401.
    - Never raises for HTTP statuses; network failures become TRANSPORT errors.
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialProvider,
        timeout: float = 10.0,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._credentials = credentials
        headers = {"Accept": "application/json"}
        if user_agent:
            headers["User-Agent"] = user_agent
        self._client = httpx.Client(timeout=timeout, headers=headers, transport=transport)

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str) -> httpx.URL:
        """Resolve a link href against the base URL (RFC 3986)."""
        return httpx.URL(f"{self._base_url}/").join(path)

    def execute(
        self,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> ApiResult:
        token = self._credentials.get_token()
        result = self._send(method, url, body, token)
        if result.status == httpx.codes.UNAUTHORIZED:
            logger.info("Token rejected for %s %s; refreshing once", method, result.path)
            token = self._credentials.refresh_token(token)
            result = self._send(method, url, body, token)
        return result

    def _send(
        self,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]],
        token: str,
    ) -> ApiResult:
        try:
            full_url = self._url(url)
        except httpx.InvalidURL as e:
            raise CardPushError.transport(f"Invalid URL for {method}: {e}", path=url) from e
        try:
            resp = self._client.request(
                method,
                full_url,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TimeoutException as e:
            raise CardPushError.transport(
                f"Timed out calling {method} {full_url}", path=full_url.path
            ) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise CardPushError.transport(
                f"Network failure calling {method} {full_url}: {type(e).__name__}",
                path=full_url.path,
            ) from e

        result = ApiResult(
            status=resp.status_code,
            body=resp.content,
            headers=resp.headers,
            path=resp.request.url.path,
        )
        logger.debug(
            "%s %s -> %s (CF-RAY=%s)", method, result.path, result.status, result.cf_ray
        )
        return result

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.close()
