"""Mapping from platform HTTP statuses to ``CardPushError`` kinds."""

from __future__ import annotations

from pydantic import ValidationError

from ...application.dtos import ErrorResponseDTO
from ...domain.errors import CardPushError
from .http_client import ApiResult

MAINTENANCE_STATUSES = frozenset({502, 503})


def error_from_result(result: ApiResult) -> CardPushError:
    """Build the error for a non-2xx result.

    The server's ``{path, status, message}`` body is preferred; the request
    path and raw body text are the fallback.
    """
    path = result.path
    message = result.text[:200] or f"HTTP {result.status}"
    try:
        body = ErrorResponseDTO.model_validate(result.json())
    except (ValueError, ValidationError):
        body = None
    if body is not None:
        path = body.path or path
        message = body.message or message

    if result.status in MAINTENANCE_STATUSES:
        return CardPushError.service_unavailable(
            message, status=result.status, path=path, cf_ray=result.cf_ray
        )
    return CardPushError.api(message, status=result.status, path=path, cf_ray=result.cf_ray)


def raise_for_result(result: ApiResult) -> ApiResult:
    if not result.is_success:
        raise error_from_result(result)
    return result
