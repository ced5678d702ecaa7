from __future__ import annotations

from typing import Mapping

from .exceptions import (
    ApiError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ServerError,
)


def map_error(status_code: int, payload: Mapping[str, object] | None) -> ApiError:
    payload = payload or {}
    code = str(payload.get("code") or "HTTP_ERROR")
    message = str(payload.get("message") or payload.get("error") or "Request failed")
    details = payload.get("details")
    mapped: type[ApiError]
    if status_code in {401, 403}:
        mapped = ForbiddenError
    elif status_code == 404:
        mapped = NotFoundError
    elif status_code == 429:
        mapped = RateLimitError
    elif status_code >= 500:
        mapped = ServerError
    else:
        mapped = ApiError
    return mapped(
        code=code,
        message=message,
        details=details,
        status_code=status_code,
        raw_payload=dict(payload),
    )
