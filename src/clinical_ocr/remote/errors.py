"""Map remote failures onto the pipeline's error taxonomy."""

from __future__ import annotations

import logging

from clinical_ocr.core.exceptions import (
    RemoteAuthError,
    RemoteNotFoundError,
    RemoteRateLimitedError,
    RemoteServerError,
    RemoteServiceError,
)

log = logging.getLogger(__name__)


def error_for_status(status: int | None, detail: str = "") -> RemoteServiceError:
    """Build the typed error for an HTTP-like status code.

    Args:
        status: Status reported by the service, or None if unknown.
        detail: The service's own message.

    Returns:
        The most specific `RemoteServiceError` subclass for `status`.
    """
    suffix = f": {detail}" if detail else ""
    if status in (401, 403):
        return RemoteAuthError(
            f"Remote service rejected the API key ({status}){suffix}",
            status=status,
            detail=detail,
        )
    if status == 404:
        return RemoteNotFoundError(
            f"Remote model or endpoint not found{suffix}", status=status, detail=detail
        )
    if status == 429:
        return RemoteRateLimitedError(
            "Remote service rate limit reached; wait a moment and retry",
            status=status,
            detail=detail,
        )
    if status is not None and status >= 500:
        return RemoteServerError(
            f"Remote service failed ({status}); try again later{suffix}",
            status=status,
            detail=detail,
        )
    label = f" ({status})" if status is not None else ""
    return RemoteServiceError(
        f"Remote extraction failed{label}{suffix}", status=status, detail=detail
    )


def _status_of(error: BaseException) -> int | None:
    for attr in ("code", "status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response_status = getattr(getattr(error, "response", None), "status_code", None)
    if isinstance(response_status, int):
        return response_status
    return None


def classify_remote_failure(error: BaseException) -> RemoteServiceError:
    """Turn an SDK or transport exception into a typed remote error.

    Already-typed errors pass through unchanged.
    """
    if isinstance(error, RemoteServiceError):
        return error
    status = _status_of(error)
    detail = str(getattr(error, "message", None) or error)
    classified = error_for_status(status, detail)
    log.debug(
        "Classified %s (status=%s) as %s",
        type(error).__name__,
        status,
        type(classified).__name__,
    )
    return classified
