"""Exception taxonomy for the extraction pipeline.

Only call-contract violations (`UnsupportedFormatError`), cancellation and
setup errors are expected to reach callers of the batch orchestrator. Local
and remote failures are file-scoped and are converted into degraded results
by the dispatcher and the orchestrator.
"""

from __future__ import annotations


class ClinicalOcrError(Exception):
    """Base exception for all pipeline errors."""


class ConfigurationError(ClinicalOcrError):
    """Raised when configuration cannot be resolved or validated."""


class UnsupportedFormatError(ClinicalOcrError):
    """Raised when a file is neither a PDF nor a recognized raster image."""

    def __init__(self, file_name: str, mime_type: str | None = None) -> None:
        """Record the offending file so callers can surface it verbatim."""
        self.file_name = file_name
        self.mime_type = mime_type
        detail = f" ({mime_type})" if mime_type else ""
        super().__init__(
            f"Unsupported format for {file_name}{detail}. Use PDF, PNG, JPG or WEBP."
        )


class FileValidationError(ClinicalOcrError):
    """Raised when a supported file fails size or content checks."""


class LocalExtractionError(ClinicalOcrError):
    """Raised when a local engine cannot open or decode its input at all."""


class ImageDecodeError(LocalExtractionError):
    """Raised when raw bytes cannot be decoded as an image."""


class RemoteServiceError(ClinicalOcrError):
    """Structured failure returned by the remote vision service.

    Attributes:
        status: HTTP-like status code reported by the service, if any.
        detail: The service's own message, kept for logs.
    """

    def __init__(self, message: str, *, status: int | None = None, detail: str = ""):
        """Initialize with a human-readable message and the raw status."""
        self.status = status
        self.detail = detail
        super().__init__(message)


class RemoteAuthError(RemoteServiceError):
    """The remote service rejected the credentials (401/403)."""


class RemoteNotFoundError(RemoteServiceError):
    """The remote endpoint or model was not found (404)."""


class RemoteRateLimitedError(RemoteServiceError):
    """The remote service is throttling requests (429)."""


class RemoteServerError(RemoteServiceError):
    """The remote service failed internally (5xx)."""


class ExtractionCancelledError(ClinicalOcrError):
    """The in-flight remote call was cancelled by its cancellation token.

    Kept apart from `RemoteServiceError` so callers can suppress user-facing
    error banners on intentional cancellation.
    """
