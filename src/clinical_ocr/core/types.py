"""Core data types that flow through the extraction pipeline.

Every value object here is immutable. Engines produce exactly one
`ExtractionResult` per file; the cache, cost tracker and orchestrator only
ever copy-and-replace them.
"""

from __future__ import annotations

import base64
from collections.abc import Callable
import dataclasses
from datetime import date
from enum import Enum
import mimetypes
import os
from pathlib import Path
import typing


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


# --- Closed enumerations ---


class DocumentType(str, Enum):
    """Category selecting the remote instruction template."""

    FORM = "form"
    LAB_REPORT = "lab_report"
    IMAGING_REPORT = "imaging_report"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value: str | DocumentType) -> DocumentType:
        """Accept enum members, values or names (case-insensitive)."""
        if isinstance(value, DocumentType):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(
                f"Invalid document type: {value!r}. Must be one of: {valid}"
            ) from None


class ExtractionMethod(str, Enum):
    """Engine that produced an extraction result."""

    PDF_TEXT = "pdf-text"
    IMAGE_OCR = "image-ocr"
    VISION = "vision"


class ProgressStage(str, Enum):
    """Stages reported through progress callbacks."""

    VALIDATING = "validating"
    PREPROCESSING = "preprocessing"
    EXTRACTING_LOCAL = "extracting-local"
    EXTRACTING_REMOTE = "extracting-remote"
    PARSING = "parsing"
    COMPLETE = "complete"
    ERROR = "error"


class ImageMimeType(str, Enum):
    """Encodings the preprocessor can emit and the remote path accepts."""

    JPEG = "image/jpeg"
    PNG = "image/png"
    WEBP = "image/webp"

    @property
    def pillow_format(self) -> str:
        """Format name understood by `PIL.Image.save`."""
        match self:
            case ImageMimeType.JPEG:
                return "JPEG"
            case ImageMimeType.PNG:
                return "PNG"
            case ImageMimeType.WEBP:
                return "WEBP"
            case _:
                typing.assert_never(self)


# --- Inputs ---


@dataclasses.dataclass(frozen=True, slots=True)
class SourceFile:
    """A document handed to the pipeline: a name, its bytes and a MIME hint."""

    name: str
    data: bytes
    mime_type: str | None = None

    def __post_init__(self) -> None:
        """Validate invariants for type safety."""
        _require(
            condition=isinstance(self.name, str) and bool(self.name),
            message="must be a non-empty str",
            field_name="name",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.data, bytes | bytearray),
            message="must be bytes",
            field_name="data",
            exc=TypeError,
        )

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> SourceFile:
        """Read a file from disk and guess its MIME type from the suffix."""
        p = Path(path)
        mime_type, _ = mimetypes.guess_type(p.name)
        return cls(name=p.name, data=p.read_bytes(), mime_type=mime_type)

    @property
    def size(self) -> int:
        """Size of the raw file in bytes."""
        return len(self.data)


# --- Outputs ---


@dataclasses.dataclass(frozen=True, slots=True)
class ExtractionMeta:
    """Metadata attached to an extraction result."""

    page_count: int | None = None
    language_hint: str | None = None
    elapsed_ms: int | None = None
    confidence: float | None = None
    cost: float | None = None
    tokens_used: int | None = None
    from_cache: bool | None = None
    document_type: DocumentType | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Text produced by exactly one extraction engine for one file.

    `warnings` is None when there is nothing to report, so callers can tell
    a clean extraction apart from an empty warning list.
    """

    text: str
    method: ExtractionMethod
    warnings: tuple[str, ...] | None = None
    meta: ExtractionMeta = dataclasses.field(default_factory=ExtractionMeta)

    def __post_init__(self) -> None:
        """Validate invariants for type safety."""
        _require(
            condition=isinstance(self.text, str),
            message="must be str",
            field_name="text",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.method, ExtractionMethod),
            message="must be an ExtractionMethod",
            field_name="method",
            exc=TypeError,
        )
        _require(
            condition=self.warnings is None or len(self.warnings) > 0,
            message="use None instead of an empty tuple",
            field_name="warnings",
        )


@dataclasses.dataclass(frozen=True, slots=True)
class ImagePayload:
    """Encoded image ready for the remote extractor."""

    data: bytes
    mime_type: ImageMimeType
    byte_size: int
    width: int = 0
    height: int = 0
    quality: float | None = None

    @property
    def base64(self) -> str:
        """Base64 text of the encoded bytes."""
        return base64.b64encode(self.data).decode("ascii")


@dataclasses.dataclass(frozen=True, slots=True)
class ProgressEvent:
    """A transient progress notification; never stored."""

    stage: ProgressStage
    message: str | None = None
    fraction_complete: float | None = None
    file_index: int | None = None
    total_files: int | None = None
    file_name: str | None = None


ProgressCallback = Callable[[ProgressEvent], None]


@dataclasses.dataclass(frozen=True, slots=True)
class RemoteExtractionResult:
    """Normalized response of the remote vision service."""

    extracted_text: str
    confidence: float
    tokens_used: int
    cost: float
    processing_time_ms: int
    from_cache: bool = False


@dataclasses.dataclass(frozen=True, slots=True)
class CacheEntry:
    """A remote result stored under its content-addressed key."""

    key: str
    result: RemoteExtractionResult
    created_at: float
    expires_at: float
    cost: float

    def is_expired(self, now: float) -> bool:
        """True once `now` is past the entry's expiry timestamp."""
        return now > self.expires_at


@dataclasses.dataclass(frozen=True, slots=True)
class CacheStats:
    """Aggregate view over the cache backend."""

    total_entries: int
    total_cost_saved: float
    hit_rate: float
    oldest_entry_age: float


@dataclasses.dataclass(frozen=True, slots=True)
class CostSnapshot:
    """Running remote spend, as persisted."""

    daily_total: float
    monthly_total: float
    last_reset_date: date


@dataclasses.dataclass(frozen=True, slots=True)
class CostTotals:
    """Read view returned by the cost tracker."""

    daily: float
    monthly: float


@dataclasses.dataclass(frozen=True, slots=True)
class BatchItem:
    """One file's outcome inside a batch."""

    file_name: str
    result: ExtractionResult


@dataclasses.dataclass(frozen=True, slots=True)
class BatchResult:
    """Ordered per-file results plus the merged text, in input order."""

    results: tuple[BatchItem, ...]
    merged_text: str
