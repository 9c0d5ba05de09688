"""Format detection and validation for incoming documents.

A file is classified from its declared MIME type, then its extension, then
its leading bytes. Classification answers one question for the dispatcher:
is this a PDF, a raster image, or neither.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
import logging
from pathlib import PurePath
import re

from clinical_ocr import constants
from clinical_ocr.core.exceptions import FileValidationError, UnsupportedFormatError
from clinical_ocr.core.types import ImageMimeType, SourceFile

log = logging.getLogger(__name__)

PDF_MIME = "application/pdf"

_EXTENSION_MIME: dict[str, str] = {
    ".pdf": PDF_MIME,
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
}

_MIME_ALIASES = {"image/jpg": "image/jpeg", "image/x-ms-bmp": "image/bmp"}

_SIGNATURES: dict[str, tuple[re.Pattern[bytes], ...]] = {
    PDF_MIME: (re.compile(rb"^%PDF"),),
    "image/jpeg": (re.compile(rb"^\xff\xd8\xff"),),
    "image/png": (re.compile(rb"^\x89PNG"),),
    "image/tiff": (re.compile(rb"^II\*\x00"), re.compile(rb"^MM\x00\*")),
    "image/bmp": (re.compile(rb"^BM"),),
    "image/webp": (re.compile(rb"^RIFF.{4}WEBP", re.DOTALL),),
}


class FileKind(str, Enum):
    """Coarse category that decides which engine runs."""

    PDF = "pdf"
    IMAGE = "image"


@dataclasses.dataclass(frozen=True, slots=True)
class DetectedFormat:
    """Outcome of format detection for one file."""

    kind: FileKind
    mime_type: str

    @property
    def remote_mime(self) -> ImageMimeType | None:
        """The MIME type if the remote path accepts it verbatim, else None."""
        try:
            return ImageMimeType(self.mime_type)
        except ValueError:
            return None


def _normalize_mime(mime_type: str | None) -> str | None:
    if not mime_type:
        return None
    base = mime_type.split(";", 1)[0].strip().lower()
    return _MIME_ALIASES.get(base, base)


def _sniff_mime(data: bytes) -> str | None:
    header = bytes(data[:16])
    for mime_type, patterns in _SIGNATURES.items():
        if any(p.match(header) for p in patterns):
            return mime_type
    return None


def _kind_for(mime_type: str | None) -> FileKind | None:
    if mime_type == PDF_MIME:
        return FileKind.PDF
    if mime_type in _SIGNATURES:
        return FileKind.IMAGE
    return None


def detect_format(file: SourceFile) -> DetectedFormat | None:
    """Classify a file as PDF or raster image.

    Args:
        file: The document to classify.

    Returns:
        The detected format, or None when the file is neither a recognized
        PDF nor a recognized raster image.
    """
    suffix = PurePath(file.name).suffix.lower()
    candidates = (
        _normalize_mime(file.mime_type),
        _EXTENSION_MIME.get(suffix),
        _sniff_mime(file.data),
    )
    for mime_type in candidates:
        kind = _kind_for(mime_type)
        if kind is not None and mime_type is not None:
            return DetectedFormat(kind=kind, mime_type=mime_type)
    return None


def require_supported_format(file: SourceFile) -> DetectedFormat:
    """Like `detect_format`, but raises for unsupported files.

    Raises:
        UnsupportedFormatError: If the file is neither PDF nor raster image.
    """
    detected = detect_format(file)
    if detected is None:
        raise UnsupportedFormatError(file.name, file.mime_type)
    return detected


def validate_source_file(
    file: SourceFile,
    detected: DetectedFormat,
    *,
    max_file_size: int = constants.MAX_FILE_SIZE,
) -> None:
    """Check size, emptiness and that the leading bytes match the format.

    Raises:
        FileValidationError: On the first failed check.
    """
    if file.size == 0:
        raise FileValidationError(f"{file.name} is empty")
    if file.size > max_file_size:
        raise FileValidationError(
            f"{file.name} is too large ({format_file_size(file.size)}). "
            f"Maximum allowed: {format_file_size(max_file_size)}"
        )
    patterns = _SIGNATURES.get(detected.mime_type, ())
    header = bytes(file.data[:16])
    if patterns and not any(p.match(header) for p in patterns):
        raise FileValidationError(
            f"{file.name} appears to be corrupt or is not a valid {detected.mime_type} file"
        )
    log.debug("Validated %s as %s (%d bytes)", file.name, detected.mime_type, file.size)


def format_file_size(num_bytes: int) -> str:
    """Human-readable size, e.g. `1.5 MB`."""
    if num_bytes <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    value = float(num_bytes)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {units[unit]}"
