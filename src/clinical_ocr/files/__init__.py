"""Source file format detection and validation."""

from .formats import (
    DetectedFormat,
    FileKind,
    detect_format,
    format_file_size,
    require_supported_format,
    validate_source_file,
)

__all__ = [
    "DetectedFormat",
    "FileKind",
    "detect_format",
    "format_file_size",
    "require_supported_format",
    "validate_source_file",
]
