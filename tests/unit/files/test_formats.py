"""Format detection and source-file validation."""

import pytest

from clinical_ocr.core.exceptions import FileValidationError, UnsupportedFormatError
from clinical_ocr.core.types import ImageMimeType, SourceFile
from clinical_ocr.files import (
    FileKind,
    detect_format,
    format_file_size,
    require_supported_format,
    validate_source_file,
)
from tests.helpers import build_image, build_pdf

pytestmark = pytest.mark.unit


class TestDetectFormat:
    def test_declared_mime_wins(self):
        source = SourceFile("upload", b"whatever", mime_type="application/pdf")
        detected = detect_format(source)
        assert detected is not None
        assert detected.kind is FileKind.PDF

    def test_mime_aliases_and_parameters_are_normalized(self):
        source = SourceFile("photo", b"", mime_type="image/JPG; charset=binary")
        detected = detect_format(source)
        assert detected is not None
        assert detected.mime_type == "image/jpeg"

    @pytest.mark.parametrize(
        ("name", "kind", "mime"),
        [
            ("report.PDF", FileKind.PDF, "application/pdf"),
            ("scan.jpeg", FileKind.IMAGE, "image/jpeg"),
            ("scan.webp", FileKind.IMAGE, "image/webp"),
            ("scan.tiff", FileKind.IMAGE, "image/tiff"),
            ("scan.bmp", FileKind.IMAGE, "image/bmp"),
        ],
    )
    def test_falls_back_to_extension(self, name, kind, mime):
        detected = detect_format(SourceFile(name, b"data"))
        assert detected is not None
        assert (detected.kind, detected.mime_type) == (kind, mime)

    def test_sniffs_magic_bytes_when_name_is_unhelpful(self):
        detected = detect_format(SourceFile("blob", build_image(fmt="PNG")))
        assert detected is not None
        assert detected.mime_type == "image/png"

        detected = detect_format(SourceFile("blob", build_pdf("x")))
        assert detected is not None
        assert detected.kind is FileKind.PDF

    def test_unknown_format_returns_none(self):
        assert detect_format(SourceFile("notes.txt", b"plain text", "text/plain")) is None

    def test_remote_mime_only_for_remote_encodings(self):
        png = detect_format(SourceFile("a.png", b""))
        tiff = detect_format(SourceFile("a.tif", b""))
        assert png is not None and png.remote_mime is ImageMimeType.PNG
        assert tiff is not None and tiff.remote_mime is None


def test_require_supported_format_raises_with_file_name():
    with pytest.raises(UnsupportedFormatError) as exc_info:
        require_supported_format(SourceFile("notes.docx", b"PK\x03\x04"))

    assert exc_info.value.file_name == "notes.docx"
    assert "Use PDF, PNG, JPG or WEBP" in str(exc_info.value)


class TestValidateSourceFile:
    def _validate(self, source: SourceFile, **kwargs):
        detected = require_supported_format(source)
        validate_source_file(source, detected, **kwargs)

    def test_valid_pdf_and_image_pass(self):
        self._validate(SourceFile("a.pdf", build_pdf("hello")))
        self._validate(SourceFile("a.jpg", build_image(fmt="JPEG")))

    def test_empty_file_rejected(self):
        with pytest.raises(FileValidationError, match="empty"):
            self._validate(SourceFile("a.pdf", b""))

    def test_oversized_file_rejected_with_readable_sizes(self):
        with pytest.raises(FileValidationError, match=r"too large \(2 KB\).*1 KB"):
            self._validate(SourceFile("a.pdf", b"%PDF" + b"0" * 2044), max_file_size=1024)

    def test_signature_mismatch_rejected(self):
        with pytest.raises(FileValidationError, match="corrupt"):
            self._validate(SourceFile("a.png", b"GIF89a........"))


@pytest.mark.parametrize(
    ("size", "expected"),
    [(0, "0 Bytes"), (512, "512 Bytes"), (1536, "1.5 KB"), (10 * 1024 * 1024, "10 MB")],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected
