"""Read the embedded text layer of a PDF without any OCR."""

from __future__ import annotations

import asyncio
import logging
import time

import fitz  # PyMuPDF

from clinical_ocr.core.exceptions import LocalExtractionError
from clinical_ocr.core.types import (
    ExtractionMeta,
    ExtractionMethod,
    ExtractionResult,
    ProgressCallback,
    ProgressEvent,
    ProgressStage,
    SourceFile,
)
from clinical_ocr.text import normalize_whitespace

log = logging.getLogger(__name__)

EMPTY_TEXT_LAYER_WARNING = (
    "The PDF has no readable text layer; it may be a scanned document"
)

# Index of the word string inside a `Page.get_text("words")` tuple
_WORD_INDEX = 4


class PdfTextExtractor:
    """Extract text from a PDF page by page.

    Only failure mode is a document that cannot be opened; an empty text
    layer is reported as a warning on the result.
    """

    async def extract(
        self, file: SourceFile, on_progress: ProgressCallback | None = None
    ) -> ExtractionResult:
        """Walk the pages in order and join their words.

        Args:
            file: The PDF to read.
            on_progress: Receives one event per page.

        Returns:
            A `pdf-text` result; pages are separated by a blank line.

        Raises:
            LocalExtractionError: If the document cannot be opened.
        """
        start = time.perf_counter()
        doc = await asyncio.to_thread(self._open, file)
        try:
            page_count = doc.page_count
            pages: list[str] = []
            for index in range(page_count):
                page_text = await asyncio.to_thread(self._page_text, doc, index)
                pages.append(page_text)
                log.debug(
                    "Read page %d/%d of %s (%d chars)",
                    index + 1,
                    page_count,
                    file.name,
                    len(page_text),
                )
                if on_progress is not None:
                    on_progress(
                        ProgressEvent(
                            stage=ProgressStage.EXTRACTING_LOCAL,
                            message=f"Reading page {index + 1} of {page_count}",
                            fraction_complete=(index + 1) / page_count,
                            file_name=file.name,
                        )
                    )
        finally:
            doc.close()

        text = normalize_whitespace("\n\n".join(pages))
        warnings = None if text else (EMPTY_TEXT_LAYER_WARNING,)
        return ExtractionResult(
            text=text,
            method=ExtractionMethod.PDF_TEXT,
            warnings=warnings,
            meta=ExtractionMeta(
                page_count=page_count,
                elapsed_ms=round((time.perf_counter() - start) * 1000),
            ),
        )

    @staticmethod
    def _open(file: SourceFile) -> fitz.Document:
        try:
            doc = fitz.open(stream=bytes(file.data), filetype="pdf")
        except (RuntimeError, ValueError) as e:
            raise LocalExtractionError(f"Could not open PDF {file.name}: {e}") from e
        if doc.needs_pass:
            doc.close()
            raise LocalExtractionError(f"PDF {file.name} is password protected")
        if doc.page_count == 0:
            doc.close()
            raise LocalExtractionError(f"PDF {file.name} has no readable pages")
        return doc

    @staticmethod
    def _page_text(doc: fitz.Document, index: int) -> str:
        words = doc.load_page(index).get_text("words")
        return " ".join(word[_WORD_INDEX] for word in words)
