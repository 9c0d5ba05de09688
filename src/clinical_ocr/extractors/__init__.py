"""Local extraction engines: PDF text layer and image OCR."""

from .image_ocr import (
    NO_TEXT_WARNING,
    EnhancementOptions,
    ImageOcrExtractor,
    RecognizedText,
    TesseractRecognizer,
    TextRecognizer,
    enhance_image,
)
from .pdf_text import EMPTY_TEXT_LAYER_WARNING, PdfTextExtractor

__all__ = [
    "EMPTY_TEXT_LAYER_WARNING",
    "NO_TEXT_WARNING",
    "EnhancementOptions",
    "ImageOcrExtractor",
    "PdfTextExtractor",
    "RecognizedText",
    "TesseractRecognizer",
    "TextRecognizer",
    "enhance_image",
]
