"""On-device OCR for raster images.

Recognition sits behind the `TextRecognizer` protocol; `TesseractRecognizer`
is the production implementation.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Protocol, runtime_checkable

from PIL import Image, ImageEnhance, ImageFilter, ImageOps
import pytesseract

from clinical_ocr import constants
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
from clinical_ocr.imaging.preprocessor import decode_image
from clinical_ocr.text import normalize_whitespace

log = logging.getLogger(__name__)

NO_TEXT_WARNING = "No text was recognized in the image"

# Fractional milestones reported while a single image is processed
_LOADED = 0.10
_ENHANCED = 0.30
_RECOGNIZING = 0.35
_RECOGNIZED = 0.90
_DONE = 1.0


@dataclasses.dataclass(frozen=True, slots=True)
class RecognizedText:
    """Raw output of a recognizer."""

    text: str
    confidence: float | None = None


@runtime_checkable
class TextRecognizer(Protocol):
    """Anything that turns an image into text for a language hint."""

    def recognize(self, image: Image.Image, language: str) -> RecognizedText: ...  # noqa: D102


class TesseractRecognizer:
    """Recognizer backed by the tesseract binary via pytesseract."""

    def __init__(self, tesseract_cmd: str | None = None, config: str = "--psm 6"):
        """Initialize the recognizer.

        Args:
            tesseract_cmd: Path to the tesseract executable; PATH lookup if None.
            config: Extra tesseract CLI flags.
        """
        self.tesseract_cmd = tesseract_cmd
        self.config = config

    def recognize(self, image: Image.Image, language: str) -> RecognizedText:
        """Run tesseract and compute the mean word confidence (0-1)."""
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
        try:
            text = pytesseract.image_to_string(image, lang=language, config=self.config)
            data = pytesseract.image_to_data(
                image,
                lang=language,
                config=self.config,
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
            raise LocalExtractionError(f"Tesseract OCR failed: {e}") from e

        scores = [
            float(conf)
            for word, conf in zip(data.get("text", []), data.get("conf", []))
            if str(word).strip() and float(conf) >= 0
        ]
        confidence = round(sum(scores) / len(scores) / 100, 4) if scores else None
        return RecognizedText(text=text, confidence=confidence)


@dataclasses.dataclass(frozen=True, slots=True)
class EnhancementOptions:
    """Optional clean-up applied before recognition."""

    contrast: float = 1.5
    binarize: bool = True
    threshold: int = 128
    denoise: bool = True


def enhance_image(image: Image.Image, options: EnhancementOptions) -> Image.Image:
    """Grayscale, boost contrast, threshold and median-filter an image."""
    enhanced = ImageOps.grayscale(image)
    if options.contrast != 1.0:
        enhanced = ImageEnhance.Contrast(enhanced).enhance(options.contrast)
    if options.binarize:
        threshold = options.threshold
        enhanced = enhanced.point(lambda p: 255 if p > threshold else 0)
    if options.denoise:
        enhanced = enhanced.filter(ImageFilter.MedianFilter(size=3))
    return enhanced


class ImageOcrExtractor:
    """Recognize text in a raster image with a fixed bilingual hint."""

    def __init__(
        self,
        recognizer: TextRecognizer | None = None,
        *,
        language: str = constants.OCR_LANGUAGE_HINT,
        enhance: bool = True,
        enhancement: EnhancementOptions | None = None,
    ) -> None:
        self.recognizer = recognizer or TesseractRecognizer()
        self.language = language
        self.enhance = enhance
        self.enhancement = enhancement or EnhancementOptions()

    async def extract(
        self, file: SourceFile, on_progress: ProgressCallback | None = None
    ) -> ExtractionResult:
        """OCR one image.

        Raises:
            ImageDecodeError: If the file is not a decodable image.
            LocalExtractionError: If the recognizer itself fails.
        """
        start = time.perf_counter()

        def report(fraction: float, message: str) -> None:
            if on_progress is not None:
                on_progress(
                    ProgressEvent(
                        stage=ProgressStage.EXTRACTING_LOCAL,
                        message=message,
                        fraction_complete=fraction,
                        file_name=file.name,
                    )
                )

        image = await asyncio.to_thread(decode_image, file.data)
        report(_LOADED, "Image loaded")
        if self.enhance:
            image = await asyncio.to_thread(enhance_image, image, self.enhancement)
        report(_ENHANCED, "Image prepared")
        report(_RECOGNIZING, "Recognizing text")
        recognized = await asyncio.to_thread(
            self.recognizer.recognize, image, self.language
        )
        report(_RECOGNIZED, "Text recognized")

        text = normalize_whitespace(recognized.text)
        elapsed_ms = round((time.perf_counter() - start) * 1000)
        log.debug(
            "OCR of %s produced %d chars in %d ms", file.name, len(text), elapsed_ms
        )
        report(_DONE, "OCR complete")
        return ExtractionResult(
            text=text,
            method=ExtractionMethod.IMAGE_OCR,
            warnings=None if text else (NO_TEXT_WARNING,),
            meta=ExtractionMeta(
                page_count=1,
                language_hint=self.language,
                elapsed_ms=elapsed_ms,
                confidence=recognized.confidence,
            ),
        )
