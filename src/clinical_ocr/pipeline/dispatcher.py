"""Choose and run the cheapest extraction method for one file.

PDFs go to the text-layer reader; raster images go to local OCR, or to the
paid remote extractor when the caller opts in. Short PDF text only earns a
warning: the PDF is never rasterized for a second pass.
"""

from __future__ import annotations

import dataclasses
import logging
import typing

from clinical_ocr import constants
from clinical_ocr.core.exceptions import LocalExtractionError
from clinical_ocr.core.types import (
    DocumentType,
    ExtractionMeta,
    ExtractionMethod,
    ExtractionResult,
    ProgressCallback,
    ProgressEvent,
    ProgressStage,
    SourceFile,
)
from clinical_ocr.extractors.image_ocr import ImageOcrExtractor
from clinical_ocr.extractors.pdf_text import PdfTextExtractor
from clinical_ocr.files.formats import (
    DetectedFormat,
    FileKind,
    require_supported_format,
)
from clinical_ocr.imaging.preprocessor import PreprocessOptions, preprocess
from clinical_ocr.remote.vision_extractor import VisionExtractor
from clinical_ocr.telemetry import TelemetryContext
from clinical_ocr.text import merge_warnings, normalize_study_text

if typing.TYPE_CHECKING:
    from clinical_ocr.cache.store import KeyValueStore
    from clinical_ocr.config import FrozenConfig
    from clinical_ocr.extractors.image_ocr import TextRecognizer
    from clinical_ocr.remote.adapters import VisionAdapter
    from clinical_ocr.remote.cancellation import CancellationToken
    from clinical_ocr.telemetry import TelemetryContextProtocol

log = logging.getLogger(__name__)

PDF_UNREADABLE_WARNING = (
    "The PDF could not be read. Convert it to an image (JPG/PNG) or try again."
)
PDF_SPARSE_WARNING = (
    "PDF text is sparse; convert the document to an image to improve text yield"
)
LOW_QUALITY_TEXT_WARNING = (
    "Very little text was recognized; the result may be incomplete or low quality"
)


@dataclasses.dataclass(frozen=True, slots=True)
class DispatchOptions:
    """Per-call knobs for method selection."""

    min_chars: int = constants.DEFAULT_MIN_CHARS
    prefer_image_ocr: bool = False
    use_remote_vision: bool = False
    document_type: DocumentType = DocumentType.GENERIC
    bypass_cache: bool = False
    max_file_size: int = constants.MAX_FILE_SIZE
    preprocess: PreprocessOptions = dataclasses.field(default_factory=PreprocessOptions)

    @classmethod
    def from_config(cls, config: FrozenConfig) -> DispatchOptions:
        """Build options from resolved configuration."""
        return cls(
            min_chars=config.min_chars,
            prefer_image_ocr=config.prefer_image_ocr,
            use_remote_vision=config.use_remote_vision,
            document_type=config.document_type,
            max_file_size=config.max_file_size,
            preprocess=PreprocessOptions.from_config(config),
        )


class MethodDispatcher:
    """Route one file to exactly one extraction engine."""

    def __init__(
        self,
        *,
        pdf_extractor: PdfTextExtractor | None = None,
        image_extractor: ImageOcrExtractor | None = None,
        vision_extractor: VisionExtractor | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self.pdf_extractor = pdf_extractor or PdfTextExtractor()
        self.image_extractor = image_extractor or ImageOcrExtractor()
        self.vision_extractor = vision_extractor
        self._telemetry = telemetry or TelemetryContext()

    @classmethod
    def from_config(
        cls,
        config: FrozenConfig,
        *,
        store: KeyValueStore | None = None,
        recognizer: TextRecognizer | None = None,
        adapter: VisionAdapter | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> MethodDispatcher:
        """Wire a dispatcher and its engines from resolved configuration."""
        return cls(
            image_extractor=ImageOcrExtractor(
                recognizer, language=config.ocr_language, enhance=config.ocr_enhance
            ),
            vision_extractor=VisionExtractor.from_config(
                config, store=store, adapter=adapter, telemetry=telemetry
            ),
            telemetry=telemetry,
        )

    async def dispatch(
        self,
        file: SourceFile,
        options: DispatchOptions | None = None,
        on_progress: ProgressCallback | None = None,
        token: CancellationToken | None = None,
    ) -> ExtractionResult:
        """Extract text from one file with the cheapest suitable method.

        Args:
            file: The document to read.
            options: Method selection knobs; defaults when omitted.
            on_progress: Receives engine progress events.
            token: Cancels the remote call, if one is made.

        Returns:
            A normalized result; `warnings` is None when there is nothing to report.

        Raises:
            UnsupportedFormatError: If the file is neither PDF nor raster image.
            ImageDecodeError: If a raster image cannot be decoded.
            RemoteServiceError: If the remote path was taken and failed.
            ExtractionCancelledError: If `token` fired during the remote call.
        """
        options = options or DispatchOptions()
        detected = require_supported_format(file)

        with self._telemetry("dispatch", kind=detected.kind.value):
            match detected.kind:
                case FileKind.PDF:
                    result = await self._extract_pdf(file, options, on_progress)
                case FileKind.IMAGE:
                    if options.use_remote_vision and self.vision_extractor is not None:
                        result = await self._extract_remote(
                            file, detected, options, on_progress, token
                        )
                    else:
                        result = await self.image_extractor.extract(file, on_progress)
                    result = self._flag_short_image_text(result, options)
                case _:
                    typing.assert_never(detected.kind)

        self._telemetry.count(f"dispatch.{result.method.value}")
        return dataclasses.replace(
            result,
            text=normalize_study_text(result.text),
            warnings=merge_warnings(result.warnings),
        )

    async def _extract_pdf(
        self,
        file: SourceFile,
        options: DispatchOptions,
        on_progress: ProgressCallback | None,
    ) -> ExtractionResult:
        try:
            result = await self.pdf_extractor.extract(file, on_progress)
        except LocalExtractionError as e:
            log.warning("PDF text extraction failed for %s: %s", file.name, e)
            return ExtractionResult(
                text="",
                method=ExtractionMethod.PDF_TEXT,
                warnings=(PDF_UNREADABLE_WARNING,),
            )

        if (
            not options.prefer_image_ocr
            and len(normalize_study_text(result.text)) < options.min_chars
        ):
            log.warning(
                "Sparse PDF text for %s (%d chars < %d)",
                file.name,
                len(result.text),
                options.min_chars,
            )
            result = dataclasses.replace(
                result, warnings=merge_warnings(result.warnings, (PDF_SPARSE_WARNING,))
            )
        return result

    async def _extract_remote(
        self,
        file: SourceFile,
        detected: DetectedFormat,
        options: DispatchOptions,
        on_progress: ProgressCallback | None,
        token: CancellationToken | None,
    ) -> ExtractionResult:
        assert self.vision_extractor is not None
        if detected.remote_mime is None:
            log.info(
                "Re-encoding %s (%s) as %s for remote extraction",
                file.name,
                detected.mime_type,
                options.preprocess.target_mime.value,
            )
        if on_progress is not None:
            on_progress(
                ProgressEvent(
                    stage=ProgressStage.PREPROCESSING,
                    message="Preparing image",
                    file_name=file.name,
                )
            )
        payload = await preprocess(file.data, options.preprocess)
        remote = await self.vision_extractor.extract(
            payload,
            options.document_type,
            token=token,
            bypass_cache=options.bypass_cache,
            on_progress=on_progress,
        )
        return ExtractionResult(
            text=remote.extracted_text,
            method=ExtractionMethod.VISION,
            meta=ExtractionMeta(
                page_count=1,
                elapsed_ms=remote.processing_time_ms,
                confidence=remote.confidence,
                cost=remote.cost,
                tokens_used=remote.tokens_used,
                from_cache=remote.from_cache,
                document_type=options.document_type,
            ),
        )

    @staticmethod
    def _flag_short_image_text(
        result: ExtractionResult, options: DispatchOptions
    ) -> ExtractionResult:
        # OCR is the only method for raster input, so short text is kept as-is
        if len(normalize_study_text(result.text)) >= options.min_chars:
            return result
        return dataclasses.replace(
            result,
            warnings=merge_warnings(result.warnings, (LOW_QUALITY_TEXT_WARNING,)),
        )
