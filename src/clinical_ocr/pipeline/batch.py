"""Sequential batch orchestration.

Files are processed strictly one at a time and in input order. A failure on
one file becomes a degraded result; only an unsupported format (a caller
contract violation) or cancellation aborts the whole call.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import dataclasses
import logging
import os
import typing

from clinical_ocr import constants
from clinical_ocr.core.exceptions import ClinicalOcrError, ExtractionCancelledError
from clinical_ocr.core.types import (
    BatchItem,
    BatchResult,
    ExtractionMethod,
    ExtractionResult,
    ProgressCallback,
    ProgressEvent,
    ProgressStage,
    SourceFile,
)
from clinical_ocr.files.formats import (
    DetectedFormat,
    FileKind,
    require_supported_format,
    validate_source_file,
)
from clinical_ocr.telemetry import TelemetryContext
from clinical_ocr.text import normalize_study_text

from .dispatcher import DispatchOptions, MethodDispatcher

if typing.TYPE_CHECKING:
    from clinical_ocr.config import FrozenConfig
    from clinical_ocr.remote.cancellation import CancellationToken
    from clinical_ocr.telemetry import TelemetryContextProtocol

log = logging.getLogger(__name__)

FileInput = SourceFile | str | os.PathLike[str]


def as_source_file(item: FileInput) -> SourceFile:
    """Accept a `SourceFile` as-is or read one from a path."""
    if isinstance(item, SourceFile):
        return item
    return SourceFile.from_path(item)


def merge_results(items: Iterable[BatchItem]) -> str:
    """One `- name: text` entry per file, blank-line separated, input order."""
    entries = []
    for item in items:
        text = normalize_study_text(item.result.text)
        entries.append(f"- {item.file_name}: {text or constants.NO_TEXT_PLACEHOLDER}")
    return "\n\n".join(entries).strip()


def _scoped_progress(
    on_progress: ProgressCallback | None, file_index: int, total: int, name: str
) -> ProgressCallback | None:
    if on_progress is None:
        return None

    def forward(event: ProgressEvent) -> None:
        on_progress(
            dataclasses.replace(
                event,
                file_index=file_index,
                total_files=total,
                file_name=event.file_name or name,
            )
        )

    return forward


class BatchOrchestrator:
    """Run the dispatcher over a list of files, one after another."""

    def __init__(
        self,
        dispatcher: MethodDispatcher,
        options: DispatchOptions | None = None,
        *,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.options = options or DispatchOptions()
        self._telemetry = telemetry or TelemetryContext()

    @classmethod
    def from_config(
        cls, config: FrozenConfig, **dispatcher_kwargs: typing.Any
    ) -> BatchOrchestrator:
        """Wire an orchestrator, dispatcher and engines from configuration.

        Keyword arguments are forwarded to `MethodDispatcher.from_config`.
        """
        telemetry = dispatcher_kwargs.get("telemetry")
        return cls(
            MethodDispatcher.from_config(config, **dispatcher_kwargs),
            DispatchOptions.from_config(config),
            telemetry=telemetry,
        )

    async def run_sequential(
        self,
        files: Sequence[FileInput],
        options: DispatchOptions | None = None,
        on_progress: ProgressCallback | None = None,
        token: CancellationToken | None = None,
    ) -> BatchResult:
        """Extract every file in order and merge the texts.

        Args:
            files: Source files or paths to read.
            options: Overrides the orchestrator's default dispatch options.
            on_progress: Receives every event tagged with a 1-based
                `file_index` and `total_files`.
            token: Cancels the in-flight remote call and the rest of the batch.

        Returns:
            One result per input file, in input order, plus the merged text.

        Raises:
            UnsupportedFormatError: If any file is neither PDF nor raster image;
                raised before any file is processed.
            ExtractionCancelledError: If `token` fired during a remote call.
            OSError: If a path cannot be read.
        """
        options = options or self.options
        sources = [as_source_file(f) for f in files]
        if not sources:
            return BatchResult(results=(), merged_text="")

        formats = [require_supported_format(source) for source in sources]
        total = len(sources)
        items: list[BatchItem] = []
        failures = 0

        with self._telemetry("batch", total_files=total):
            for index, (source, detected) in enumerate(zip(sources, formats), start=1):
                emit = _scoped_progress(on_progress, index, total, source.name)
                result, failed = await self._process_one(
                    source, detected, options, emit, token
                )
                failures += failed
                items.append(BatchItem(file_name=source.name, result=result))

        self._telemetry.count("batch.files", total)
        self._telemetry.count("batch.failures", failures)
        log.info(
            "Processed %d file(s) sequentially (%d degraded by errors)", total, failures
        )
        return BatchResult(results=tuple(items), merged_text=merge_results(items))

    async def _process_one(
        self,
        source: SourceFile,
        detected: DetectedFormat,
        options: DispatchOptions,
        emit: ProgressCallback | None,
        token: CancellationToken | None,
    ) -> tuple[ExtractionResult, bool]:
        if emit is not None:
            emit(ProgressEvent(stage=ProgressStage.VALIDATING, message="Validating file"))
        try:
            validate_source_file(source, detected, max_file_size=options.max_file_size)
            result = await self.dispatcher.dispatch(source, options, emit, token)
        except ExtractionCancelledError:
            if emit is not None:
                emit(ProgressEvent(stage=ProgressStage.ERROR, message="Cancelled"))
            raise
        except ClinicalOcrError as e:
            log.warning("Extraction failed for %s: %s", source.name, e)
            if emit is not None:
                emit(ProgressEvent(stage=ProgressStage.ERROR, message=str(e)))
            return self._degraded(detected, options, str(e)), True

        if emit is not None:
            emit(
                ProgressEvent(
                    stage=ProgressStage.COMPLETE,
                    message="File processed",
                    fraction_complete=1.0,
                )
            )
        return result, False

    @staticmethod
    def _degraded(
        detected: DetectedFormat, options: DispatchOptions, message: str
    ) -> ExtractionResult:
        match detected.kind:
            case FileKind.PDF:
                method = ExtractionMethod.PDF_TEXT
            case FileKind.IMAGE:
                method = (
                    ExtractionMethod.VISION
                    if options.use_remote_vision
                    else ExtractionMethod.IMAGE_OCR
                )
            case _:
                typing.assert_never(detected.kind)
        return ExtractionResult(
            text="", method=method, warnings=(message or "Extraction failed",)
        )
