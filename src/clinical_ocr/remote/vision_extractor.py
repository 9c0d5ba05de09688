"""Paid remote extraction with caching and cost accounting.

Flow per call: content-addressed cache lookup, instruction selection, one
adapter call raced against the cancellation token, then cache write and cost
tracking. Nothing is retried, and nothing is cached or tracked on failure.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from clinical_ocr import constants
from clinical_ocr.cache.result_cache import ResultCache, cache_key
from clinical_ocr.cache.store import KeyValueStore, open_store
from clinical_ocr.core.exceptions import ClinicalOcrError
from clinical_ocr.core.types import (
    DocumentType,
    ImagePayload,
    ProgressCallback,
    ProgressEvent,
    ProgressStage,
    RemoteExtractionResult,
)
from clinical_ocr.cost_tracker import CostTracker, calculate_cost
from clinical_ocr.telemetry import TelemetryContext

from .adapters import (
    VisionAdapter,
    VisionRequest,
    VisionResponse,
    build_vision_adapter,
)
from .errors import classify_remote_failure
from .prompts import build_instruction

if TYPE_CHECKING:
    from clinical_ocr.config import FrozenConfig
    from clinical_ocr.telemetry import TelemetryContextProtocol

    from .cancellation import CancellationToken

log = logging.getLogger(__name__)


def estimate_confidence(text: str) -> float:
    """Heuristic confidence from length and structural markers."""
    if len(text) < 50:
        return 0.3
    if "{" in text and "}" in text:
        return 0.9
    if len(text) > 200:
        return 0.8
    return 0.6


def join_content_blocks(response: VisionResponse) -> str:
    """Join the response's text blocks with newlines and trim."""
    return "\n".join(block for block in response.content_blocks if block).strip()


class VisionExtractor:
    """Remote vision extraction backed by a cache and a cost tracker."""

    def __init__(
        self,
        adapter: VisionAdapter,
        cache: ResultCache,
        cost_tracker: CostTracker,
        *,
        model: str = constants.DEFAULT_VISION_MODEL,
        max_output_tokens: int = constants.VISION_MAX_OUTPUT_TOKENS,
        input_per_1k: float = constants.COST_INPUT_PER_1K,
        output_per_1k: float = constants.COST_OUTPUT_PER_1K,
        cache_ttl_seconds: int = constants.CACHE_TTL_SECONDS,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self.adapter = adapter
        self.cache = cache
        self.cost_tracker = cost_tracker
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.input_per_1k = input_per_1k
        self.output_per_1k = output_per_1k
        self.cache_ttl_seconds = cache_ttl_seconds
        self._telemetry = telemetry or TelemetryContext()

    @classmethod
    def from_config(
        cls,
        config: FrozenConfig,
        *,
        store: KeyValueStore | None = None,
        adapter: VisionAdapter | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> VisionExtractor:
        """Wire an extractor from resolved configuration.

        The cache and cost tracker share one store, opened from
        `config.store_path` when `store` is not given.
        """
        shared = store if store is not None else open_store(config.store_path)
        return cls(
            adapter if adapter is not None else build_vision_adapter(config),
            ResultCache(shared),
            CostTracker(shared),
            model=config.model,
            max_output_tokens=config.max_output_tokens,
            input_per_1k=config.input_per_1k,
            output_per_1k=config.output_per_1k,
            cache_ttl_seconds=config.cache_ttl_seconds,
            telemetry=telemetry,
        )

    async def extract(
        self,
        payload: ImagePayload,
        document_type: DocumentType = DocumentType.GENERIC,
        *,
        token: CancellationToken | None = None,
        bypass_cache: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> RemoteExtractionResult:
        """Extract text from a preprocessed image.

        Args:
            payload: Output of the preprocessor.
            document_type: Selects the instruction template.
            token: Aborts the in-flight call when cancelled.
            bypass_cache: Skip the lookup; the fresh result is still cached.
            on_progress: Receives remote and parsing progress events.

        Returns:
            The remote result; `from_cache=True` and `cost=0.0` on a hit.

        Raises:
            ExtractionCancelledError: If `token` fired before the call returned.
            RemoteServiceError: Typed by status for any failed call.
        """
        document_type = DocumentType.parse(document_type)
        key = cache_key(payload.data, payload.mime_type.value, document_type)
        tele = self._telemetry

        if not bypass_cache:
            entry = self.cache.get(key)
            if entry is not None:
                tele.count("vision.cache_hit")
                log.debug("Serving %s extraction from cache", document_type.value)
                return RemoteExtractionResult(
                    extracted_text=entry.result.extracted_text,
                    confidence=entry.result.confidence,
                    tokens_used=entry.result.tokens_used,
                    cost=0.0,
                    processing_time_ms=entry.result.processing_time_ms,
                    from_cache=True,
                )

        if token is not None:
            token.raise_if_cancelled()

        request = VisionRequest(
            data=payload.data,
            mime_type=payload.mime_type.value,
            instruction=build_instruction(document_type),
            max_output_tokens=self.max_output_tokens,
            model=self.model,
        )
        self._report(
            on_progress, ProgressStage.EXTRACTING_REMOTE, "Calling remote service"
        )
        log.info(
            "Remote extraction: model=%s type=%s payload=%d bytes",
            self.model,
            document_type.value,
            payload.byte_size,
        )

        start = time.perf_counter()
        with tele("vision.generate", document_type=document_type.value):
            response = await self._call(request, token)
        processing_time_ms = round((time.perf_counter() - start) * 1000)

        self._report(on_progress, ProgressStage.PARSING, "Reading remote response")
        text = join_content_blocks(response)
        cost = calculate_cost(
            response.input_tokens,
            response.output_tokens,
            input_per_1k=self.input_per_1k,
            output_per_1k=self.output_per_1k,
        )
        result = RemoteExtractionResult(
            extracted_text=text,
            confidence=estimate_confidence(text),
            tokens_used=response.input_tokens + response.output_tokens,
            cost=cost,
            processing_time_ms=processing_time_ms,
        )

        self.cache.set(key, result, self.cache_ttl_seconds)
        self.cost_tracker.track(cost)
        tele.metric("vision.cost", cost)
        tele.count("vision.tokens", result.tokens_used)
        log.info(
            "Remote extraction finished: %d tokens, cost %.6f, %d ms",
            result.tokens_used,
            cost,
            processing_time_ms,
        )
        return result

    async def _call(
        self, request: VisionRequest, token: CancellationToken | None
    ) -> VisionResponse:
        try:
            if token is None:
                return await self.adapter.generate(request)
            return await token.guard(self.adapter.generate(request))
        except ClinicalOcrError:
            raise
        except Exception as e:
            raise classify_remote_failure(e) from e

    @staticmethod
    def _report(
        on_progress: ProgressCallback | None, stage: ProgressStage, message: str
    ) -> None:
        if on_progress is not None:
            on_progress(ProgressEvent(stage=stage, message=message))
