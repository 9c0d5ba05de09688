"""Scenario-first convenience helpers.

Thin entry points over the orchestrator for callers that just want text out
of a few files, without wiring engines themselves.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from clinical_ocr.config import FrozenConfig, resolve_config
from clinical_ocr.pipeline.batch import BatchOrchestrator

if TYPE_CHECKING:
    from collections.abc import Sequence

    from clinical_ocr.core.types import BatchResult, ExtractionResult, ProgressCallback
    from clinical_ocr.pipeline.batch import FileInput
    from clinical_ocr.remote.cancellation import CancellationToken


async def extract_documents(
    files: Sequence[FileInput],
    *,
    cfg: FrozenConfig | None = None,
    on_progress: ProgressCallback | None = None,
    token: CancellationToken | None = None,
    **wiring: Any,
) -> BatchResult:
    """Extract text from several documents, one at a time.

    Args:
        files: Paths or `SourceFile` objects.
        cfg: Frozen configuration. If omitted, `resolve_config()` is used.
        on_progress: Optional progress callback.
        token: Optional cancellation token for remote calls.
        **wiring: Collaborators forwarded to `MethodDispatcher.from_config`
            (`store`, `recognizer`, `adapter`, `telemetry`).

    Returns:
        Ordered per-file results and the merged text.

    Example:
        ```python
        result = await extract_documents(["lab.pdf", "scan.jpg"])
        print(result.merged_text)
        ```
    """
    config = cfg or resolve_config()
    orchestrator = BatchOrchestrator.from_config(config, **wiring)
    return await orchestrator.run_sequential(
        files, on_progress=on_progress, token=token
    )


async def extract_document(
    file: FileInput,
    *,
    cfg: FrozenConfig | None = None,
    on_progress: ProgressCallback | None = None,
    token: CancellationToken | None = None,
    **wiring: Any,
) -> ExtractionResult:
    """Extract text from a single document; see `extract_documents`."""
    batch = await extract_documents(
        [file], cfg=cfg, on_progress=on_progress, token=token, **wiring
    )
    return batch.results[0].result
