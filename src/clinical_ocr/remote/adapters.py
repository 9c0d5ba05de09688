"""Provider adapters for the remote vision service.

Mock-by-default: `build_vision_adapter` returns the deterministic
`MockVisionAdapter` unless `use_real_api` is set, in which case requests go to
Google's generative models through google-genai.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from clinical_ocr.core.exceptions import ConfigurationError

from .errors import classify_remote_failure

if TYPE_CHECKING:
    from clinical_ocr.config import FrozenConfig

log = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class VisionRequest:
    """One image plus the instruction describing what to extract."""

    data: bytes
    mime_type: str
    instruction: str
    max_output_tokens: int
    model: str


@dataclasses.dataclass(frozen=True, slots=True)
class VisionResponse:
    """Provider-neutral response: text blocks and token usage."""

    content_blocks: tuple[str, ...]
    input_tokens: int = 0
    output_tokens: int = 0


@runtime_checkable
class VisionAdapter(Protocol):
    """Anything that can answer a `VisionRequest`.

    Implementations raise `RemoteServiceError` subclasses for failed calls.
    """

    async def generate(self, request: VisionRequest) -> VisionResponse: ...  # noqa: D102


class MockVisionAdapter:
    """Deterministic adapter used for tests and examples (no network)."""

    def __init__(self) -> None:
        self.call_count = 0

    async def generate(self, request: VisionRequest) -> VisionResponse:
        self.call_count += 1
        digest = hashlib.sha256(request.data).hexdigest()[:12]
        if '"' in request.instruction and "{" in request.instruction:
            text = json.dumps(
                {"mock": True, "digest": digest, "bytes": len(request.data)},
                sort_keys=True,
            )
        else:
            text = (
                f"Mock transcription of a {request.mime_type} document "
                f"({len(request.data)} bytes, digest {digest})."
            )
        return VisionResponse(
            content_blocks=(text,),
            input_tokens=258 + len(request.instruction) // 4,
            output_tokens=max(1, len(text) // 4),
        )


class GoogleGenAIVisionAdapter:
    """Adapter calling Gemini vision models through google-genai."""

    def __init__(self, api_key: str | None = None, client: Any | None = None):
        """Initialize with an API key or a pre-built `genai.Client`."""
        if client is None:
            if not api_key:
                raise ConfigurationError("api_key is required for the real adapter")
            client = genai.Client(api_key=api_key)
        self._client = client

    async def generate(self, request: VisionRequest) -> VisionResponse:
        contents = [
            types.Part.from_bytes(data=request.data, mime_type=request.mime_type),
            request.instruction,
        ]
        config = types.GenerateContentConfig(
            max_output_tokens=request.max_output_tokens
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=request.model, contents=contents, config=config
            )
        except genai_errors.APIError as e:
            raise classify_remote_failure(e) from e

        usage = getattr(response, "usage_metadata", None)
        return VisionResponse(
            content_blocks=self._text_blocks(response),
            input_tokens=int(getattr(usage, "prompt_token_count", None) or 0),
            output_tokens=int(getattr(usage, "candidates_token_count", None) or 0),
        )

    @staticmethod
    def _text_blocks(response: Any) -> tuple[str, ...]:
        blocks: list[str] = []
        for candidate in getattr(response, "candidates", None) or ():
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or ():
                text = getattr(part, "text", None)
                if text:
                    blocks.append(text)
            if blocks:
                # Only the first candidate carrying text is used
                break
        return tuple(blocks)


def build_vision_adapter(config: FrozenConfig) -> VisionAdapter:
    """Select the adapter implied by configuration."""
    if config.use_real_api:
        log.info("Using google-genai vision adapter (model=%s)", config.model)
        return GoogleGenAIVisionAdapter(api_key=config.api_key)
    log.debug("Using deterministic mock vision adapter")
    return MockVisionAdapter()
