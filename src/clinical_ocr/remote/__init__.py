"""Remote vision extraction: adapters, prompts, errors and cancellation."""

from .adapters import (
    GoogleGenAIVisionAdapter,
    MockVisionAdapter,
    VisionAdapter,
    VisionRequest,
    VisionResponse,
    build_vision_adapter,
)
from .cancellation import CancellationToken
from .errors import classify_remote_failure, error_for_status
from .prompts import build_instruction
from .vision_extractor import VisionExtractor, estimate_confidence

__all__ = [
    "CancellationToken",
    "GoogleGenAIVisionAdapter",
    "MockVisionAdapter",
    "VisionAdapter",
    "VisionExtractor",
    "VisionRequest",
    "VisionResponse",
    "build_instruction",
    "build_vision_adapter",
    "classify_remote_failure",
    "error_for_status",
    "estimate_confidence",
]
