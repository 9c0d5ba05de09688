"""Clinical document text extraction.

Pick the cheapest extraction method that is likely to work for each scanned
or photographed document, fall back to the paid remote vision service only
when asked to, and never pay twice for the same document.
"""

import importlib.metadata
import logging

from clinical_ocr.cache import InMemoryStore, JsonFileStore, ResultCache, open_store
from clinical_ocr.config import FrozenConfig, resolve_config
from clinical_ocr.core.exceptions import (
    ClinicalOcrError,
    ConfigurationError,
    ExtractionCancelledError,
    FileValidationError,
    ImageDecodeError,
    LocalExtractionError,
    RemoteAuthError,
    RemoteNotFoundError,
    RemoteRateLimitedError,
    RemoteServerError,
    RemoteServiceError,
    UnsupportedFormatError,
)
from clinical_ocr.core.types import (
    BatchItem,
    BatchResult,
    DocumentType,
    ExtractionMeta,
    ExtractionMethod,
    ExtractionResult,
    ImagePayload,
    ProgressEvent,
    ProgressStage,
    RemoteExtractionResult,
    SourceFile,
)
from clinical_ocr.cost_tracker import CostTracker
from clinical_ocr.frontdoor import extract_document, extract_documents
from clinical_ocr.imaging import PreprocessOptions, preprocess
from clinical_ocr.pipeline import BatchOrchestrator, DispatchOptions, MethodDispatcher
from clinical_ocr.remote import CancellationToken, VisionExtractor
from clinical_ocr.telemetry import TelemetryContext, TelemetryReporter
from clinical_ocr.text import append_study_text, normalize_study_text

# Version handling
try:
    __version__ = importlib.metadata.version("clinical-ocr")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Library logging stays silent unless the application configures handlers
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [  # noqa: RUF022
    # Entry points
    "extract_document",
    "extract_documents",
    "BatchOrchestrator",
    "MethodDispatcher",
    "DispatchOptions",
    "VisionExtractor",
    "CancellationToken",
    "preprocess",
    "PreprocessOptions",
    # Configuration
    "resolve_config",
    "FrozenConfig",
    # State
    "ResultCache",
    "CostTracker",
    "InMemoryStore",
    "JsonFileStore",
    "open_store",
    # Types
    "SourceFile",
    "DocumentType",
    "ExtractionMethod",
    "ExtractionMeta",
    "ExtractionResult",
    "ImagePayload",
    "RemoteExtractionResult",
    "ProgressEvent",
    "ProgressStage",
    "BatchItem",
    "BatchResult",
    # Helpers
    "append_study_text",
    "normalize_study_text",
    # Telemetry
    "TelemetryContext",
    "TelemetryReporter",
    # Exceptions
    "ClinicalOcrError",
    "ConfigurationError",
    "UnsupportedFormatError",
    "FileValidationError",
    "LocalExtractionError",
    "ImageDecodeError",
    "RemoteServiceError",
    "RemoteAuthError",
    "RemoteNotFoundError",
    "RemoteRateLimitedError",
    "RemoteServerError",
    "ExtractionCancelledError",
]
