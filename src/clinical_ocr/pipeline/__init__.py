"""Method dispatch and sequential batch orchestration."""

from .batch import BatchOrchestrator, FileInput, as_source_file, merge_results
from .dispatcher import (
    LOW_QUALITY_TEXT_WARNING,
    PDF_SPARSE_WARNING,
    PDF_UNREADABLE_WARNING,
    DispatchOptions,
    MethodDispatcher,
)

__all__ = [
    "LOW_QUALITY_TEXT_WARNING",
    "PDF_SPARSE_WARNING",
    "PDF_UNREADABLE_WARNING",
    "BatchOrchestrator",
    "DispatchOptions",
    "FileInput",
    "MethodDispatcher",
    "as_source_file",
    "merge_results",
]
