"""Command-line entry point.

Usage:
    python -m clinical_ocr lab.pdf scan.jpg
    python -m clinical_ocr scan.jpg --remote --document-type lab_report
    python -m clinical_ocr lab.pdf --json
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
from enum import Enum
import json
import logging
import sys
from typing import Any

from clinical_ocr.config import resolve_config
from clinical_ocr.core.exceptions import (
    ClinicalOcrError,
    ConfigurationError,
    UnsupportedFormatError,
)
from clinical_ocr.core.types import BatchResult, DocumentType, ProgressEvent
from clinical_ocr.frontdoor import extract_documents

# ruff: noqa: T201

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_UNSUPPORTED_FORMAT = 2


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for `python -m clinical_ocr`."""
    parser = argparse.ArgumentParser(
        prog="python -m clinical_ocr",
        description="Extract plain text from clinical PDFs and images",
    )
    parser.add_argument("files", nargs="+", help="PDF or image files, in order")
    parser.add_argument(
        "--remote",
        action="store_true",
        help="Send raster images to the remote vision service",
    )
    parser.add_argument(
        "--document-type",
        choices=[t.value for t in DocumentType],
        help="Instruction template for remote extraction",
    )
    parser.add_argument(
        "--min-chars",
        type=int,
        help="Text length below which a low-yield warning is attached",
    )
    parser.add_argument(
        "--prefer-image-ocr",
        action="store_true",
        help="Suppress the sparse-PDF warning",
    )
    parser.add_argument("--profile", help="Configuration profile to use")
    parser.add_argument(
        "--json", action="store_true", help="Print per-file results as JSON"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log progress to stderr"
    )
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.remote:
        overrides["use_remote_vision"] = True
    if args.document_type:
        overrides["document_type"] = args.document_type
    if args.min_chars is not None:
        overrides["min_chars"] = args.min_chars
    if args.prefer_image_ocr:
        overrides["prefer_image_ocr"] = True
    return overrides


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_jsonable(v) for v in value]
    return value


def result_to_json(batch: BatchResult) -> str:
    """Serialize a batch result for `--json` output."""
    payload = {
        "results": [
            {"file_name": item.file_name, **dataclasses.asdict(item.result)}
            for item in batch.results
        ],
        "merged_text": batch.merged_text,
    }
    return json.dumps(_jsonable(payload), ensure_ascii=False, indent=2)


def _print_progress(event: ProgressEvent) -> None:
    position = (
        f"[{event.file_index}/{event.total_files}] " if event.file_index else ""
    )
    print(
        f"{position}{event.file_name or ''}: {event.stage.value} {event.message or ''}",
        file=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(
            level=logging.INFO, format="%(levelname)s %(name)s: %(message)s"
        )

    try:
        config = resolve_config(_overrides(args), profile=args.profile)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    try:
        batch = asyncio.run(
            extract_documents(
                args.files,
                cfg=config,
                on_progress=_print_progress if args.verbose else None,
            )
        )
    except UnsupportedFormatError as e:
        print(str(e), file=sys.stderr)
        return EXIT_UNSUPPORTED_FORMAT
    except (ClinicalOcrError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    print(result_to_json(batch) if args.json else batch.merged_text)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
