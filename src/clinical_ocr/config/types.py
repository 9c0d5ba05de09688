"""Core configuration data types for the extraction pipeline.

Configuration follows the resolve-once, freeze-then-flow pattern: sources are
merged and validated exactly once, then an immutable `FrozenConfig` is handed
to every component.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Literal

from clinical_ocr.core.types import DocumentType

# --- Source Tracking Types ---

ConfigOrigin = Literal["programmatic", "env", "file", "default"]
SourceMap = Mapping[str, ConfigOrigin]

_SENSITIVE_FIELDS = frozenset({"api_key"})


@dataclass(frozen=True)
class FrozenConfig:
    """Immutable configuration shared by the dispatcher and its collaborators.

    Any attempt to modify this object raises `dataclasses.FrozenInstanceError`.
    `origin` records which source supplied each field and is excluded from
    equality.
    """

    api_key: str | None
    model: str
    use_real_api: bool
    document_type: DocumentType
    min_chars: int
    prefer_image_ocr: bool
    use_remote_vision: bool
    max_bytes: int
    max_dimension: int
    initial_quality: float
    min_quality: float
    quality_step: float
    cache_ttl_seconds: int
    input_per_1k: float
    output_per_1k: float
    cache_read_per_1k: float
    max_output_tokens: int
    ocr_language: str
    ocr_enhance: bool
    max_file_size: int
    store_path: Path | None
    origin: SourceMap = field(default_factory=dict, compare=False)

    def __str__(self) -> str:
        """String representation with redacted API key for safe logging."""
        parts = []
        for f in fields(self):
            if f.name == "origin":
                continue
            value = getattr(self, f.name)
            if f.name in _SENSITIVE_FIELDS and value is not None:
                value = "[REDACTED]"
            parts.append(f"{f.name}={value!r}")
        return f"FrozenConfig({', '.join(parts)})"

    def __repr__(self) -> str:
        """Representation with redacted API key for safe debugging."""
        return self.__str__()

    def audit(self) -> str:
        """Redacted report showing where each field value came from.

        Returns:
            One `field: origin:value` line per field, sensitive values hidden.
        """
        lines = []
        for f in fields(self):
            if f.name == "origin":
                continue
            origin = self.origin.get(f.name, "default")
            value = getattr(self, f.name)
            if f.name in _SENSITIVE_FIELDS and value is not None:
                display = "<redacted>"
            elif isinstance(value, DocumentType):
                display = value.value
            else:
                display = str(value)
            lines.append(f"{f.name}: {origin}:{display}")
        return "\n".join(lines)
