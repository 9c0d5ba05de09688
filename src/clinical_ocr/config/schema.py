"""Configuration schema and validation using Pydantic.

This module defines the settings schema that validates and coerces configuration
values from various sources (environment, files, programmatic) into the correct
types with proper defaults.
"""

from pathlib import Path
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from clinical_ocr import constants
from clinical_ocr.core.types import DocumentType


class ClinicalOcrSettings(BaseSettings):
    """Pydantic settings schema for the extraction pipeline.

    Integrates with environment variables using the CLINICAL_OCR_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="CLINICAL_OCR_",
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Remote service ---

    api_key: str | None = Field(default=None, description="Remote vision API key")
    model: str = Field(
        default=constants.DEFAULT_VISION_MODEL,
        description="Remote vision model identifier",
        min_length=1,
    )
    use_real_api: bool = Field(
        default=False,
        description="Call the real remote service instead of the deterministic mock",
    )
    max_output_tokens: int = Field(default=constants.VISION_MAX_OUTPUT_TOKENS, ge=1)

    # --- Method selection ---

    document_type: DocumentType = Field(default=DocumentType.GENERIC)
    min_chars: int = Field(
        default=constants.DEFAULT_MIN_CHARS,
        ge=0,
        description="Text length below which the fallback heuristic fires",
    )
    prefer_image_ocr: bool = False
    use_remote_vision: bool = Field(
        default=False,
        description="Send raster images to the paid remote extractor",
    )

    # --- Preprocessing ---

    max_bytes: int = Field(default=constants.IMAGE_MAX_BYTES, ge=1)
    max_dimension: int = Field(default=constants.IMAGE_MAX_DIMENSION, ge=16)
    initial_quality: float = Field(default=constants.IMAGE_DEFAULT_QUALITY, gt=0, le=1)
    min_quality: float = Field(default=constants.IMAGE_MIN_QUALITY, gt=0, le=1)
    quality_step: float = Field(default=constants.IMAGE_QUALITY_STEP, gt=0, le=1)

    # --- Cache & cost ---

    cache_ttl_seconds: int = Field(default=constants.CACHE_TTL_SECONDS, ge=1)
    input_per_1k: float = Field(default=constants.COST_INPUT_PER_1K, ge=0)
    output_per_1k: float = Field(default=constants.COST_OUTPUT_PER_1K, ge=0)
    cache_read_per_1k: float = Field(
        default=constants.COST_CACHE_READ_PER_1K,
        ge=0,
        description="Informational only; cache hits are never charged",
    )
    store_path: Path | None = Field(
        default=None,
        description="JSON file backing the cache and cost store; memory when unset",
    )

    # --- Local engines ---

    ocr_language: str = Field(default=constants.OCR_LANGUAGE_HINT, min_length=1)
    ocr_enhance: bool = True
    max_file_size: int = Field(default=constants.MAX_FILE_SIZE, ge=1)

    # --- Validation Rules ---

    @field_validator("document_type", mode="before")
    @classmethod
    def parse_document_type(cls, v: Any) -> DocumentType:
        """Parse the document type from a string or enum value."""
        return DocumentType.parse(v)

    @model_validator(mode="after")
    def validate_quality_bounds(self) -> "ClinicalOcrSettings":
        """Ensure the quality floor does not exceed the starting quality."""
        if self.min_quality > self.initial_quality:
            raise ValueError(
                f"min_quality ({self.min_quality}) must not exceed "
                f"initial_quality ({self.initial_quality})"
            )
        return self

    @model_validator(mode="after")
    def validate_api_key_requirement(self) -> "ClinicalOcrSettings":
        """Ensure api_key is provided when use_real_api is True."""
        if self.use_real_api and not self.api_key:
            raise ValueError(
                "api_key is required when use_real_api=True. "
                "Set CLINICAL_OCR_API_KEY, provide it in pyproject.toml, "
                "or pass it programmatically."
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary of resolved field values."""
        return {name: getattr(self, name) for name in type(self).model_fields}
