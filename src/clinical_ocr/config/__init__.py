"""Configuration management for the extraction pipeline.

Resolve-once, freeze-then-flow: `resolve_config()` merges defaults,
`[tool.clinical_ocr]` in pyproject.toml, CLINICAL_OCR_* environment variables
and programmatic overrides, validates them once, and returns an immutable
`FrozenConfig`.
"""

from pathlib import Path
from typing import Any

from .file_loader import ConfigFileError, FileConfigLoader
from .resolver import ConfigResolver
from .schema import ClinicalOcrSettings
from .types import ConfigOrigin, FrozenConfig, SourceMap

# Global resolver instance for efficient reuse
_resolver = ConfigResolver()


def resolve_config(
    programmatic: dict[str, Any] | None = None,
    *,
    profile: str | None = None,
    project_root: Path | None = None,
) -> FrozenConfig:
    """Resolve configuration from all sources with proper precedence.

    Args:
        programmatic: Dictionary of programmatic overrides (highest precedence).
                     Only known configuration fields are used.
        profile: Profile name to load from pyproject.toml. If None, uses the
                CLINICAL_OCR_PROFILE environment variable if set.
        project_root: Directory to search for pyproject.toml. If None,
                     searches current directory and parents.

    Returns:
        FrozenConfig ready to be passed to the pipeline.

    Raises:
        ConfigFileError: If pyproject.toml exists but is malformed.
        ConfigurationError: If validation fails.

    Example:
        config = resolve_config({"use_remote_vision": True})
    """
    return _resolver.resolve(programmatic, profile=profile, project_root=project_root)


def list_available_profiles(project_root: Path | None = None) -> list[str]:
    """List profile names declared under `[tool.clinical_ocr.profiles]`."""
    return _resolver.list_available_profiles(project_root)


__all__ = [
    "ClinicalOcrSettings",
    "ConfigFileError",
    "ConfigOrigin",
    "ConfigResolver",
    "FileConfigLoader",
    "FrozenConfig",
    "SourceMap",
    "list_available_profiles",
    "resolve_config",
]
