"""Configuration resolution with precedence handling.

Merges configuration from every source according to the documented order:
Programmatic > Environment > Project file > Defaults
"""

import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from clinical_ocr.core.exceptions import ConfigurationError

from .file_loader import FileConfigLoader
from .schema import ClinicalOcrSettings
from .types import ConfigOrigin, FrozenConfig

log = logging.getLogger(__name__)

ENV_PREFIX = "CLINICAL_OCR_"
PROFILE_ENV_VAR = f"{ENV_PREFIX}PROFILE"


class ConfigResolver:
    """Resolves configuration from multiple sources with proper precedence."""

    def __init__(self, file_loader: FileConfigLoader | None = None) -> None:
        """Initialize the configuration resolver."""
        self.file_loader = file_loader or FileConfigLoader()

    def resolve(
        self,
        programmatic: dict[str, Any] | None = None,
        *,
        profile: str | None = None,
        project_root: Path | None = None,
    ) -> FrozenConfig:
        """Resolve configuration from all sources with proper precedence.

        Args:
            programmatic: Programmatic overrides (highest precedence)
            profile: Profile name to load from pyproject.toml; falls back to
                    CLINICAL_OCR_PROFILE when None
            project_root: Directory to search for pyproject.toml

        Returns:
            FrozenConfig with merged values and per-field origins.

        Raises:
            ConfigFileError: If pyproject.toml is malformed or the profile is unknown.
            ConfigurationError: If the merged values fail validation.
        """
        known = ClinicalOcrSettings.model_fields
        merged: dict[str, Any] = {}
        origin: dict[str, ConfigOrigin] = {}

        if profile is None:
            profile = os.getenv(PROFILE_ENV_VAR) or None

        # Step 1: schema defaults (read directly so the environment is not consulted)
        for name, info in known.items():
            merged[name] = info.get_default(call_default_factory=True)
            origin[name] = "default"

        # Step 2-4: file, environment, programmatic
        layers: tuple[tuple[ConfigOrigin, dict[str, Any]], ...] = (
            ("file", self.file_loader.load_project_config(project_root, profile)),
            ("env", self._load_env_config()),
            ("programmatic", dict(programmatic or {})),
        )
        for layer_origin, values in layers:
            for name, value in values.items():
                if name not in known:
                    log.debug("Ignoring unknown %s config field %r", layer_origin, name)
                    continue
                merged[name] = value
                origin[name] = layer_origin

        # Step 5: validate the final configuration once
        try:
            settings = ClinicalOcrSettings(**merged)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        config = FrozenConfig(**settings.to_dict(), origin=origin)
        log.debug("Resolved configuration: %s", config)
        return config

    def _load_env_config(self) -> dict[str, Any]:
        """Collect CLINICAL_OCR_* variables that are actually set.

        Raw strings are returned; coercion happens during final validation.
        """
        values: dict[str, Any] = {}
        for name in ClinicalOcrSettings.model_fields:
            env_var = f"{ENV_PREFIX}{name.upper()}"
            if env_var in os.environ:
                values[name] = os.environ[env_var]
        return values

    def list_available_profiles(self, project_root: Path | None = None) -> list[str]:
        """List profile names declared in pyproject.toml."""
        return self.file_loader.list_available_profiles(project_root)
