"""File-based configuration loading with profile support.

Configuration lives in the project's pyproject.toml under
`[tool.clinical_ocr]`, with named profiles under
`[tool.clinical_ocr.profiles.<name>]`.
"""

from pathlib import Path
import tomllib
from typing import Any

from clinical_ocr.core.exceptions import ConfigurationError

_TOOL_SECTION = "clinical_ocr"


class ConfigFileError(ConfigurationError):
    """Raised when configuration file loading fails."""

    def __init__(
        self, file_path: Path, message: str, cause: Exception | None = None
    ) -> None:
        """Initialize with file path, message, and optional cause.

        Args:
            file_path: The file that failed to load
            message: Human-readable error message
            cause: The underlying exception that caused the failure
        """
        self.file_path = file_path
        self.message = message
        self.cause = cause
        super().__init__(f"Config file error in {file_path}: {message}")


class FileConfigLoader:
    """Loads configuration from pyproject.toml with profile support."""

    def load_project_config(
        self, project_root: Path | None = None, profile: str | None = None
    ) -> dict[str, Any]:
        """Load configuration from pyproject.toml in the project root.

        Args:
            project_root: Directory to search for pyproject.toml. If None,
                         searches current directory and parents.
            profile: Optional profile name whose values are layered over the
                    base `[tool.clinical_ocr]` table.

        Returns:
            Dictionary of configuration values from the file.
            Empty dict if file doesn't exist or has no clinical_ocr section.

        Raises:
            ConfigFileError: If the file cannot be parsed or the profile is unknown.
        """
        pyproject_path = self._find_pyproject_toml(project_root)
        if not pyproject_path:
            return {}

        section = self._read_section(pyproject_path)
        profiles = section.pop("profiles", {}) or {}

        if profile:
            if profile not in profiles:
                raise ConfigFileError(
                    pyproject_path,
                    f"Profile '{profile}' not found. "
                    f"Available profiles: {sorted(profiles)}",
                )
            section.update(profiles[profile])
        return section

    def list_available_profiles(self, project_root: Path | None = None) -> list[str]:
        """List profile names declared in pyproject.toml.

        Args:
            project_root: Directory to search for pyproject.toml

        Returns:
            Sorted profile names; empty when the file is missing or unreadable.
        """
        pyproject_path = self._find_pyproject_toml(project_root)
        if not pyproject_path:
            return []
        try:
            section = self._read_section(pyproject_path)
        except ConfigFileError:
            return []
        return sorted(section.get("profiles", {}) or {})

    def _read_section(self, pyproject_path: Path) -> dict[str, Any]:
        try:
            with pyproject_path.open(mode="rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigFileError(
                pyproject_path, f"Failed to parse TOML: {e}", cause=e
            ) from e
        section = data.get("tool", {}).get(_TOOL_SECTION, {})
        if not isinstance(section, dict):
            raise ConfigFileError(
                pyproject_path, f"[tool.{_TOOL_SECTION}] must be a table"
            )
        return dict(section)

    def _find_pyproject_toml(self, start_dir: Path | None = None) -> Path | None:
        """Find pyproject.toml by searching up the directory tree.

        Args:
            start_dir: Directory to start searching from. If None, uses current directory.

        Returns:
            Path to pyproject.toml if found, None otherwise.
        """
        current = Path(start_dir or Path.cwd()).resolve()
        for candidate_dir in (current, *current.parents):
            pyproject_path = candidate_dir / "pyproject.toml"
            if pyproject_path.exists():
                return pyproject_path
        return None
