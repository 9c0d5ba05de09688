"""Unit tests for configuration resolution.

These tests verify the core behaviors of the configuration module:
- Precedence of programmatic > environment > pyproject.toml > defaults.
- Profile selection from arguments and the environment.
- Validation failures surfacing as ConfigurationError.
- Redaction of secrets in every string form of the frozen config.
"""

import dataclasses
from pathlib import Path

import pytest

from clinical_ocr.config import (
    ConfigFileError,
    list_available_profiles,
    resolve_config,
)
from clinical_ocr.core.exceptions import ConfigurationError
from clinical_ocr.core.types import DocumentType

pytestmark = pytest.mark.unit

PYPROJECT = """\
[project]
name = "clinic-app"

[tool.clinical_ocr]
min_chars = 60
document_type = "lab_report"
store_path = ".clinical_ocr/store.json"

[tool.clinical_ocr.profiles.remote]
use_remote_vision = true
min_chars = 25

[tool.clinical_ocr.profiles.strict]
prefer_image_ocr = true
"""


@pytest.fixture
def project(tmp_path) -> Path:
    (tmp_path / "pyproject.toml").write_text(PYPROJECT, encoding="utf-8")
    return tmp_path


class TestDefaults:
    def test_defaults_when_no_sources(self, tmp_path):
        config = resolve_config(project_root=tmp_path)

        assert config.min_chars == 40
        assert config.document_type is DocumentType.GENERIC
        assert config.use_remote_vision is False
        assert config.use_real_api is False
        assert config.store_path is None
        assert config.ocr_language == "spa+eng"
        assert config.max_bytes == 800 * 1024
        assert set(config.origin.values()) == {"default"}

    def test_config_is_frozen(self, tmp_path):
        config = resolve_config(project_root=tmp_path)

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.min_chars = 1  # type: ignore[misc]


class TestPrecedence:
    def test_project_file_overrides_defaults(self, project):
        config = resolve_config(project_root=project)

        assert config.min_chars == 60
        assert config.document_type is DocumentType.LAB_REPORT
        assert config.store_path == Path(".clinical_ocr/store.json")
        assert config.origin["min_chars"] == "file"
        assert config.origin["max_bytes"] == "default"

    def test_profile_is_layered_over_base_section(self, project):
        config = resolve_config(profile="remote", project_root=project)

        assert config.use_remote_vision is True
        assert config.min_chars == 25
        assert config.document_type is DocumentType.LAB_REPORT

    def test_profile_from_environment(self, project, monkeypatch):
        monkeypatch.setenv("CLINICAL_OCR_PROFILE", "strict")

        config = resolve_config(project_root=project)

        assert config.prefer_image_ocr is True

    def test_environment_overrides_file(self, project, monkeypatch):
        monkeypatch.setenv("CLINICAL_OCR_MIN_CHARS", "70")
        monkeypatch.setenv("CLINICAL_OCR_USE_REMOTE_VISION", "true")

        config = resolve_config(project_root=project)

        assert config.min_chars == 70
        assert config.use_remote_vision is True
        assert config.origin["min_chars"] == "env"

    def test_programmatic_overrides_everything(self, project, monkeypatch):
        monkeypatch.setenv("CLINICAL_OCR_MIN_CHARS", "70")

        config = resolve_config({"min_chars": 90}, project_root=project)

        assert config.min_chars == 90
        assert config.origin["min_chars"] == "programmatic"

    def test_unknown_fields_are_ignored(self, tmp_path):
        config = resolve_config({"colour": "blue"}, project_root=tmp_path)
        assert not hasattr(config, "colour")


class TestFileErrors:
    def test_malformed_toml(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text("[tool.clinical_ocr\n", encoding="utf-8")

        with pytest.raises(ConfigFileError) as exc_info:
            resolve_config(project_root=tmp_path)

        assert exc_info.value.file_path == (tmp_path / "pyproject.toml").resolve()
        assert isinstance(exc_info.value, ConfigurationError)

    def test_section_must_be_a_table(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text(
            "[tool]\nclinical_ocr = 5\n", encoding="utf-8"
        )

        with pytest.raises(ConfigFileError, match="must be a table"):
            resolve_config(project_root=tmp_path)

    def test_unknown_profile_lists_available(self, project):
        with pytest.raises(ConfigFileError, match=r"\['remote', 'strict'\]"):
            resolve_config(profile="nightly", project_root=project)

    def test_list_available_profiles(self, project, tmp_path_factory):
        assert list_available_profiles(project) == ["remote", "strict"]
        assert list_available_profiles(tmp_path_factory.mktemp("empty")) == []


class TestValidation:
    def test_out_of_range_value(self, tmp_path):
        with pytest.raises(ConfigurationError, match="min_chars"):
            resolve_config({"min_chars": -1}, project_root=tmp_path)

    def test_bad_document_type(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Invalid document type"):
            resolve_config({"document_type": "prescription"}, project_root=tmp_path)

    def test_real_api_requires_key(self, tmp_path):
        with pytest.raises(ConfigurationError, match="api_key is required"):
            resolve_config({"use_real_api": True}, project_root=tmp_path)

    def test_quality_floor_above_start(self, tmp_path):
        with pytest.raises(ConfigurationError, match="min_quality"):
            resolve_config(
                {"initial_quality": 0.5, "min_quality": 0.8}, project_root=tmp_path
            )


class TestRedaction:
    def test_api_key_never_printed(self, tmp_path):
        config = resolve_config(
            {"api_key": "sk-very-secret", "use_real_api": True}, project_root=tmp_path
        )

        assert config.api_key == "sk-very-secret"
        assert "sk-very-secret" not in str(config)
        assert "sk-very-secret" not in repr(config)
        assert "[REDACTED]" in repr(config)

    def test_audit_reports_origins_without_secrets(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CLINICAL_OCR_API_KEY", "sk-env-secret")

        audit = resolve_config({"min_chars": 12}, project_root=tmp_path).audit()

        assert "api_key: env:<redacted>" in audit.splitlines()
        assert "min_chars: programmatic:12" in audit.splitlines()
        assert "document_type: default:generic" in audit.splitlines()
        assert "sk-env-secret" not in audit
