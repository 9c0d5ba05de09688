"""Shared fixtures for the clinical_ocr test suite."""

import os

import pytest

from clinical_ocr.cache.store import InMemoryStore
from tests.helpers import (
    FakeClock,
    FakeRecognizer,
    FakeToday,
    FakeVisionAdapter,
)


@pytest.fixture(autouse=True)
def isolate_clinical_ocr_env(request, monkeypatch):
    """Ensure a clean CLINICAL_OCR_* environment for each test.

    Escape hatch: @pytest.mark.allow_env_pollution keeps the environment.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    for key in list(os.environ):
        if key.startswith("CLINICAL_OCR_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def adapter() -> FakeVisionAdapter:
    return FakeVisionAdapter()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def today() -> FakeToday:
    return FakeToday()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def events() -> list:
    """Collects progress events; pass `events.append` as the callback."""
    return []
