"""Mock and google-genai vision adapters."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from google.genai import errors as genai_errors
from google.genai import types
import pytest

from clinical_ocr.config import resolve_config
from clinical_ocr.core.exceptions import ConfigurationError, RemoteRateLimitedError
from clinical_ocr.core.types import DocumentType
from clinical_ocr.remote import (
    GoogleGenAIVisionAdapter,
    MockVisionAdapter,
    VisionRequest,
    build_instruction,
    build_vision_adapter,
)

pytestmark = pytest.mark.unit


def _request(document_type: DocumentType = DocumentType.GENERIC) -> VisionRequest:
    return VisionRequest(
        data=b"\xff\xd8\xff" + b"\x01" * 100,
        mime_type="image/jpeg",
        instruction=build_instruction(document_type),
        max_output_tokens=2048,
        model="gemini-2.0-flash",
    )


def _response(*texts, prompt_tokens=300, output_tokens=20):
    return SimpleNamespace(
        candidates=[
            SimpleNamespace(
                content=SimpleNamespace(parts=[SimpleNamespace(text=t) for t in texts])
            )
        ],
        usage_metadata=SimpleNamespace(
            prompt_token_count=prompt_tokens, candidates_token_count=output_tokens
        ),
    )


class TestMockVisionAdapter:
    @pytest.mark.asyncio
    async def test_generic_request_gets_plain_transcription(self):
        adapter = MockVisionAdapter()
        request = _request()

        response = await adapter.generate(request)

        (text,) = response.content_blocks
        assert text.startswith("Mock transcription of a image/jpeg document (103 bytes")
        assert response.input_tokens == 258 + len(request.instruction) // 4
        assert response.output_tokens == len(text) // 4
        assert adapter.call_count == 1

    @pytest.mark.asyncio
    async def test_structured_request_gets_json(self):
        response = await MockVisionAdapter().generate(_request(DocumentType.LAB_REPORT))

        payload = json.loads(response.content_blocks[0])
        assert payload["mock"] is True
        assert payload["bytes"] == 103

    @pytest.mark.asyncio
    async def test_is_deterministic(self):
        first = await MockVisionAdapter().generate(_request())
        second = await MockVisionAdapter().generate(_request())
        assert first == second


class TestGoogleGenAIVisionAdapter:
    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(
            return_value=_response("Hemoglobina 13.8", None, "Glucemia 92")
        )
        return client

    @pytest.mark.asyncio
    async def test_sends_image_part_and_instruction(self, client):
        request = _request(DocumentType.FORM)

        await GoogleGenAIVisionAdapter(client=client).generate(request)

        kwargs = client.aio.models.generate_content.await_args.kwargs
        image_part, instruction = kwargs["contents"]
        assert kwargs["model"] == "gemini-2.0-flash"
        assert isinstance(image_part, types.Part)
        assert image_part.inline_data.mime_type == "image/jpeg"
        assert instruction == request.instruction
        assert kwargs["config"].max_output_tokens == 2048

    @pytest.mark.asyncio
    async def test_collects_text_blocks_and_usage(self, client):
        response = await GoogleGenAIVisionAdapter(client=client).generate(_request())

        assert response.content_blocks == ("Hemoglobina 13.8", "Glucemia 92")
        assert (response.input_tokens, response.output_tokens) == (300, 20)

    @pytest.mark.asyncio
    async def test_missing_usage_counts_as_zero(self, client):
        client.aio.models.generate_content.return_value = SimpleNamespace(
            candidates=[], usage_metadata=None
        )

        response = await GoogleGenAIVisionAdapter(client=client).generate(_request())

        assert response.content_blocks == ()
        assert (response.input_tokens, response.output_tokens) == (0, 0)

    @pytest.mark.asyncio
    async def test_api_errors_are_classified(self, client):
        client.aio.models.generate_content.side_effect = genai_errors.APIError(
            429,
            {
                "error": {
                    "code": 429,
                    "message": "Resource has been exhausted",
                    "status": "RESOURCE_EXHAUSTED",
                }
            },
        )

        with pytest.raises(RemoteRateLimitedError):
            await GoogleGenAIVisionAdapter(client=client).generate(_request())

    def test_requires_key_or_client(self):
        with pytest.raises(ConfigurationError, match="api_key"):
            GoogleGenAIVisionAdapter()


class TestBuildVisionAdapter:
    def test_mock_by_default(self, tmp_path):
        config = resolve_config(project_root=tmp_path)
        assert isinstance(build_vision_adapter(config), MockVisionAdapter)

    def test_real_adapter_when_enabled(self, tmp_path):
        config = resolve_config(
            {"use_real_api": True, "api_key": "test-key"}, project_root=tmp_path
        )

        with patch("clinical_ocr.remote.adapters.genai.Client") as client_cls:
            adapter = build_vision_adapter(config)

        assert isinstance(adapter, GoogleGenAIVisionAdapter)
        client_cls.assert_called_once_with(api_key="test-key")
