"""Tests for restyle.core.gemini — the Gemini image-model adapter.

The ``google-genai`` client is replaced with a MagicMock whose
``aio.models.generate_content`` is an AsyncMock, so no network access
occurs.
"""

from __future__ import annotations

import asyncio
import io
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from restyle.core.errors import NoImageDataError, TransformError
from restyle.core.gemini import GeminiImageService, ensure_png, extract_inline_image


def _response(*parts, finish_reason="STOP"):
    content = SimpleNamespace(parts=list(parts))
    return SimpleNamespace(candidates=[SimpleNamespace(content=content, finish_reason=finish_reason)])


def _inline(data: bytes, mime_type: str = "image/png"):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)


def _text(text: str):
    return SimpleNamespace(inline_data=None, text=text)


def _mock_client(response) -> MagicMock:
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=response)
    return client


def _jpeg_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (3, 3), color=(0, 128, 255)).save(buffer, format="JPEG")
    return buffer.getvalue()


class TestExtractInlineImage:
    """Test pulling the first inline image out of a response."""

    def test_first_inline_part_after_text(self, png_bytes):
        """The first inline_data part is returned even after a text part."""
        data, mime_type = extract_inline_image(_response(_text("Here you go"), _inline(png_bytes)))
        assert data == png_bytes
        assert mime_type == "image/png"

    def test_no_candidates(self):
        """A response without candidates has no image."""
        with pytest.raises(NoImageDataError):
            extract_inline_image(SimpleNamespace(candidates=[]))

    def test_text_only_response(self):
        """A text-only answer raises NoImageDataError."""
        with pytest.raises(NoImageDataError, match="No image data"):
            extract_inline_image(_response(_text("I cannot do that")))

    def test_candidate_without_content(self):
        """A blocked candidate with no content has no image."""
        response = SimpleNamespace(candidates=[SimpleNamespace(content=None, finish_reason="SAFETY")])
        with pytest.raises(NoImageDataError):
            extract_inline_image(response)


class TestEnsurePng:
    """Test PNG normalisation with Pillow."""

    def test_png_passthrough(self, png_bytes):
        """PNG input is returned as the same object."""
        assert ensure_png(png_bytes, "image/png") is png_bytes

    def test_jpeg_converted(self):
        """JPEG output is re-encoded as PNG at the same size."""
        converted = ensure_png(_jpeg_bytes(), "image/jpeg")
        assert converted.startswith(b"\x89PNG")
        with Image.open(io.BytesIO(converted)) as img:
            assert img.size == (3, 3)

    def test_garbage_raises_transform_error(self):
        """Undecodable bytes raise TransformError."""
        with pytest.raises(TransformError):
            ensure_png(b"not an image", "image/jpeg")


class TestGeminiImageService:
    """Test GeminiImageService against a mocked client."""

    def test_generate_sends_prompt_and_image(self, png_bytes):
        """generate() sends a text part and an inline image part."""
        client = _mock_client(_response(_inline(png_bytes)))
        service = GeminiImageService(model="gemini-2.5-flash-image", client=client)

        result = asyncio.run(service.generate("Convert this image", b"source", "image/jpeg"))

        assert result == png_bytes
        kwargs = client.aio.models.generate_content.await_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash-image"
        text_part, image_part = kwargs["contents"]
        assert text_part.text == "Convert this image"
        assert image_part.inline_data.data == b"source"
        assert image_part.inline_data.mime_type == "image/jpeg"

    def test_generate_converts_non_png(self):
        """Non-PNG results are converted to PNG."""
        client = _mock_client(_response(_inline(_jpeg_bytes(), "image/jpeg")))
        service = GeminiImageService(client=client)

        result = asyncio.run(service.generate("p", b"source", "image/png"))

        assert result.startswith(b"\x89PNG")

    def test_generate_without_image_raises(self):
        """A response with no image raises NoImageDataError."""
        client = _mock_client(_response(_text("no")))
        service = GeminiImageService(client=client)

        with pytest.raises(NoImageDataError):
            asyncio.run(service.generate("p", b"source", "image/png"))

    def test_client_errors_propagate(self):
        """Client exceptions propagate to the retry loop."""
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(side_effect=RuntimeError("503 UNAVAILABLE"))
        service = GeminiImageService(client=client)

        with pytest.raises(RuntimeError, match="503"):
            asyncio.run(service.generate("p", b"source", "image/png"))

    def test_client_created_lazily(self, monkeypatch):
        """The genai client is built on first use, once."""
        created = []

        def fake_client(**kwargs):
            created.append(kwargs)
            return MagicMock()

        monkeypatch.setattr("restyle.core.gemini.genai.Client", fake_client)
        service = GeminiImageService(api_key="secret")
        assert created == []
        _ = service.client
        _ = service.client
        assert created == [{"api_key": "secret"}]
