"""Gemini image-model adapter.

:class:`GeminiImageService` implements
:class:`~restyle.core.invoker.ImageService` on top of the ``google-genai``
async client.  Each call sends the instruction text followed by the source
image as an inline part, and returns the first inline image of the first
candidate.  Responses without an image raise
:class:`~restyle.core.errors.NoImageDataError`, which the invoker treats as
an ordinary failed attempt.

Gallery files are always ``.png``, so images returned in another format are
re-encoded with Pillow before they leave this module.
"""

from __future__ import annotations

import io
import logging
from typing import Any

from PIL import Image
from google import genai
from google.genai import types

from restyle.core.errors import NoImageDataError, TransformError

logger = logging.getLogger(__name__)

PNG_MIME_TYPE = "image/png"


def extract_inline_image(response: Any) -> tuple[bytes, str]:
    """Return ``(data, mime_type)`` of the first inline image in ``response``.

    Raises:
        NoImageDataError: If the response has no candidate with image data.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        raise NoImageDataError("No image data in response")

    content = getattr(candidates[0], "content", None)
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            return inline.data, inline.mime_type or PNG_MIME_TYPE

    finish_reason = getattr(candidates[0], "finish_reason", None)
    logger.debug("Gemini candidate without inline image, finish_reason=%s", finish_reason)
    raise NoImageDataError("No image data in response")


def ensure_png(data: bytes, mime_type: str = PNG_MIME_TYPE) -> bytes:
    """Return ``data`` as PNG bytes, converting with Pillow when needed.

    Raises:
        TransformError: If the bytes are not a readable image.
    """
    if mime_type == PNG_MIME_TYPE:
        return data
    try:
        with Image.open(io.BytesIO(data)) as img:
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
    except (OSError, ValueError) as e:
        raise TransformError(f"Could not decode {mime_type} image from response") from e
    return buffer.getvalue()


class GeminiImageService:
    """Re-renders images with a Gemini image model.

    The ``genai.Client`` is created on first use so the application can start
    (and serve its gallery) without an API key.

    Args:
        api_key: Gemini API key.  ``None`` defers to the ``GEMINI_API_KEY``
            environment variable read by the client itself.
        model: Gemini model name.
        client: Pre-built client, mainly for tests.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gemini-2.5-flash-image",
        *,
        client: genai.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def generate(self, prompt: str, image: bytes, mime_type: str) -> bytes:
        contents = [
            types.Part.from_text(text=prompt),
            types.Part.from_bytes(data=image, mime_type=mime_type),
        ]
        response = await self.client.aio.models.generate_content(model=self.model, contents=contents)
        data, returned_mime = extract_inline_image(response)
        return ensure_png(data, returned_mime)
