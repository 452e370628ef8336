"""Pydantic response models for the Restyle API.

These models define the JSON schema of every API response.  Field names are
snake_case in Python and serialised with the camelCase keys the browser UI
expects (``originalName``, ``imageData``, ``galleryUrl``...).  Routes are
declared with ``response_model_exclude_none=True`` so a result carries either
``imageData`` or ``error``, never both.

Models
------
TransformResult
    One (image, style) result inside ``POST /api/transform``.
TransformResponse
    Body of ``POST /api/transform``.
GalleryImage / GalleryResponse
    Body of ``GET /api/gallery/{timestamp}``.
GallerySummary / GalleryListResponse
    Body of ``GET /api/galleries``.
"""

from __future__ import annotations

import base64

from pydantic import BaseModel, ConfigDict, Field

from restyle.core.models import ResultRecord, Success


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TransformResult(_CamelModel):
    """Result of one (image, style) unit.

    Attributes:
        original_name: Filename of the uploaded image.
        filter: Style name as submitted.
        image_data: Base64 PNG data (successful units only).
        mime_type: MIME type of ``image_data`` (successful units only).
        saved: Whether the output was written to the gallery (successful
            units only).
        error: Message of the last failed attempt (failed units only).
    """

    original_name: str = Field(..., alias="originalName")
    filter: str
    image_data: str | None = Field(default=None, alias="imageData")
    mime_type: str | None = Field(default=None, alias="mimeType")
    saved: bool | None = None
    error: str | None = None

    @classmethod
    def from_record(cls, record: ResultRecord) -> TransformResult:
        outcome = record.outcome
        if isinstance(outcome, Success):
            return cls(
                original_name=record.original_name,
                filter=record.style_name,
                image_data=base64.b64encode(outcome.image_bytes).decode("ascii"),
                mime_type=outcome.mime_type,
                saved=record.persisted,
            )
        return cls(original_name=record.original_name, filter=record.style_name, error=outcome.message)


class TransformResponse(_CamelModel):
    """Body of ``POST /api/transform``."""

    results: list[TransformResult]
    timestamp: str = Field(..., description="Session id of this submission.")
    gallery_url: str = Field(..., alias="galleryUrl")


class GalleryImage(BaseModel):
    filename: str
    url: str


class GalleryResponse(BaseModel):
    """Body of ``GET /api/gallery/{timestamp}``: images grouped by style."""

    timestamp: str
    filters: dict[str, list[GalleryImage]]


class GallerySummary(BaseModel):
    timestamp: str
    url: str


class GalleryListResponse(BaseModel):
    """Body of ``GET /api/galleries``, most recent session first."""

    galleries: list[GallerySummary]
