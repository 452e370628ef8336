"""Data models shared by the orchestration engine and the gallery store."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

SessionId = str


@dataclass(frozen=True)
class SourceImage:
    """One uploaded image.

    Attributes:
        data: Raw file bytes as uploaded.
        mime_type: MIME type used when sending the bytes to the service.
        original_name: Client-side filename, used to derive output names.
    """

    data: bytes
    mime_type: str
    original_name: str


@dataclass(frozen=True)
class WorkUnit:
    """One (image, style) pair queued for transformation.

    ``sequence_index`` fixes the position of the unit's result in the
    response: ``file_index * style_count + style_index``.
    """

    source: SourceImage
    style_name: str
    sequence_index: int


@dataclass(frozen=True)
class Success:
    """Terminal outcome of a unit whose transformation produced an image."""

    image_bytes: bytes
    mime_type: str = "image/png"


@dataclass(frozen=True)
class Failure:
    """Terminal outcome of a unit that exhausted its retries."""

    message: str


TransformOutcome = Union[Success, Failure]


@dataclass
class ResultRecord:
    """Per-unit result returned to the caller.

    ``persisted`` is only meaningful for successful outcomes: it is ``False``
    when the gallery write failed even though the transformation itself
    succeeded.
    """

    original_name: str
    style_name: str
    outcome: TransformOutcome
    sequence_index: int
    persisted: bool = False
    location: Path | None = None

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, Success)


@dataclass(frozen=True)
class GalleryEntry:
    """A stored output image inside one style group of a session."""

    style_name: str
    filename: str
    location: Path


@dataclass
class Gallery:
    """Read-side view of one session, grouped by sanitized style name."""

    session_id: SessionId
    styles: dict[str, list[GalleryEntry]] = field(default_factory=dict)

    def filenames(self, style_name: str) -> list[str]:
        """Return the filenames stored under ``style_name`` in listing order."""
        return [entry.filename for entry in self.styles.get(style_name, [])]
