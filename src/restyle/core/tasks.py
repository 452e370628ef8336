"""Expansion of an image set and a style set into ordered work units."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from pathlib import PurePosixPath

from restyle.core.errors import InvalidInputError
from restyle.core.models import SourceImage, WorkUnit

logger = logging.getLogger(__name__)

# Extension → MIME type for images sent to the service.  Anything else is
# sent as PNG, which the service accepts for most inputs.
MIME_TYPES: dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}
DEFAULT_MIME_TYPE = "image/png"

_UNSAFE_STYLE_CHARS = re.compile(r"[/\\\x00]")


def infer_mime_type(filename: str) -> str:
    """Infer the MIME type of an image from its file extension.

    Args:
        filename: Original filename (only the extension is used).

    Returns:
        The MIME type, defaulting to ``image/png`` for unknown extensions.
    """
    return MIME_TYPES.get(PurePosixPath(filename).suffix.lower(), DEFAULT_MIME_TYPE)


def source_image(data: bytes, original_name: str) -> SourceImage:
    """Build a :class:`SourceImage` with its MIME type inferred from the name."""
    return SourceImage(data=data, mime_type=infer_mime_type(original_name), original_name=original_name)


def normalize_styles(styles: Sequence[str]) -> list[str]:
    """Clean a requested style list into an ordered, duplicate-free list.

    Names are stripped, blank names are dropped and repeated names keep their
    first position.

    Raises:
        InvalidInputError: If a style name cannot be used as a single gallery
            directory name.
    """
    cleaned: list[str] = []
    for style in styles:
        name = str(style).strip()
        if not name:
            continue
        if _UNSAFE_STYLE_CHARS.search(name) or name in (".", ".."):
            raise InvalidInputError(f"Invalid style name: {name!r}")
        if name not in cleaned:
            cleaned.append(name)
    return cleaned


def build_work_units(images: Sequence[SourceImage], styles: Sequence[str]) -> list[WorkUnit]:
    """Expand images × styles into work units in file-major, style-minor order.

    For each image in input order every style is enumerated in input order
    before advancing to the next image, so unit ``i`` has
    ``sequence_index == i``.

    Args:
        images: Uploaded images in submission order.
        styles: Requested style names in submission order.

    Returns:
        ``len(images) * len(styles)`` work units.

    Raises:
        InvalidInputError: If no images or no usable styles were given.
    """
    if not images:
        raise InvalidInputError("No images uploaded")

    style_list = normalize_styles(styles)
    if not style_list:
        raise InvalidInputError("No filters provided")

    units = [
        WorkUnit(
            source=image,
            style_name=style,
            sequence_index=file_index * len(style_list) + style_index,
        )
        for file_index, image in enumerate(images)
        for style_index, style in enumerate(style_list)
    ]
    logger.debug("Expanded %d image(s) x %d style(s) into %d units", len(images), len(style_list), len(units))
    return units
