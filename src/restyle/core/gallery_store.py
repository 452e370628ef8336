"""File-backed gallery storage for transformed images.

The gallery uses the filesystem itself as its index:

- each submission owns one directory named after its session id
- each requested style owns one subdirectory, named after the style with
  whitespace runs collapsed to ``_``
- each output is a PNG named ``{original stem}-{sanitized style}.png``

For example ``cat.JPG`` rendered as ``"Oil Painting"`` in session
``2025-12-23-14-30-45-123`` is stored at::

    outputs/2025-12-23-14-30-45-123/Oil_Painting/cat-Oil_Painting.png

Writes are append-only and unlocked.  Distinct ``(session, style, file)``
triples map to distinct paths, so concurrent writers never touch the same
file unless two uploads share a stem, in which case the last write wins.

Every path component that comes from a client is checked before the
filesystem is touched; see :func:`validate_component`.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from restyle.core.errors import NotFoundError, PathTraversalError, PersistenceError
from restyle.core.models import Gallery, GalleryEntry, SessionId

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".webp"})

_WHITESPACE_RUN = re.compile(r"\s+")
_TRAILING_EXTENSION = re.compile(r"\.[^/.]+$")
_FORBIDDEN_IN_COMPONENT = re.compile(r"[/\\\x00]")


def sanitize_style_name(style_name: str) -> str:
    """Replace every run of whitespace in ``style_name`` with one underscore."""
    return _WHITESPACE_RUN.sub("_", style_name)


def output_filename(original_name: str, style_name: str) -> str:
    """Derive the stored filename for an original upload and a style.

    Directory parts of the original name are dropped and its last extension
    is stripped before ``-{sanitized style}.png`` is appended.

    >>> output_filename("cat.JPG", "Oil Painting")
    'cat-Oil_Painting.png'
    """
    base = re.split(r"[/\\]", original_name)[-1]
    stem = _TRAILING_EXTENSION.sub("", base)
    return f"{stem}-{sanitize_style_name(style_name)}.png"


def validate_component(component: str) -> str:
    """Check that ``component`` names exactly one entry inside a directory.

    Raises:
        PathTraversalError: If the component is empty, ``.`` or ``..``, or
            contains a path separator or NUL byte.
    """
    if not component or component in (".", "..") or _FORBIDDEN_IN_COMPONENT.search(component):
        logger.warning("Path traversal attempt detected: %r", component)
        raise PathTraversalError(f"Invalid path component: {component!r}")
    return component


class GalleryStore:
    """Session-scoped persistence of transformed images.

    Args:
        root: Directory holding one subdirectory per session.  It is created
            lazily by the first write.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _resolve(self, *components: str) -> Path:
        """Join validated components under the root and confirm containment."""
        for component in components:
            validate_component(component)

        root = self.root.resolve()
        path = root.joinpath(*components).resolve()
        if path != root and root not in path.parents:
            logger.warning("Path traversal attempt detected: %s", path)
            raise PathTraversalError("Invalid path: outside of gallery directory")
        return path

    def write(
        self,
        session_id: SessionId,
        style_name: str,
        original_filename: str,
        image_bytes: bytes,
    ) -> Path:
        """Store ``image_bytes`` for one (session, style, original file).

        Missing directories are created; an existing file at the same path is
        overwritten.

        Returns:
            Path of the written file.

        Raises:
            PathTraversalError: If the session or style would escape the root.
            PersistenceError: If the directory or file cannot be written.
        """
        style_dir = sanitize_style_name(style_name)
        filename = output_filename(original_filename, style_name)
        path = self._resolve(session_id, style_dir, filename)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(image_bytes)
        except OSError as e:
            raise PersistenceError(f"Could not save {filename}: {e}") from e

        logger.info("Saved: %s", path)
        return path

    def list_sessions(self) -> list[SessionId]:
        """Return every stored session id, most recent first."""
        if not self.root.is_dir():
            return []
        sessions = [child.name for child in self.root.iterdir() if child.is_dir()]
        return sorted(sessions, reverse=True)

    def read_gallery(self, session_id: SessionId) -> Gallery:
        """Rebuild the gallery listing of one session from disk.

        Style groups are listed by name; images within a group are listed in
        the order they were written, as far as file modification times can
        tell.  Files whose mtimes are equal (writes within one tick of a
        coarse-grained filesystem clock) are listed by name.

        Raises:
            PathTraversalError: If ``session_id`` is not a safe component.
            NotFoundError: If the session directory does not exist.
        """
        session_dir = self._resolve(session_id)
        if not session_dir.is_dir():
            raise NotFoundError(f"Gallery not found: {session_id}")

        gallery = Gallery(session_id=session_id)
        for style_dir in sorted((d for d in session_dir.iterdir() if d.is_dir()), key=lambda d: d.name):
            images = [
                f for f in style_dir.iterdir() if f.is_file() and f.suffix.lower() in IMAGE_EXTENSIONS
            ]
            images.sort(key=lambda f: (f.stat().st_mtime_ns, f.name))
            gallery.styles[style_dir.name] = [
                GalleryEntry(style_name=style_dir.name, filename=f.name, location=f) for f in images
            ]
        return gallery

    def read_image(self, session_id: SessionId, style_name: str, filename: str) -> bytes:
        """Return the bytes of one stored image.

        Raises:
            PathTraversalError: If any component is not a safe component.
            NotFoundError: If the file does not exist.
        """
        path = self._resolve(session_id, style_name, filename)
        if not path.is_file():
            raise NotFoundError(f"Image not found: {session_id}/{style_name}/{filename}")
        return path.read_bytes()
