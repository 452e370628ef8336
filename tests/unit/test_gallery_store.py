"""Tests for restyle.core.gallery_store — session-scoped persistence.

Tests cover:
- Output filename derivation and style sanitization.
- Directory layout created by write().
- write() → read_gallery() round trips regardless of write order.
- Session listing order.
- Listing order within a style, including equal modification times.
- NotFound and path traversal handling.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from restyle.core.errors import NotFoundError, PathTraversalError, PersistenceError
from restyle.core.gallery_store import GalleryStore, output_filename, sanitize_style_name

SESSION = "2025-12-23-14-30-45-123"


class TestFilenames:
    """Test output filename derivation."""

    def test_extension_replaced_by_style_suffix(self):
        """A style with spaces becomes underscores in the PNG name."""
        assert output_filename("cat.JPG", "Oil Painting") == "cat-Oil_Painting.png"

    def test_whitespace_runs_collapse(self):
        """Any run of whitespace collapses to one underscore."""
        assert sanitize_style_name("Water \t  colours") == "Water_colours"

    def test_only_last_extension_stripped(self):
        """Only the final extension is removed from the stem."""
        assert output_filename("archive.tar.gz", "Pop Art") == "archive.tar-Pop_Art.png"

    def test_no_extension(self):
        """A name without an extension keeps its whole stem."""
        assert output_filename("photo", "Baroque") == "photo-Baroque.png"

    def test_directory_parts_dropped(self):
        """Client-supplied directory parts never reach the filename."""
        assert output_filename("../../evil/cat.png", "Baroque") == "cat-Baroque.png"
        assert output_filename("C:\\photos\\cat.png", "Baroque") == "cat-Baroque.png"


class TestWrite:
    """Test GalleryStore.write()."""

    def test_layout(self, store: GalleryStore, png_bytes: bytes):
        """write() creates root/session/style/<stem>-<style>.png."""
        path = store.write(SESSION, "Oil Painting", "cat.JPG", png_bytes)
        assert path == (store.root / SESSION / "Oil_Painting" / "cat-Oil_Painting.png").resolve()
        assert path.read_bytes() == png_bytes

    def test_overwrites_same_triple(self, store: GalleryStore):
        """Same session, style and stem: the last write wins."""
        store.write(SESSION, "Pop Art", "cat.png", b"first")
        path = store.write(SESSION, "Pop Art", "cat.jpg", b"second")
        assert path.read_bytes() == b"second"
        assert store.read_gallery(SESSION).filenames("Pop_Art") == ["cat-Pop_Art.png"]

    def test_os_error_becomes_persistence_error(self, store: GalleryStore):
        """Filesystem errors surface as PersistenceError."""
        with patch.object(Path, "write_bytes", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError, match="disk full"):
                store.write(SESSION, "Pop Art", "cat.png", b"data")

    def test_unsafe_session_rejected(self, store: GalleryStore):
        """An unsafe session id is rejected before anything is written."""
        with pytest.raises(PathTraversalError):
            store.write("..", "Pop Art", "cat.png", b"data")
        assert not (store.root.parent / "Pop_Art").exists()


class TestReadGallery:
    """Test GalleryStore.read_gallery()."""

    def test_round_trip_independent_of_write_order(self, store: GalleryStore):
        """Every write is listed under its style whatever the write order."""
        writes = [
            ("Pop Art", "b.png"),
            ("Oil Painting", "a.png"),
            ("Pop Art", "a.png"),
            ("Oil Painting", "b.png"),
        ]
        for style, name in writes:
            store.write(SESSION, style, name, b"data")

        gallery = store.read_gallery(SESSION)
        assert gallery.session_id == SESSION
        assert set(gallery.styles) == {"Oil_Painting", "Pop_Art"}
        assert sorted(gallery.filenames("Oil_Painting")) == ["a-Oil_Painting.png", "b-Oil_Painting.png"]
        assert sorted(gallery.filenames("Pop_Art")) == ["a-Pop_Art.png", "b-Pop_Art.png"]
        for style, entries in gallery.styles.items():
            for entry in entries:
                assert entry.style_name == style
                assert entry.location.read_bytes() == b"data"

    def test_entries_listed_in_write_order(self, store: GalleryStore):
        """Files within a style are listed oldest write first."""
        first = store.write(SESSION, "Baroque", "zebra.png", b"1")
        second = store.write(SESSION, "Baroque", "ant.png", b"2")
        os.utime(first, ns=(1_000_000_000, 1_000_000_000))
        os.utime(second, ns=(2_000_000_000, 2_000_000_000))
        assert store.read_gallery(SESSION).filenames("Baroque") == ["zebra-Baroque.png", "ant-Baroque.png"]

    def test_equal_mtimes_listed_by_name(self, store: GalleryStore):
        """Writes within one filesystem timestamp tick fall back to name order."""
        first = store.write(SESSION, "Baroque", "zebra.png", b"1")
        second = store.write(SESSION, "Baroque", "ant.png", b"2")
        for path in (first, second):
            os.utime(path, ns=(1_000_000_000, 1_000_000_000))
        assert store.read_gallery(SESSION).filenames("Baroque") == ["ant-Baroque.png", "zebra-Baroque.png"]

    def test_non_image_files_ignored(self, store: GalleryStore):
        """Only png, jpg, jpeg and webp files are listed."""
        store.write(SESSION, "Baroque", "cat.png", b"1")
        (store.root / SESSION / "Baroque" / "notes.txt").write_text("ignore me")
        (store.root / SESSION / "Baroque" / "legacy.JPG").write_bytes(b"2")
        assert sorted(store.read_gallery(SESSION).filenames("Baroque")) == ["cat-Baroque.png", "legacy.JPG"]

    def test_unknown_session_not_found(self, store: GalleryStore):
        """A missing session raises NotFoundError."""
        with pytest.raises(NotFoundError):
            store.read_gallery("1999-01-01-00-00-00-000")

    def test_traversal_rejected(self, store: GalleryStore):
        """A session id escaping the root is rejected."""
        with pytest.raises(PathTraversalError):
            store.read_gallery("../..")


class TestReadImage:
    """Test GalleryStore.read_image()."""

    def test_reads_written_bytes(self, store: GalleryStore, png_bytes: bytes):
        """read_image() returns exactly the bytes written."""
        store.write(SESSION, "Oil Painting", "cat.JPG", png_bytes)
        assert store.read_image(SESSION, "Oil_Painting", "cat-Oil_Painting.png") == png_bytes

    def test_missing_file_in_existing_session(self, store: GalleryStore):
        """A missing file in an existing session raises NotFoundError."""
        store.write(SESSION, "Oil Painting", "cat.png", b"1")
        with pytest.raises(NotFoundError):
            store.read_image(SESSION, "Oil_Painting", "dog-Oil_Painting.png")

    @pytest.mark.parametrize(
        "components",
        [
            ("..", "Oil_Painting", "cat.png"),
            (SESSION, "..", "cat.png"),
            (SESSION, "Oil_Painting", "../../secret.png"),
            (SESSION, "Oil_Painting", "..\\secret.png"),
            (SESSION, "Oil_Painting", ""),
        ],
    )
    def test_traversal_rejected_before_access(self, store: GalleryStore, components):
        """Every unsafe component is rejected before filesystem access."""
        with pytest.raises(PathTraversalError):
            store.read_image(*components)


class TestListSessions:
    """Test GalleryStore.list_sessions()."""

    def test_most_recent_first(self, store: GalleryStore):
        """Sessions are listed newest first."""
        for session in ["2025-01-01-00-00-00-000", "2025-12-31-23-59-59-999", "2025-06-15-12-00-00-500"]:
            store.write(session, "Pop Art", "a.png", b"1")
        assert store.list_sessions() == [
            "2025-12-31-23-59-59-999",
            "2025-06-15-12-00-00-500",
            "2025-01-01-00-00-00-000",
        ]

    def test_missing_root_is_empty(self, temp_dir: Path):
        """A gallery root that does not exist lists no sessions."""
        assert GalleryStore(temp_dir / "nowhere").list_sessions() == []

    def test_files_at_root_ignored(self, store: GalleryStore):
        """Only directories count as sessions."""
        store.write(SESSION, "Pop Art", "a.png", b"1")
        (store.root / "stray.txt").write_text("x")
        assert store.list_sessions() == [SESSION]
