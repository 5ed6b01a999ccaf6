"""Unit tests for filesystem storage and the path tracker."""

from pathlib import Path

import pytest


class TestFileSystemStorage:
    """Tests for the default host storage."""

    def test_list_text_files(self, storage):
        """Only content files are listed, as sorted relative POSIX paths."""
        assert storage.list_text_files() == ["journal/monday.md", "secrets.md", "shopping.md"]

    def test_list_skips_configured_dirs(self, storage, notes_dir: Path):
        """Files under skipped directories are not listed."""
        (notes_dir / ".obsidian").mkdir()
        (notes_dir / ".obsidian" / "workspace.md").write_text("x", encoding="utf-8")

        assert ".obsidian/workspace.md" not in storage.list_text_files()

    def test_read_write(self, storage, notes_dir: Path):
        """Writes create parents and read back exactly."""
        storage.write("new/dir/note.md", "line one\r\nline two")

        assert (notes_dir / "new" / "dir" / "note.md").exists()
        assert "line two" in storage.read("new/dir/note.md")

    def test_write_leaves_no_temp_files(self, storage, notes_dir: Path):
        """Atomic write cleans up its temp file."""
        storage.write("shopping.md", "- eggs\n")

        leftovers = [p for p in notes_dir.rglob("*") if p.name.startswith(".tagvault_")]
        assert leftovers == []
        assert storage.read("shopping.md") == "- eggs\n"

    def test_failed_write_keeps_old_content(self, storage, monkeypatch):
        """A write that fails midway leaves the previous content intact."""
        import os

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)

        with pytest.raises(OSError):
            storage.write("shopping.md", "partial")

        monkeypatch.undo()
        assert storage.read("shopping.md") == "# Shopping\n- milk\n"

    def test_missing_file_raises(self, storage):
        """Reading a missing file raises an OSError."""
        with pytest.raises(FileNotFoundError):
            storage.read("nope.md")

    def test_path_escape_rejected(self, storage):
        """Paths outside the root are refused."""
        with pytest.raises(ValueError, match="escapes"):
            storage.read("../outside.md")


class TestPathTracker:
    """Tests for private path bookkeeping."""

    def test_mark_and_unmark(self):
        """Paths can be marked, queried and unmarked."""
        from tagvault.vault import PathTracker

        tracker = PathTracker()
        tracker.mark_private("b.md")
        tracker.mark_private("a.md")
        tracker.mark_private("a.md")

        assert tracker.is_tracked("a.md")
        assert "b.md" in tracker
        assert len(tracker) == 2
        assert tracker.all_tracked() == ["a.md", "b.md"]

        tracker.unmark_private("a.md")
        tracker.unmark_private("missing.md")

        assert not tracker.is_tracked("a.md")
        assert list(tracker) == ["b.md"]

    def test_clear(self):
        """clear empties the tracker."""
        from tagvault.vault import PathTracker

        tracker = PathTracker()
        tracker.mark_private("a.md")
        tracker.clear()

        assert len(tracker) == 0
