"""
Unit tests for FileVaultSink.
"""

import pytest

from zotsync.sinks.file_vault import FileVaultSink


@pytest.fixture
def sink(tmp_path):
    return FileVaultSink(tmp_path / "vault")


class TestFileVaultSink:
    """Tests for FileVaultSink."""

    def test_creates_vault_root(self, tmp_path):
        FileVaultSink(tmp_path / "new-vault")
        assert (tmp_path / "new-vault").is_dir()

    def test_create_and_read(self, sink):
        sink.create("note.md", "héllo\r\nworld")

        assert sink.exists("note.md")
        assert sink.read("note.md") == "héllo\r\nworld"

    def test_create_refuses_existing_file(self, sink):
        sink.create("note.md", "a")
        with pytest.raises(FileExistsError):
            sink.create("note.md", "b")

    def test_create_needs_parent(self, sink):
        with pytest.raises(FileNotFoundError):
            sink.create("Sub/note.md", "a")

    def test_ensure_directory_creates_parents(self, sink):
        sink.ensure_directory("References/Collections/Physics")
        sink.create("References/Collections/Physics/Quantum.md", "q")

        assert (sink.vault_dir / "References" / "Collections" / "Physics" / "Quantum.md").read_text(
            encoding="utf-8"
        ) == "q"

    def test_modify(self, sink):
        sink.create("note.md", "a")
        sink.modify("note.md", "b")
        assert sink.read("note.md") == "b"

    def test_rename(self, sink):
        sink.create("old.md", "body")
        sink.ensure_directory("Sub")
        sink.rename("old.md", "Sub/new.md")

        assert not sink.exists("old.md")
        assert sink.read("Sub/new.md") == "body"

    def test_delete(self, sink):
        sink.create("note.md", "a")
        sink.delete("note.md")
        assert not sink.exists("note.md")

    def test_directory_is_not_a_file(self, sink):
        sink.ensure_directory("Sub")
        assert not sink.exists("Sub")

    @pytest.mark.parametrize("path", ["", "/etc/passwd", "../outside.md", "a/../../b.md"])
    def test_rejects_paths_outside_vault(self, sink, path):
        with pytest.raises(ValueError):
            sink.resolve(path)

    def test_name(self, sink):
        assert sink.get_name() == "file_vault"
