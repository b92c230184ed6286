"""
Unit tests for marker injection, hashing and the generation runner.
"""

import threading

import pytest

from zotsync.core.errors import GeneratorError
from zotsync.core.generator import NoteGenerator
from zotsync.core.models import Library, RecordKind
from zotsync.sync.canonical import (
    build_marker,
    compute_content_hash,
    extract_marker,
    inject_marker,
)
from zotsync.sync.generation import GenerationRunner

from conftest import make_item


class ScriptedGenerator(NoteGenerator):
    """Generator whose output per key is given as (path, content) or an exception."""

    def __init__(self, outputs, gate=None, blocked_keys=()):
        self.outputs = outputs
        self.gate = gate
        self.blocked_keys = set(blocked_keys)

    def generate_path(self, record, collections_by_id, items_by_id):
        if record.key in self.blocked_keys:
            self.gate.wait(5)
        output = self.outputs[record.key]
        if isinstance(output, Exception):
            raise output
        return output[0]

    def generate_content(self, record, collections_by_id, items_by_id):
        return self.outputs[record.key][1]


@pytest.fixture
def records():
    return [make_item("A", "First"), make_item("B", "Second")]


class TestMarker:
    """Tests for marker construction and injection."""

    def test_build_marker(self, library):
        assert build_marker(library, RecordKind.ITEM, "ABCD") == "/users/12345/item/ABCD"
        assert build_marker(Library(prefix="/groups/9/"), RecordKind.COLLECTION, "C") == "/groups/9/collection/C"

    def test_injects_into_existing_front_matter(self):
        content = "---\ntitle: Paper\n---\nBody"
        marked = inject_marker(content, "/users/1/item/A")

        assert marked == "---\nzotero-key: /users/1/item/A\ntitle: Paper\n---\nBody"

    def test_creates_front_matter(self):
        assert inject_marker("Body", "M") == "---\nzotero-key: M\n---\nBody"

    def test_replaces_existing_marker(self):
        content = "---\nzotero-key: stale\ntitle: T\n---\n"
        assert inject_marker(content, "fresh") == "---\nzotero-key: fresh\ntitle: T\n---\n"

    def test_unterminated_front_matter_gets_new_block(self):
        content = "---\nnot front matter"
        assert inject_marker(content, "M") == "---\nzotero-key: M\n---\n---\nnot front matter"

    def test_extract_marker(self):
        assert extract_marker(inject_marker("Body", "/users/1/item/A")) == "/users/1/item/A"
        assert extract_marker("Body only") == ""
        assert extract_marker("---\ntitle: x\n---\nzotero-key: body") == ""


class TestContentHash:
    """Tests for compute_content_hash."""

    def test_deterministic(self):
        assert compute_content_hash("abc") == compute_content_hash("abc")

    def test_known_value(self):
        assert compute_content_hash("") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_differs_on_content(self):
        assert compute_content_hash("a") != compute_content_hash("b")


class TestGenerationRunner:
    """Tests for GenerationRunner."""

    def test_hash_covers_marked_content(self, library, records):
        generator = ScriptedGenerator({"A": ("a.md", "Body A"), "B": ("b.md", "Body B")})
        result = GenerationRunner(generator, library).run(RecordKind.ITEM, records, {}, {})

        first = result.generated[0]
        assert first.path == "a.md"
        assert first.content == "---\nzotero-key: /users/12345/item/A\n---\nBody A"
        assert first.hash == compute_content_hash(first.content)
        assert result.errors == []

    def test_same_body_different_key_hashes_differ(self, library, records):
        generator = ScriptedGenerator({"A": ("a.md", "Same"), "B": ("b.md", "Same")})
        result = GenerationRunner(generator, library).run(RecordKind.ITEM, records, {}, {})

        assert result.generated[0].hash != result.generated[1].hash

    def test_repeat_runs_are_identical(self, library, records):
        generator = ScriptedGenerator({"A": ("a.md", "x"), "B": ("b.md", "y")})
        runner = GenerationRunner(generator, library)

        first = runner.run(RecordKind.ITEM, records, {}, {})
        second = runner.run(RecordKind.ITEM, records, {}, {})

        assert first.generated == second.generated

    def test_empty_path_opts_out(self, library, records):
        generator = ScriptedGenerator({"A": ("", "ignored"), "B": ("/", "ignored")})
        result = GenerationRunner(generator, library).run(RecordKind.ITEM, records, {}, {})

        assert [(g.key, g.path, g.content) for g in result.generated] == [("A", "", ""), ("B", "", "")]

    def test_leading_slash_is_stripped(self, library):
        generator = ScriptedGenerator({"A": ("/References/a.md", "x")})
        result = GenerationRunner(generator, library).run(RecordKind.ITEM, [make_item("A")], {}, {})

        assert result.generated[0].path == "References/a.md"

    def test_exception_isolated_to_record(self, library, records):
        generator = ScriptedGenerator({"A": RuntimeError("boom"), "B": ("b.md", "ok")})
        result = GenerationRunner(generator, library).run(RecordKind.ITEM, records, {}, {})

        assert [g.key for g in result.generated] == ["B"]
        assert result.failed_keys == ["A"]
        error = result.errors[0]
        assert isinstance(error, GeneratorError)
        assert isinstance(error.cause, RuntimeError)
        assert "boom" in str(error)

    def test_non_string_output_is_an_error(self, library, records):
        generator = ScriptedGenerator({"A": (None, "x"), "B": ("b.md", 42)})
        result = GenerationRunner(generator, library).run(RecordKind.ITEM, records, {}, {})

        assert result.generated == []
        assert result.failed_keys == ["A", "B"]

    def test_timeout_fails_only_slow_record(self, library, records):
        gate = threading.Event()
        generator = ScriptedGenerator(
            {"A": ("a.md", "slow"), "B": ("b.md", "fast")},
            gate=gate,
            blocked_keys=["A"],
        )
        try:
            result = GenerationRunner(generator, library, timeout_seconds=0.05).run(
                RecordKind.ITEM, records, {}, {}
            )
        finally:
            gate.set()

        assert result.failed_keys == ["A"]
        assert "time budget" in str(result.errors[0])
        assert [g.key for g in result.generated] == ["B"]

    def test_collection_marker_uses_kind(self, library):
        generator = ScriptedGenerator({"C": ("c.md", "body")})
        result = GenerationRunner(generator, library, timeout_seconds=1).run(
            RecordKind.COLLECTION, [make_item("C")], {}, {}
        )

        assert "zotero-key: /users/12345/collection/C" in result.generated[0].content
