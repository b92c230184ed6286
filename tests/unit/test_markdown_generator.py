"""
Unit tests for the Markdown note generator.
"""

import pytest
import yaml

from zotsync.generators.markdown import (
    MarkdownNoteGenerator,
    creator_name,
    extract_year,
    html_to_text,
    letter_suffix,
    sanitize_filename,
)
from zotsync.snapshot.hierarchy import Hierarchy

from conftest import make_item


def front_matter(content):
    _, block, _ = content.split("---\n", 2)
    return yaml.safe_load(block)


@pytest.fixture
def hierarchy(sample_snapshot):
    return Hierarchy.build(sample_snapshot)


@pytest.fixture
def generator():
    return MarkdownNoteGenerator()


def path_of(generator, hierarchy, record):
    return generator.generate_path(record, hierarchy.collections, hierarchy.all_items)


def content_of(generator, hierarchy, record):
    return generator.generate_content(record, hierarchy.collections, hierarchy.all_items)


class TestHelpers:
    """Tests for the module-level helpers."""

    def test_sanitize_filename(self):
        assert sanitize_filename('A/B: "C"?') == "A B C"
        assert sanitize_filename("  trailing dots... ") == "trailing dots"
        assert len(sanitize_filename("x" * 300)) == 100

    def test_html_to_text(self):
        assert html_to_text("<p>One &amp; two</p><p>Three<br/>Four</p>") == "One & two\n\nThree\n\nFour"
        assert html_to_text(None) == ""

    def test_creator_name(self):
        assert creator_name({"firstName": "Jane", "lastName": "Doe"}) == "Jane Doe"
        assert creator_name({"name": "CERN Collaboration"}) == "CERN Collaboration"
        assert creator_name({"lastName": "Doe"}) == "Doe"

    @pytest.mark.parametrize("date,year", [
        ("2019-05-01", "2019"),
        ("May 2019", "2019"),
        ("", ""),
        (None, ""),
        ("n.d.", ""),
    ])
    def test_extract_year(self, date, year):
        assert extract_year(date) == year


class TestPaths:
    """Tests for generate_path."""

    def test_item_path_uses_author_and_year(self, generator, hierarchy):
        assert path_of(generator, hierarchy, hierarchy.items["DOE19"]) == "References/Doe2019.md"
        assert path_of(generator, hierarchy, hierarchy.items["ROE20"]) == "References/Roe2020.md"

    def test_child_items_get_no_note(self, generator, hierarchy):
        assert path_of(generator, hierarchy, hierarchy.all_items["NOTE1"]) == ""
        assert path_of(generator, hierarchy, hierarchy.all_items["ATT1"]) == ""

    def test_standalone_note_gets_no_note(self, generator):
        note = make_item("N", itemType="note")
        assert generator.generate_path(note, {}, {}) == ""

    def test_item_without_creators_uses_title(self, generator):
        item = make_item("K1", "On Growth: and Form", date="1917")
        assert generator.generate_path(item, {}, {}) == "References/On Growth and Form.md"

    def test_item_without_title_or_creators_uses_key(self, generator):
        assert generator.generate_path(make_item("K1"), {}, {}) == "References/K1.md"

    def test_collection_path_follows_tree(self, generator, hierarchy):
        assert path_of(generator, hierarchy, hierarchy.collections["PHYS"]) == "References/Collections/Physics.md"
        assert (
            path_of(generator, hierarchy, hierarchy.collections["QUANT"])
            == "References/Collections/Physics/Quantum.md"
        )

    def test_custom_folder(self, hierarchy):
        generator = MarkdownNoteGenerator(folder="/Library/Papers/")
        assert path_of(generator, hierarchy, hierarchy.items["DOE19"]) == "Library/Papers/Doe2019.md"

    def test_path_changes_with_year(self, generator):
        before = make_item("X1", creators=[{"lastName": "Doe"}], date="2019")
        after = make_item("X1", creators=[{"lastName": "Doe"}], date="2020")

        assert generator.generate_path(before, {}, {}) == "References/Doe2019.md"
        assert generator.generate_path(after, {}, {}) == "References/Doe2020.md"

    def test_same_author_and_year_get_letter_suffixes(self, generator, sample_snapshot):
        sample_snapshot.items.append(
            make_item("AAA1", "Decoherence", creators=[{"lastName": "Doe"}], date="2019")
        )
        hierarchy = Hierarchy.build(sample_snapshot)

        assert path_of(generator, hierarchy, hierarchy.items["AAA1"]) == "References/Doe2019a.md"
        assert path_of(generator, hierarchy, hierarchy.items["DOE19"]) == "References/Doe2019b.md"
        assert path_of(generator, hierarchy, hierarchy.items["ROE20"]) == "References/Roe2020.md"

    def test_child_items_do_not_count_as_namesakes(self, generator, sample_snapshot):
        sample_snapshot.items.append(
            make_item("ZZZ1", parent="DOE19", itemType="attachment", creators=[{"lastName": "Doe"}], date="2019")
        )
        hierarchy = Hierarchy.build(sample_snapshot)

        assert path_of(generator, hierarchy, hierarchy.items["DOE19"]) == "References/Doe2019.md"

    def test_title_names_get_spaced_suffix(self, generator):
        items = {"K1": make_item("K1", "Notes"), "K2": make_item("K2", "Notes")}

        assert generator.generate_path(items["K1"], {}, items) == "References/Notes a.md"
        assert generator.generate_path(items["K2"], {}, items) == "References/Notes b.md"

    @pytest.mark.parametrize("index,suffix", [(0, "a"), (1, "b"), (25, "z"), (26, "aa"), (27, "ab")])
    def test_letter_suffix(self, index, suffix):
        assert letter_suffix(index) == suffix


class TestItemContent:
    """Tests for item notes."""

    def test_front_matter(self, generator, hierarchy):
        meta = front_matter(content_of(generator, hierarchy, hierarchy.items["DOE19"]))

        assert meta["title"] == "Entanglement"
        assert meta["authors"] == ["Jane Doe"]
        assert meta["year"] == "2019"
        assert meta["item-type"] == "journalArticle"
        assert meta["collections"] == ["Physics/Quantum"]
        assert "doi" not in meta

    def test_children_are_rendered(self, generator, hierarchy):
        content = content_of(generator, hierarchy, hierarchy.items["DOE19"])

        assert "# Entanglement\n" in content
        assert "## Notes\n\nKey result\n" in content
        assert "## Attachments\n\n- Full Text PDF\n" in content

    def test_no_child_sections_without_children(self, generator, hierarchy):
        content = content_of(generator, hierarchy, hierarchy.items["ROE20"])

        assert "## Notes" not in content
        assert "## Attachments" not in content

    def test_abstract_and_tags(self, generator):
        item = make_item(
            "A1", "Paper",
            abstractNote="  We show things. ",
            tags=[{"tag": "zeta"}, {"tag": "alpha"}, {"tag": ""}],
        )
        content = generator.generate_content(item, {}, {})

        assert "## Abstract\n\nWe show things.\n" in content
        assert front_matter(content)["tags"] == ["alpha", "zeta"]

    def test_content_is_deterministic(self, generator, sample_snapshot):
        first = Hierarchy.build(sample_snapshot)
        second = Hierarchy.build(sample_snapshot)

        assert content_of(generator, first, first.items["DOE19"]) == content_of(
            generator, second, second.items["DOE19"]
        )


class TestCollectionContent:
    """Tests for collection index notes."""

    def test_root_collection(self, generator, hierarchy):
        content = content_of(generator, hierarchy, hierarchy.collections["PHYS"])

        assert front_matter(content) == {"collection": "Physics"}
        assert "## Subcollections\n\n- [[References/Collections/Physics/Quantum|Quantum]]\n" in content
        assert "## Items\n\n- [[References/Roe2020|Gravity]]\n" in content

    def test_nested_collection(self, generator, hierarchy):
        content = content_of(generator, hierarchy, hierarchy.collections["QUANT"])

        assert front_matter(content) == {"collection": "Quantum", "parent": "Physics"}
        assert "## Subcollections" not in content
        assert "- [[References/Doe2019|Entanglement]]" in content
