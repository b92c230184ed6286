"""
Default note generator producing Markdown notes for Zotero records.

Items become one note each, named after the first creator and the year
(e.g. 'References/Doe2019.md', or 'Doe2019a' and 'Doe2019b' when two items
share that name). Child notes and attachments are rendered into their
parent's note. Collections become index notes below 'References/Collections/'
mirroring the collection tree.
"""

import html
import logging
import re
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..core.generator import NoteGenerator
from ..core.models import CollectionNode, ItemNode, Record, RecordKind
from ..snapshot.hierarchy import ancestors_of

logger = logging.getLogger(__name__)

# Item types that never get a note of their own
STANDALONE_SKIP_TYPES = {"note", "attachment", "annotation"}

_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|#^\[\]]+')
_WHITESPACE = re.compile(r"\s+")
_YEAR = re.compile(r"\b(\d{4})\b")
_TAG = re.compile(r"<[^>]+>")
_BLOCK_END = re.compile(r"</(p|div|h[1-6]|li|blockquote)>|<br\s*/?>", re.IGNORECASE)


def sanitize_filename(name: str, max_length: int = 100) -> str:
    """Make a string safe for use as a note file name."""
    safe = _UNSAFE_FILENAME.sub(" ", name)
    safe = _WHITESPACE.sub(" ", safe).strip(" .")
    if len(safe) > max_length:
        safe = safe[:max_length].rstrip(" .")
    return safe


def html_to_text(fragment: str) -> str:
    """Reduce a Zotero note's HTML to plain text paragraphs."""
    text = _BLOCK_END.sub("\n", fragment or "")
    text = html.unescape(_TAG.sub("", text))
    lines = [line.strip() for line in text.split("\n")]
    return "\n\n".join(line for line in lines if line)


def creator_name(creator: Dict[str, Any]) -> str:
    if creator.get("name"):
        return creator["name"]
    parts = [creator.get("firstName", ""), creator.get("lastName", "")]
    return " ".join(p for p in parts if p)


def extract_year(date: Optional[str]) -> str:
    match = _YEAR.search(date or "")
    return match.group(1) if match else ""


def letter_suffix(index: int) -> str:
    """Spreadsheet-style letters: 0 -> 'a', 25 -> 'z', 26 -> 'aa'."""
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("a") + remainder) + letters
    return letters


class MarkdownNoteGenerator(NoteGenerator):
    """
    Generates Markdown notes with YAML front matter.
    """

    def __init__(self, folder: str = "References"):
        """
        Initialize the generator.

        Args:
            folder: Vault folder receiving the notes
        """
        self.folder = folder.strip("/")
        self._name_index = None

    def generate_path(
        self,
        record: Record,
        collections_by_id: Mapping[str, CollectionNode],
        items_by_id: Mapping[str, ItemNode],
    ) -> str:
        if record.kind is RecordKind.COLLECTION:
            chain = ancestors_of(record.key, collections_by_id) or [record]
            segments = [sanitize_filename(c.get("name") or c.key) or c.key for c in reversed(chain)]
            return "/".join([self.folder, "Collections", *segments]) + ".md"

        if not self.has_own_note(record, items_by_id):
            return ""
        return f"{self.folder}/{self.unique_name(record, items_by_id)}.md"

    def has_own_note(self, record: Record, items_by_id: Mapping[str, ItemNode]) -> bool:
        """Whether an item gets a note of its own rather than living in its parent's."""
        if record.parent_ref and record.parent_ref in items_by_id:
            return False
        return record.get("itemType") not in STANDALONE_SKIP_TYPES

    def unique_name(self, record: Record, items_by_id: Mapping[str, ItemNode]) -> str:
        """
        Note name of an item, disambiguated among items sharing it.

        Items with the same citation name get 'a', 'b', ... suffixes in key
        order, e.g. 'Doe2019a' and 'Doe2019b'. Names not ending in a year
        get the letter after a space.
        """
        name = self.note_name(record)
        keys = sorted(set(self._keys_by_name(items_by_id).get(name, [])) | {record.key})
        if len(keys) == 1:
            return name
        suffix = letter_suffix(keys.index(record.key))
        return name + suffix if name[-1:].isdigit() else f"{name} {suffix}"

    def _keys_by_name(self, items_by_id: Mapping[str, ItemNode]) -> Dict[str, List[str]]:
        # Cached per lookup map
        cached = self._name_index
        if cached is not None and cached[0] is items_by_id:
            return cached[1]
        index: Dict[str, List[str]] = {}
        for item in items_by_id.values():
            if self.has_own_note(item, items_by_id):
                index.setdefault(self.note_name(item), []).append(item.key)
        self._name_index = (items_by_id, index)
        return index

    def note_name(self, record: Record) -> str:
        """Citation-style name: first creator's last name plus year."""
        creators = record.get("creators") or []
        last_name = ""
        if creators:
            first = creators[0]
            last_name = first.get("lastName") or first.get("name") or ""
        year = extract_year(record.get("date"))

        name = sanitize_filename(f"{last_name}{year}".replace(" ", ""))
        if not name or not last_name:
            name = sanitize_filename(record.get("title") or "")
        return name or record.key

    def generate_content(
        self,
        record: Record,
        collections_by_id: Mapping[str, CollectionNode],
        items_by_id: Mapping[str, ItemNode],
    ) -> str:
        if record.kind is RecordKind.COLLECTION:
            return self._collection_content(record, collections_by_id, items_by_id)
        return self._item_content(record, collections_by_id, items_by_id)

    def _link(self, path: str, label: str) -> str:
        target = path[:-3] if path.endswith(".md") else path
        return f"[[{target}|{label}]]"

    def _front_matter(self, fields: Dict[str, Any]) -> str:
        cleaned = {k: v for k, v in fields.items() if v not in (None, "", [])}
        body = yaml.safe_dump(cleaned, sort_keys=False, allow_unicode=True, default_flow_style=False)
        return f"---\n{body}---\n"

    def _collection_path_names(
        self, key: str, collections_by_id: Mapping[str, CollectionNode]
    ) -> List[str]:
        chain = ancestors_of(key, collections_by_id)
        return ["/".join(c.get("name") or c.key for c in reversed(chain))] if chain else []

    def _item_content(
        self,
        record: Record,
        collections_by_id: Mapping[str, CollectionNode],
        items_by_id: Mapping[str, ItemNode],
    ) -> str:
        title = record.get("title") or record.key
        creators = [creator_name(c) for c in record.get("creators") or []]
        collections: List[str] = []
        for key in record.get("collections") or []:
            collections.extend(self._collection_path_names(key, collections_by_id))

        parts = [
            self._front_matter({
                "title": title,
                "authors": [c for c in creators if c],
                "year": extract_year(record.get("date")),
                "item-type": record.get("itemType"),
                "publication": record.get("publicationTitle"),
                "doi": record.get("DOI"),
                "url": record.get("url"),
                "tags": sorted(t.get("tag", "") for t in record.get("tags") or [] if t.get("tag")),
                "collections": sorted(collections),
            }),
            f"# {title}\n",
        ]

        abstract = record.get("abstractNote")
        if abstract:
            parts.append(f"## Abstract\n\n{abstract.strip()}\n")

        node = items_by_id.get(record.key)
        children = node.children if node is not None else getattr(record, "children", [])
        notes = [c for c in children if c.get("itemType") == "note"]
        attachments = [c for c in children if c.get("itemType") == "attachment"]

        if notes:
            rendered = [html_to_text(n.get("note", "")) for n in sorted(notes, key=lambda n: n.key)]
            parts.append("## Notes\n\n" + "\n\n---\n\n".join(r for r in rendered if r) + "\n")

        if attachments:
            lines = []
            for attachment in sorted(attachments, key=lambda a: a.key):
                label = attachment.get("title") or attachment.key
                url = attachment.get("url")
                lines.append(f"- [{label}]({url})" if url else f"- {label}")
            parts.append("## Attachments\n\n" + "\n".join(lines) + "\n")

        return "\n".join(parts)

    def _collection_content(
        self,
        record: Record,
        collections_by_id: Mapping[str, CollectionNode],
        items_by_id: Mapping[str, ItemNode],
    ) -> str:
        name = record.get("name") or record.key
        parent = collections_by_id.get(record.parent_ref) if record.parent_ref else None
        parts = [
            self._front_matter({
                "collection": name,
                "parent": (parent.get("name") or parent.key) if parent else None,
            }),
            f"# {name}\n",
        ]

        node = collections_by_id.get(record.key)
        children = sorted(node.children, key=lambda c: (c.get("name") or c.key)) if node else []
        if children:
            links = [
                f"- {self._link(self.generate_path(c, collections_by_id, items_by_id), c.get('name') or c.key)}"
                for c in children
            ]
            parts.append("## Subcollections\n\n" + "\n".join(links) + "\n")

        members = []
        for item in items_by_id.values():
            if record.key not in (item.get("collections") or []):
                continue
            path = self.generate_path(item, collections_by_id, items_by_id)
            if path:
                members.append((path, item.get("title") or item.key))
        if members:
            links = [f"- {self._link(path, label)}" for path, label in sorted(members)]
            parts.append("## Items\n\n" + "\n".join(links) + "\n")

        return "\n".join(parts)
