"""
Core data models for the Zotero → vault sync engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class RecordKind(str, Enum):
    """Kind of source record. Status is kept separately per kind."""
    COLLECTION = "collection"
    ITEM = "item"

    @property
    def status_field(self) -> str:
        """Name of the per-kind section in snapshot and status files."""
        return "collections" if self is RecordKind.COLLECTION else "items"


class OperationType(str, Enum):
    """File operation emitted by the reconciler."""
    RENAME = "rename"
    UPDATE = "update"
    DELETE = "delete"
    CREATE = "create"


# Relative order in which operations are applied
OPERATION_ORDER = (
    OperationType.RENAME,
    OperationType.UPDATE,
    OperationType.DELETE,
    OperationType.CREATE,
)


@dataclass
class Library:
    """
    A Zotero library, the unit of independent synchronization.

    Attributes:
        prefix: API prefix such as '/users/12345' or '/groups/678'
        type: 'user' or 'group'
        name: Display name (empty for the personal library)
    """
    prefix: str
    type: str = "user"
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"prefix": self.prefix, "type": self.type, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Library":
        return cls(
            prefix=data["prefix"],
            type=data.get("type", "user"),
            name=data.get("name", "") or "",
        )

    @property
    def label(self) -> str:
        return self.name or self.prefix


@dataclass
class Record:
    """
    One source entity from a library snapshot.

    Attributes:
        key: Zotero key, unique per kind within a library
        kind: Collection or item
        data: Opaque attributes as delivered by the source
        parent_ref: Key of the parent collection/item, if any
        version: Source version number, if known
    """
    key: str
    kind: RecordKind
    data: Dict[str, Any] = field(default_factory=dict)
    parent_ref: Optional[str] = None
    version: Optional[int] = None

    @classmethod
    def from_dict(cls, kind: RecordKind, raw: Dict[str, Any]) -> "Record":
        """
        Create from a Zotero API record.

        Accepts both the nested form ({"key", "version", "data": {...}})
        and the flat form where attributes sit next to the key.
        """
        data = raw.get("data") if isinstance(raw.get("data"), dict) else raw
        key = raw.get("key") or data.get("key")
        if not key:
            raise ValueError("record has no key")

        parent_field = "parentCollection" if kind is RecordKind.COLLECTION else "parentItem"
        parent = data.get(parent_field)
        # Zotero writes `false` for "no parent"
        parent_ref = parent if isinstance(parent, str) and parent else None

        return cls(
            key=str(key),
            kind=kind,
            data=dict(data),
            parent_ref=parent_ref,
            version=raw.get("version", data.get("version")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "version": self.version, "data": self.data}

    def get(self, name: str, default: Any = None) -> Any:
        """Get an opaque attribute."""
        return self.data.get(name, default)


@dataclass
class CollectionNode(Record):
    """A collection record with its child collections attached."""
    children: List["CollectionNode"] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: Record) -> "CollectionNode":
        return cls(
            key=record.key,
            kind=RecordKind.COLLECTION,
            data=record.data,
            parent_ref=record.parent_ref,
            version=record.version,
        )


@dataclass
class ItemNode(Record):
    """An item record with its child items (notes, attachments) attached."""
    children: List["ItemNode"] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: Record) -> "ItemNode":
        return cls(
            key=record.key,
            kind=RecordKind.ITEM,
            data=record.data,
            parent_ref=record.parent_ref,
            version=record.version,
        )


@dataclass
class Snapshot:
    """Flat record lists for one library at a point in time."""
    collections: List[Record] = field(default_factory=list)
    items: List[Record] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.collections and not self.items


@dataclass(frozen=True)
class StatusEntry:
    """What a record last produced: its file path and content hash."""
    path: str
    hash: str

    def to_dict(self) -> Dict[str, str]:
        return {"filePath": self.path, "hash": self.hash}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusEntry":
        path = data["filePath"]
        digest = data["hash"]
        if not isinstance(path, str) or not isinstance(digest, str):
            raise ValueError("status entry fields must be strings")
        return cls(path=path, hash=digest)


@dataclass
class StatusMap:
    """Persisted status of one library: kind → (key → StatusEntry)."""
    collections: Dict[str, StatusEntry] = field(default_factory=dict)
    items: Dict[str, StatusEntry] = field(default_factory=dict)

    def for_kind(self, kind: RecordKind) -> Dict[str, StatusEntry]:
        return self.collections if kind is RecordKind.COLLECTION else self.items

    def set_kind(self, kind: RecordKind, entries: Dict[str, StatusEntry]) -> None:
        if kind is RecordKind.COLLECTION:
            self.collections = dict(entries)
        else:
            self.items = dict(entries)

    def to_dict(self) -> Dict[str, Any]:
        """Pair-list form, as written to the status file."""
        return {
            "collections": [[k, v.to_dict()] for k, v in self.collections.items()],
            "items": [[k, v.to_dict()] for k, v in self.items.items()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusMap":
        """
        Parse the pair-list form.

        Raises:
            ValueError/KeyError/TypeError on structurally invalid input
        """
        if not isinstance(data, dict):
            raise ValueError("status data must be an object")

        def parse(pairs: Any) -> Dict[str, StatusEntry]:
            if pairs is None:
                return {}
            if not isinstance(pairs, list):
                raise ValueError("status section must be a list of pairs")
            entries: Dict[str, StatusEntry] = {}
            for pair in pairs:
                if not isinstance(pair, list) or len(pair) != 2 or not isinstance(pair[0], str):
                    raise ValueError(f"invalid status pair: {pair!r}")
                entries[pair[0]] = StatusEntry.from_dict(pair[1])
            return entries

        return cls(
            collections=parse(data.get("collections")),
            items=parse(data.get("items")),
        )


@dataclass(frozen=True)
class GeneratedRecord:
    """
    Output of the generator for one record, after marker injection.

    An empty path means the generator opted out of this record.
    """
    key: str
    path: str
    hash: str
    content: str


@dataclass(frozen=True)
class Operation:
    """
    A single file operation in a reconciliation plan.

    Attributes:
        type: Operation type
        key: Record key that caused the operation
        path: Target path (for RENAME, the destination)
        content: Content to write (None for DELETE)
        from_path: Source path for RENAME
    """
    type: OperationType
    key: str
    path: str
    content: Optional[str] = None
    from_path: Optional[str] = None

    def describe(self) -> str:
        if self.type is OperationType.RENAME:
            return f"rename {self.from_path} -> {self.path}"
        return f"{self.type.value} {self.path}"
