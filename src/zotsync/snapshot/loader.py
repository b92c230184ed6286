"""
File-based snapshot storage for library records.

Each library owns one JSON file:

    {store_dir}/{url-safe library prefix}.json
        {"collections": [...], "items": [...]}
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote

from ..core.atomic import write_json_atomic
from ..core.errors import SourceReadError
from ..core.models import Library, Record, RecordKind, Snapshot

logger = logging.getLogger(__name__)

SNAPSHOT_SUFFIX = ".json"
STATUS_SUFFIX = ".status.json"


def library_file_stem(library: Library) -> str:
    """
    Return the url-safe file stem for a library prefix.

    '/users/123' becomes '%2Fusers%2F123'.
    """
    return quote(library.prefix, safe="")


def prefix_from_file_stem(stem: str) -> str:
    """Inverse of library_file_stem."""
    return unquote(stem)


def parse_records(kind: RecordKind, raw_records: Any) -> List[Record]:
    """
    Parse a list of raw API records, dropping entries that cannot be parsed.
    """
    if raw_records is None:
        return []
    if not isinstance(raw_records, list):
        raise SourceReadError(f"{kind.status_field} must be a list")

    records = []
    for index, raw in enumerate(raw_records):
        if not isinstance(raw, dict):
            logger.warning(f"Skipping non-object {kind.value} at index {index}")
            continue
        try:
            records.append(Record.from_dict(kind, raw))
        except ValueError as e:
            logger.warning(f"Skipping {kind.value} at index {index}: {e}")
    return records


class SnapshotStore:
    """
    Reads and writes library snapshots in a store directory.
    """

    def __init__(self, store_dir: Path):
        """
        Initialize the snapshot store.

        Args:
            store_dir: Directory holding snapshot and status files
        """
        self.store_dir = Path(store_dir)

    def path_for(self, library: Library) -> Path:
        return self.store_dir / f"{library_file_stem(library)}{SNAPSHOT_SUFFIX}"

    def load(self, library: Library) -> Snapshot:
        """
        Load the snapshot of a library.

        Missing or corrupt files are logged and yield an empty snapshot,
        which turns the pass into a full rebuild instead of a stuck sync.
        """
        try:
            return self.read(library)
        except SourceReadError as e:
            logger.warning(f"Treating snapshot of {library.label} as empty: {e}")
            return Snapshot()

    def read(self, library: Library) -> Snapshot:
        """
        Load the snapshot of a library.

        Raises:
            SourceReadError if the file is missing or cannot be parsed
        """
        path = self.path_for(library)
        if not path.exists():
            raise SourceReadError(f"Snapshot not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise SourceReadError(f"Cannot read snapshot {path}: {e}") from e

        if not isinstance(data, dict):
            raise SourceReadError(f"Snapshot {path} is not a JSON object")

        snapshot = Snapshot(
            collections=parse_records(RecordKind.COLLECTION, data.get("collections")),
            items=parse_records(RecordKind.ITEM, data.get("items")),
        )
        logger.debug(
            f"Loaded snapshot {path}: {len(snapshot.collections)} collections, "
            f"{len(snapshot.items)} items"
        )
        return snapshot

    def save(self, library: Library, snapshot: Snapshot) -> Path:
        """Persist a fetched snapshot atomically."""
        path = self.path_for(library)
        payload: Dict[str, Any] = {
            "collections": [r.to_dict() for r in snapshot.collections],
            "items": [r.to_dict() for r in snapshot.items],
        }
        write_json_atomic(path, payload)
        logger.info(f"Saved snapshot for {library.label} to: {path}")
        return path

    def list_libraries(self) -> List[Library]:
        """Return libraries that have a snapshot file in the store."""
        if not self.store_dir.exists():
            return []

        libraries = []
        for path in sorted(self.store_dir.glob(f"*{SNAPSHOT_SUFFIX}")):
            if path.name.endswith(STATUS_SUFFIX) or path.name.startswith("."):
                continue
            prefix = prefix_from_file_stem(path.name[: -len(SNAPSHOT_SUFFIX)])
            library_type = "group" if prefix.startswith("/groups/") else "user"
            libraries.append(Library(prefix=prefix, type=library_type))
        return libraries

    def find_library(self, prefix: str) -> Optional[Library]:
        for library in self.list_libraries():
            if library.prefix == prefix:
                return library
        return None
