"""
Snapshot module for library records.

This module provides:
- SnapshotStore: per-library snapshot files, tolerant loading
- Hierarchy: collection and item trees built from flat records
"""

from .loader import SnapshotStore, library_file_stem
from .hierarchy import (
    Hierarchy,
    ancestors_of,
    build_collection_tree,
    build_item_tree,
)

__all__ = [
    "SnapshotStore",
    "library_file_stem",
    "Hierarchy",
    "ancestors_of",
    "build_collection_tree",
    "build_item_tree",
]
