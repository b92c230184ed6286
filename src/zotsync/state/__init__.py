"""
Status store implementations.

JsonStatusStore is the default backend. MemoryStatusStore keeps status in
process only.
"""

from .status_store import JsonStatusStore, MemoryStatusStore, StatusStore

__all__ = [
    "StatusStore",
    "JsonStatusStore",
    "MemoryStatusStore",
]
