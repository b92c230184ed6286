"""
Core abstractions and interfaces for the Zotero vault sync engine.
"""

from .models import (
    Record, RecordKind, CollectionNode, ItemNode, Library, Snapshot,
    StatusEntry, StatusMap, GeneratedRecord, Operation, OperationType,
    OPERATION_ORDER,
)
from .errors import (
    SyncError, ConfigurationError, SourceReadError, GeneratorError,
    ApplyError, StatusWriteError,
)
from .connector import SourceConnector
from .generator import NoteGenerator
from .sink import VaultSink

__all__ = [
    "Record",
    "RecordKind",
    "CollectionNode",
    "ItemNode",
    "Library",
    "Snapshot",
    "StatusEntry",
    "StatusMap",
    "GeneratedRecord",
    "Operation",
    "OperationType",
    "OPERATION_ORDER",
    "SyncError",
    "ConfigurationError",
    "SourceReadError",
    "GeneratorError",
    "ApplyError",
    "StatusWriteError",
    "SourceConnector",
    "NoteGenerator",
    "VaultSink",
]
