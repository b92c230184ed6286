"""
Shared test fixtures and configuration for pytest.
"""

import posixpath
import sys
from pathlib import Path
from typing import Dict, List, Set, Tuple

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zotsync.core.models import Library, Record, RecordKind, Snapshot  # noqa: E402
from zotsync.core.sink import VaultSink  # noqa: E402


# ============================================================================
# Test doubles
# ============================================================================

class MemorySink(VaultSink):
    """
    In-memory vault sink.

    Fails with OSError for any (method, path) listed in fail_on. Directory
    creation is tracked so tests can check parent chains were created.
    """

    def __init__(self, files: Dict[str, str] = None):
        self.files: Dict[str, str] = dict(files or {})
        self.directories: Set[str] = set()
        self.fail_on: Set[Tuple[str, str]] = set()
        self.calls: List[Tuple[str, str]] = []

    def _check(self, method: str, path: str) -> None:
        self.calls.append((method, path))
        if (method, path) in self.fail_on:
            raise OSError(f"injected {method} failure for {path}")

    def _require_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if parent and parent not in self.directories:
            raise FileNotFoundError(f"parent directory missing for {path}")

    def exists(self, path: str) -> bool:
        return path in self.files

    def create(self, path: str, content: str) -> None:
        self._check("create", path)
        self._require_parent(path)
        if path in self.files:
            raise FileExistsError(path)
        self.files[path] = content

    def modify(self, path: str, content: str) -> None:
        self._check("modify", path)
        if path not in self.files:
            raise FileNotFoundError(path)
        self.files[path] = content

    def read(self, path: str) -> str:
        return self.files[path]

    def rename(self, path: str, new_path: str) -> None:
        self._check("rename", path)
        self._require_parent(new_path)
        self.files[new_path] = self.files.pop(path)

    def delete(self, path: str) -> None:
        self._check("delete", path)
        del self.files[path]

    def ensure_directory(self, path: str) -> None:
        self._check("ensure_directory", path)
        parts = path.split("/")
        for i in range(1, len(parts) + 1):
            self.directories.add("/".join(parts[:i]))


def make_collection(key: str, name: str, parent: str = None) -> Record:
    return Record.from_dict(
        RecordKind.COLLECTION,
        {"key": key, "version": 1, "data": {"key": key, "name": name, "parentCollection": parent or False}},
    )


def make_item(key: str, title: str = "", parent: str = None, **fields) -> Record:
    data = {"key": key, "itemType": fields.pop("itemType", "journalArticle"), "title": title}
    if parent:
        data["parentItem"] = parent
    data.update(fields)
    return Record.from_dict(RecordKind.ITEM, {"key": key, "version": 1, "data": data})


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "slow: Tests that take a long time to run")


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def memory_sink() -> MemorySink:
    """Fixture providing an empty in-memory sink."""
    return MemorySink()


@pytest.fixture
def library() -> Library:
    """Fixture providing a personal library."""
    return Library(prefix="/users/12345", type="user", name="")


@pytest.fixture
def sample_snapshot() -> Snapshot:
    """
    Fixture providing a small library:

        Physics (PHYS)
          └─ Quantum (QUANT)
        DOE19 "Entanglement"  in QUANT, with note NOTE1 and attachment ATT1
        ROE20 "Gravity"       in PHYS
    """
    collections = [
        make_collection("PHYS", "Physics"),
        make_collection("QUANT", "Quantum", parent="PHYS"),
    ]
    items = [
        make_item(
            "DOE19", "Entanglement",
            creators=[{"creatorType": "author", "firstName": "Jane", "lastName": "Doe"}],
            date="2019-05-01",
            collections=["QUANT"],
        ),
        make_item("NOTE1", parent="DOE19", itemType="note", note="<p>Key result</p>"),
        make_item("ATT1", "Full Text PDF", parent="DOE19", itemType="attachment"),
        make_item(
            "ROE20", "Gravity",
            creators=[{"creatorType": "author", "firstName": "Rick", "lastName": "Roe"}],
            date="2020",
            collections=["PHYS"],
        ),
    ]
    return Snapshot(collections=collections, items=items)
