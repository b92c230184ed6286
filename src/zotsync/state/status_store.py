"""
Status stores for the per-library status map.

The status map records, per kind and key, the file path a record last
produced and the hash of its content.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict

from ..core.atomic import write_json_atomic
from ..core.errors import StatusWriteError
from ..core.models import Library, StatusMap
from ..snapshot.loader import STATUS_SUFFIX, library_file_stem

logger = logging.getLogger(__name__)


class StatusStore(ABC):
    """
    Abstract base class for status stores.
    """

    @abstractmethod
    def load(self, library: Library) -> StatusMap:
        """
        Load the status map of a library.

        Never raises: missing or invalid data gives an empty map.
        """
        pass

    @abstractmethod
    def save(self, library: Library, status: StatusMap) -> None:
        """
        Persist the status map of a library.

        Raises:
            StatusWriteError if the map cannot be written
        """
        pass

    @abstractmethod
    def clear(self, library: Library) -> bool:
        """
        Delete the status map of a library.

        Returns:
            True if something was deleted
        """
        pass


class JsonStatusStore(StatusStore):
    """
    Status store writing one pair-list JSON file per library:

        {store_dir}/{url-safe library prefix}.status.json
    """

    def __init__(self, store_dir: Path):
        """
        Initialize the JSON status store.

        Args:
            store_dir: Directory holding snapshot and status files
        """
        self.store_dir = Path(store_dir)

    def path_for(self, library: Library) -> Path:
        return self.store_dir / f"{library_file_stem(library)}{STATUS_SUFFIX}"

    def load(self, library: Library) -> StatusMap:
        path = self.path_for(library)
        if not path.exists():
            logger.debug(f"No status file for {library.label}: {path}")
            return StatusMap()

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            status = StatusMap.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Invalid status file {path}, starting from empty status: {e}")
            return StatusMap()

        logger.debug(
            f"Loaded status for {library.label}: {len(status.collections)} collections, "
            f"{len(status.items)} items"
        )
        return status

    def save(self, library: Library, status: StatusMap) -> None:
        path = self.path_for(library)
        try:
            write_json_atomic(path, status.to_dict())
        except (OSError, TypeError, ValueError) as e:
            raise StatusWriteError(f"Cannot write status file {path}: {e}") from e
        logger.info(f"Saved status for {library.label} to: {path}")

    def clear(self, library: Library) -> bool:
        path = self.path_for(library)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"Cleared status for {library.label}")
        return True


class MemoryStatusStore(StatusStore):
    """
    In-memory status store, for tests and runs that must not touch disk.
    """

    def __init__(self):
        self._maps: Dict[str, dict] = {}

    def load(self, library: Library) -> StatusMap:
        data = self._maps.get(library.prefix)
        if data is None:
            return StatusMap()
        return StatusMap.from_dict(data)

    def save(self, library: Library, status: StatusMap) -> None:
        self._maps[library.prefix] = status.to_dict()

    def clear(self, library: Library) -> bool:
        return self._maps.pop(library.prefix, None) is not None
