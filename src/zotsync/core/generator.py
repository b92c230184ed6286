"""
Generator interface turning records into note paths and content.
"""

from abc import ABC, abstractmethod
from typing import Mapping

from .models import CollectionNode, ItemNode, Record


class NoteGenerator(ABC):
    """
    Abstract base class for note generators.

    Generators must be pure: the same record and lookup maps always give
    the same path and content. Any exception is treated as a failure of
    that one record.
    """

    @abstractmethod
    def generate_path(
        self,
        record: Record,
        collections_by_id: Mapping[str, CollectionNode],
        items_by_id: Mapping[str, ItemNode],
    ) -> str:
        """
        Return the vault-relative note path, or an empty string to skip the record.
        """
        pass

    @abstractmethod
    def generate_content(
        self,
        record: Record,
        collections_by_id: Mapping[str, CollectionNode],
        items_by_id: Mapping[str, ItemNode],
    ) -> str:
        """Return the note content."""
        pass
