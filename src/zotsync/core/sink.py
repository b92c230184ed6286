"""
Sink interface for the derived file tree.
"""

from abc import ABC, abstractmethod


class VaultSink(ABC):
    """
    Abstract base class for vault sinks.

    Sinks perform the physical file mutations. Paths are vault-relative
    and use forward slashes.
    """

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return True if a file exists at path."""
        pass

    @abstractmethod
    def create(self, path: str, content: str) -> None:
        """
        Create a new file.

        Raises:
            Exception if the file cannot be created
        """
        pass

    @abstractmethod
    def modify(self, path: str, content: str) -> None:
        """Replace the content of an existing file."""
        pass

    @abstractmethod
    def read(self, path: str) -> str:
        """Return the current content of a file."""
        pass

    @abstractmethod
    def rename(self, path: str, new_path: str) -> None:
        """Move a file to a new path."""
        pass

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete a file."""
        pass

    @abstractmethod
    def ensure_directory(self, path: str) -> None:
        """Create a directory and its parents if they do not exist."""
        pass

    def get_name(self) -> str:
        """Return the sink name/identifier."""
        return self.__class__.__name__
