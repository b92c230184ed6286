"""
Connector interface for fetching library snapshots from the remote source.
"""

from abc import ABC, abstractmethod
from typing import List

from .models import Library, Snapshot


class SourceConnector(ABC):
    """
    Abstract base class for source connectors.

    Connectors handle authentication, pagination and rate limiting and
    return flat snapshots.
    """

    @abstractmethod
    def list_libraries(self) -> List[Library]:
        """
        Return the libraries reachable with the configured credentials.

        Raises:
            ConfigurationError if the credentials are missing or rejected
        """
        pass

    @abstractmethod
    def fetch_snapshot(self, library: Library) -> Snapshot:
        """
        Fetch all collections and items of a library.

        Raises:
            Exception if the fetch fails
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """Return the connector name/identifier."""
        pass

    def close(self) -> None:
        """Close any open resources. Optional."""
        pass
