"""
Zotero Web API v3 connector.

Fetches the flat collection and item lists of every library reachable with
an API key. Handles pagination via the Total-Results header and honors the
Backoff and Retry-After headers.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from ...core.connector import SourceConnector
from ...core.errors import ConfigurationError
from ...core.models import Library, RecordKind, Snapshot
from ...snapshot.loader import parse_records


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.zotero.org"
API_VERSION = "3"


class ZoteroConnector(SourceConnector):
    """
    Read-only Zotero Web API client.

    Supports:
    - API key authentication
    - Personal and group library discovery
    - Paged collection and item fetches
    - Retries with exponential backoff and server-requested delays
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        page_size: int = 100,
        timeout: int = 30,
        max_retries: int = 3,
        rate_limit_delay: float = 0.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Zotero connector.

        Args:
            api_key: Zotero API key with read access
            base_url: API base URL
            page_size: Records per page (Zotero caps this at 100)
            timeout: Request timeout in seconds
            max_retries: Maximum attempts per request
            rate_limit_delay: Minimum seconds between requests
            session: Optional preconfigured requests session

        Raises:
            ConfigurationError if no API key is given
        """
        if not api_key:
            raise ConfigurationError("Zotero API key is not configured (set ZOTERO_API_KEY)")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.page_size = max(1, min(page_size, 100))
        self.timeout = timeout
        self.max_retries = max_retries
        self.rate_limit_delay = rate_limit_delay
        self.session = session or requests.Session()
        self.session.headers.update({
            "Zotero-API-Key": api_key,
            "Zotero-API-Version": API_VERSION,
            "User-Agent": "zotsync/1.0",
        })
        self._last_request_time = 0.0
        self._backoff_until = 0.0

    def get_name(self) -> str:
        return "zotero"

    def list_libraries(self) -> List[Library]:
        """
        Return the personal library plus all groups of the key's owner.

        Raises:
            ConfigurationError if the key is rejected
        """
        response = self._get(f"/keys/{self.api_key}")
        if response.status_code in (401, 403, 404):
            raise ConfigurationError("Zotero rejected the API key")
        self._raise_for_status(response)

        key_info = response.json()
        user_id = key_info.get("userID")
        if user_id is None:
            raise ConfigurationError("Zotero API key is not bound to a user")

        libraries = [Library(prefix=f"/users/{user_id}", type="user", name="")]
        for group in self._get_all(f"/users/{user_id}/groups"):
            group_id = group.get("id")
            name = (group.get("data") or {}).get("name", "")
            libraries.append(Library(prefix=f"/groups/{group_id}", type="group", name=name))

        logger.info(f"Found {len(libraries)} Zotero libraries")
        return libraries

    def fetch_snapshot(self, library: Library) -> Snapshot:
        """Fetch all collections and (non-trashed) items of a library."""
        collections = parse_records(RecordKind.COLLECTION, self._get_all(f"{library.prefix}/collections"))
        items = parse_records(RecordKind.ITEM, self._get_all(f"{library.prefix}/items"))
        logger.info(
            f"Fetched {len(collections)} collections and {len(items)} items "
            f"for {library.label}"
        )
        return Snapshot(collections=collections, items=items)

    def close(self) -> None:
        self.session.close()

    def _get_all(self, path: str) -> List[Dict[str, Any]]:
        """Follow pagination until all results are collected."""
        results: List[Dict[str, Any]] = []
        start = 0
        while True:
            response = self._get(path, params={"start": start, "limit": self.page_size})
            self._raise_for_status(response)
            page = response.json()
            if not isinstance(page, list):
                raise ValueError(f"Unexpected response for {path}: expected a list")
            results.extend(page)

            total = self._total_results(response)
            start += len(page)
            if not page:
                break
            if total is not None and start >= total:
                break
            if total is None and len(page) < self.page_size:
                break
        return results

    def _total_results(self, response: requests.Response) -> Optional[int]:
        value = response.headers.get("Total-Results")
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """GET with retries; returns the last response or raises the last network error."""
        url = f"{self.base_url}{path}"
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            self._wait_for_rate_limit()
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                last_error = e
                logger.warning(f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}")
                if attempt < self.max_retries - 1:
                    time.sleep(2 ** attempt)
                continue

            delay, retry = self._server_delay(response)
            if delay:
                self._backoff_until = time.time() + delay
            if retry and attempt < self.max_retries - 1:
                logger.warning(
                    f"Zotero returned {response.status_code} for {path}, "
                    f"retrying (attempt {attempt + 1}/{self.max_retries})"
                )
                if not delay:
                    time.sleep(2 ** attempt)
                continue
            return response

        raise requests.exceptions.RetryError(
            f"Request to {url} failed after {self.max_retries} attempts: {last_error}"
        )

    def _server_delay(self, response: requests.Response) -> Tuple[float, bool]:
        """Return (seconds to wait, whether to retry) as requested by the server."""
        retry = response.status_code in (429, 500, 502, 503, 504)
        delay = 0.0
        for header in ("Retry-After", "Backoff"):
            value = response.headers.get(header)
            if value:
                try:
                    delay = max(delay, float(value))
                except ValueError:
                    logger.debug(f"Ignoring non-numeric {header} header: {value}")
        return delay, retry

    def _raise_for_status(self, response: requests.Response) -> None:
        if response.status_code in (401, 403):
            raise ConfigurationError(f"Zotero denied access ({response.status_code})")
        response.raise_for_status()

    def _wait_for_rate_limit(self) -> None:
        """Enforce rate limiting and server backoff between requests."""
        now = time.time()
        wait = max(
            self._backoff_until - now,
            self._last_request_time + self.rate_limit_delay - now,
            0.0,
        )
        if wait > 0:
            time.sleep(wait)
        self._last_request_time = time.time()
