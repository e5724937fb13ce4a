"""Snapshot export from the source identity platform's backend API (Clerk)."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..models.migration import DEFAULT_SOURCE_API_URL, MigrationConfig
from ..models.record import RecordKind

logger = logging.getLogger(__name__)

SNAPSHOT_NAMES = {
    RecordKind.USER: "users.ndjson",
    RecordKind.ORGANIZATION: "organizations.ndjson",
    RecordKind.MEMBERSHIP: "organization_memberships.ndjson",
}


class SourceAPIError(Exception):
    """A request to the source platform failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ClerkClient:
    """
    Read-only client for the source platform's backend API.

    List endpoints are paged with `limit`/`offset`. The users endpoint answers
    with a bare JSON array, the others with `{"data": [...], "total_count": n}`;
    both shapes are accepted everywhere.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_SOURCE_API_URL,
        page_size: int = 500,
        timeout: float = 30.0,
        max_retries: int = 3,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            api_key: Clerk secret key
            base_url: Base URL for the API
            page_size: Records requested per page
            timeout: Request timeout in seconds
            max_retries: Retries for throttled or failed requests
            session: Custom requests session
        """
        if not api_key:
            raise ValueError("A Clerk secret key is required to export a snapshot")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.timeout = timeout
        self._session = session or self._create_session(max_retries)

    def _create_session(self, max_retries: int) -> requests.Session:
        """Create a requests session with authentication and retry logic."""
        session = requests.Session()

        # Every call is a read, so throttling is retried here
        retries = Retry(
            total=max_retries,
            backoff_factor=2.0,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=frozenset({"GET"}),
        )
        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        session.headers["Authorization"] = f"Bearer {self.api_key}"
        return session

    def close(self) -> None:
        self._session.close()

    def list_users(self) -> Iterator[Dict[str, Any]]:
        return self._paginate("/users")

    def list_organizations(self) -> Iterator[Dict[str, Any]]:
        return self._paginate("/organizations")

    def list_organization_memberships(self, organization_id: str) -> Iterator[Dict[str, Any]]:
        return self._paginate(f"/organizations/{organization_id}/memberships")

    def _paginate(self, path: str) -> Iterator[Dict[str, Any]]:
        offset = 0
        while True:
            items = self._get_page(path, offset)
            yield from items

            if len(items) < self.page_size:
                return
            offset += len(items)

    def _get_page(self, path: str, offset: int) -> List[Dict[str, Any]]:
        url = f"{self.base_url}{path}"
        params = {"limit": self.page_size, "offset": offset}
        logger.debug(f"GET {url} {params}")

        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise SourceAPIError(f"GET {path} failed: {e}") from e

        if response.status_code >= 400:
            raise SourceAPIError(f"GET {path} returned {response.status_code}", response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise SourceAPIError(f"GET {path} returned invalid JSON: {e}") from e

        items = data.get("data") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise SourceAPIError(f"GET {path} returned an unexpected {type(data).__name__}")
        return items


class SnapshotExporter:
    """Writes source platform records as NDJSON snapshot files."""

    def __init__(self, client: ClerkClient):
        self.client = client

    def records(self, kind: RecordKind) -> Iterator[Dict[str, Any]]:
        """Iterate over every source record of a kind."""
        if kind == RecordKind.USER:
            return self.client.list_users()
        if kind == RecordKind.ORGANIZATION:
            return self.client.list_organizations()
        return self._memberships()

    def _memberships(self) -> Iterator[Dict[str, Any]]:
        for organization in self.client.list_organizations():
            yield from self.client.list_organization_memberships(organization["id"])

    def export(self, kind: RecordKind, path: Union[str, Path]) -> int:
        """
        Write every record of a kind to a snapshot file.

        Returns:
            Number of records written
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        count = 0
        with open(path, "w", encoding="utf-8") as f:
            for record in self.records(kind):
                f.write(json.dumps(record) + "\n")
                count += 1

        logger.info(f"Exported {count} {kind.label} records to {path}")
        return count

    def export_all(self, output_dir: Union[str, Path]) -> Dict[RecordKind, Path]:
        """Export users, organizations and memberships into a directory."""
        out = Path(output_dir)
        paths = {}
        for kind in RecordKind:
            paths[kind] = out / SNAPSHOT_NAMES[kind]
            self.export(kind, paths[kind])
        return paths


def export_snapshot(
    config: MigrationConfig,
    output_dir: Optional[Union[str, Path]] = None,
    client: Optional[ClerkClient] = None
) -> Dict[RecordKind, Path]:
    """
    Export a full snapshot from the source platform.

    Args:
        config: Migration configuration holding the source API settings
        output_dir: Directory for the snapshot files (defaults to config.output_dir)
        client: Source client (built from config when omitted)

    Returns:
        Snapshot file path per record kind

    Raises:
        ValueError: If no source API key is configured
        SourceAPIError: If a request fails
    """
    owns_client = client is None
    client = client or ClerkClient(
        api_key=config.source_api_key or "",
        base_url=config.source_api_url,
        timeout=config.request_timeout,
    )
    try:
        return SnapshotExporter(client).export_all(output_dir or config.output_dir)
    finally:
        if owns_client:
            client.close()
