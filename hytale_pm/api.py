"""CurseForge API client for project and release file metadata."""

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import requests
from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.curseforge.com/v1"
DEFAULT_TIMEOUT = 30


class RegistryError(Exception):
    """Base exception for CurseForge API errors."""

    pass


class RegistryRateLimited(RegistryError):
    """Raised when rate limited by the API."""

    def __init__(self, retry_after: int = 60):
        self.retry_after = retry_after
        super().__init__(f"Rate limited. Retry after {retry_after} seconds.")


@dataclass(frozen=True)
class ReleaseFile:
    """One downloadable artifact advertised for a project."""

    file_name: str
    file_date: datetime
    display_name: str | None = None
    download_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReleaseFile":
        return cls(
            file_name=data.get("fileName") or "",
            display_name=data.get("displayName"),
            file_date=parse_file_date(data.get("fileDate")),
            download_url=data.get("downloadUrl"),
        )


@dataclass(frozen=True)
class RegistryProject:
    """Project metadata as returned by GET /mods/{id}."""

    project_id: int
    slug: str
    name: str
    latest_files: list[ReleaseFile] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RegistryProject":
        return cls(
            project_id=int(data.get("id", 0)),
            slug=data.get("slug") or "",
            name=data.get("name") or "",
            latest_files=[
                ReleaseFile.from_dict(f) for f in data.get("latestFiles") or []
            ],
        )


def parse_file_date(value: str | None) -> datetime:
    """
    Parse an ISO-8601 timestamp from the API.

    CurseForge returns values like ``2024-03-01T12:00:00.123Z`` and trims
    trailing zeros from the fraction (``.37Z``). Missing or
    naive values are treated as UTC so comparisons never mix aware and naive
    datetimes.
    """
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    parsed = date_parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CurseForgeAPI:
    """Client for the CurseForge REST API."""

    def __init__(self, api_key: str | None = None, timeout: float = DEFAULT_TIMEOUT):
        self.api_key = api_key or os.environ.get("CURSEFORGE_API_KEY")
        if not self.api_key:
            raise RegistryError(
                "No API key provided. Set CURSEFORGE_API_KEY environment variable, "
                "pass --api-key, or set api_key in the config file."
            )
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "x-api-key": self.api_key,
                "Accept": "application/json",
                "User-Agent": "hytale-pm/0.1.0",
            }
        )
        self._last_request_time = 0.0
        self._min_request_interval = 0.5  # 2 requests per second max

    def __enter__(self) -> "CurseForgeAPI":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def _rate_limit_wait(self) -> None:
        """Ensure we don't exceed rate limits."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self._min_request_interval:
            time.sleep(self._min_request_interval - elapsed)
        self._last_request_time = time.time()

    def _handle_response(self, response: requests.Response) -> dict[str, Any] | None:
        """Handle API response and raise appropriate errors. Returns None on 404."""
        if response.status_code == 429:
            retry_after = int(response.headers.get("Retry-After", 60))
            raise RegistryRateLimited(retry_after)
        if response.status_code in (401, 403):
            raise RegistryError(
                f"Access forbidden ({response.status_code}): check your CurseForge API key."
            )
        if response.status_code == 404:
            logger.warning("Resource not found: %s", response.url)
            return None
        if not response.ok:
            raise RegistryError(
                f"CurseForge API returned {response.status_code} for {response.url}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise RegistryError(f"Invalid JSON from CurseForge API: {e}")

    def get_mod(self, project_id: int) -> RegistryProject | None:
        """
        Get project metadata including its latest release files.

        Returns None when the project does not exist or the response carries
        no data.
        """
        self._rate_limit_wait()
        url = f"{API_BASE_URL}/mods/{project_id}"
        logger.debug("GET %s", url)
        response = self.session.get(url, timeout=self.timeout)
        payload = self._handle_response(response)
        if not payload or not payload.get("data"):
            return None
        return RegistryProject.from_dict(payload["data"])
