"""Google Drive resolver.

Accepts ``gdrive://{fileId}`` URIs and ``drive.google.com`` links in either
the ``/file/d/{fileId}/...`` or ``?id={fileId}`` form.  File metadata and
content come from the Drive v3 REST API.
"""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

import httpx
import structlog

from docingest.interfaces.cloud_resolver import ICloudResolver
from docingest.models.ingestion import IngestionSource
from docingest.models.plan import PlanEntry
from docingest.providers.resolvers.base import bearer_headers, download_to_plan
from docingest.utils.errors import ResolverError

logger = structlog.get_logger(logger_name=__name__)

_SCHEME = "gdrive://"
_DRIVE_API = "https://www.googleapis.com/drive/v3/files"
_FILE_PATH_RE = re.compile(r"/file/d/([A-Za-z0-9_-]+)")


def extract_file_id(source: str) -> str | None:
    """Return the Drive file id embedded in *source*, or ``None``."""
    if source.startswith(_SCHEME):
        file_id = source[len(_SCHEME):].strip("/")
        return file_id or None

    match = _FILE_PATH_RE.search(source)
    if match:
        return match.group(1)

    ids = parse_qs(urlparse(source).query).get("id")
    return ids[0] if ids else None


class GoogleDriveResolver(ICloudResolver):
    """Downloads Google Drive files with an OAuth bearer token.

    Parameters
    ----------
    http_client:
        Shared client; injected for connection pooling and testability.
    access_token:
        OAuth access token with ``drive.readonly`` scope.
    """

    def __init__(self, http_client: httpx.AsyncClient, access_token: str = "") -> None:
        self._http = http_client
        self._access_token = access_token

    def can_resolve(self, source: str) -> bool:
        return source.startswith(_SCHEME) or "drive.google.com" in source

    async def resolve(self, source: str) -> PlanEntry:
        file_id = extract_file_id(source)
        if not file_id:
            raise ResolverError(
                message=f"Could not extract a Google Drive file id from {source!r}",
                provider_name=self.get_provider_name(),
            )

        headers = bearer_headers(self._access_token)
        try:
            response = await self._http.get(
                f"{_DRIVE_API}/{file_id}",
                params={"fields": "id,name,mimeType", "supportsAllDrives": "true"},
                headers=headers,
            )
            response.raise_for_status()
            meta = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ResolverError(
                message=f"Google Drive metadata lookup failed for {file_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        identity = f"{_SCHEME}{file_id}"
        logger.debug("google_drive_resolved", file_id=file_id, name=meta.get("name"))
        return await download_to_plan(
            self._http,
            f"{_DRIVE_API}/{file_id}?alt=media&supportsAllDrives=true",
            file_name=meta.get("name"),
            identity_path=identity,
            provenance=IngestionSource.GOOGLE_DRIVE,
            provider_name=self.get_provider_name(),
            headers=headers,
        )

    def get_provider_name(self) -> str:
        return "google_drive"
