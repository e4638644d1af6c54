"""OneDrive / SharePoint resolver (Microsoft Graph).

Accepts ``onedrive://{driveId}/{itemId}`` URIs plus ``1drv.ms``,
``onedrive.live.com`` and ``sharepoint.com`` share links.  Share links are
turned into a drive item through Graph's ``/shares/u!{token}/driveItem``
endpoint, where the token is the unpadded base64url of the link.
"""

from __future__ import annotations

import base64

import httpx
import structlog

from docingest.interfaces.cloud_resolver import ICloudResolver
from docingest.models.ingestion import IngestionSource
from docingest.models.plan import PlanEntry
from docingest.providers.resolvers.base import bearer_headers, download_to_plan
from docingest.utils.errors import ResolverError

logger = structlog.get_logger(logger_name=__name__)

_SCHEME = "onedrive://"
_GRAPH_API = "https://graph.microsoft.com/v1.0"
_SHARE_HOSTS = ("1drv.ms", "onedrive.live.com", "sharepoint.com")


def encode_sharing_url(url: str) -> str:
    """Encode a share link the way Graph's ``/shares`` endpoint expects."""
    encoded = base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")
    return f"u!{encoded}"


class OneDriveResolver(ICloudResolver):
    """Downloads OneDrive and SharePoint items through Microsoft Graph.

    Identity is always ``onedrive://{driveId}/{itemId}`` so that a file
    ingested via a share link and via its URI is the same document.
    Provenance is ``SharePoint`` for ``sharepoint.com`` links.
    """

    def __init__(self, http_client: httpx.AsyncClient, access_token: str = "") -> None:
        self._http = http_client
        self._access_token = access_token

    def can_resolve(self, source: str) -> bool:
        return source.startswith(_SCHEME) or any(host in source for host in _SHARE_HOSTS)

    async def resolve(self, source: str) -> PlanEntry:
        headers = bearer_headers(self._access_token)
        provenance = (
            IngestionSource.SHAREPOINT if "sharepoint.com" in source else IngestionSource.ONEDRIVE
        )

        if source.startswith(_SCHEME):
            drive_id, _, item_id = source[len(_SCHEME):].strip("/").partition("/")
            if not drive_id or not item_id:
                raise ResolverError(
                    message=f"Expected onedrive://{{driveId}}/{{itemId}}, got {source!r}",
                    provider_name=self.get_provider_name(),
                )
            item_url = f"{_GRAPH_API}/drives/{drive_id}/items/{item_id}"
        else:
            item_url = f"{_GRAPH_API}/shares/{encode_sharing_url(source)}/driveItem"

        item = await self._get_json(item_url, headers)
        try:
            drive_id = item["parentReference"]["driveId"]
            item_id = item["id"]
        except (KeyError, TypeError) as exc:
            raise ResolverError(
                message=f"Graph response for {source!r} has no drive/item id",
                provider_name=self.get_provider_name(),
            ) from exc

        identity = f"{_SCHEME}{drive_id}/{item_id}"
        logger.debug("onedrive_resolved", identity_path=identity, name=item.get("name"))
        return await download_to_plan(
            self._http,
            f"{_GRAPH_API}/drives/{drive_id}/items/{item_id}/content",
            file_name=item.get("name"),
            identity_path=identity,
            provenance=provenance,
            provider_name=self.get_provider_name(),
            headers=headers,
        )

    def get_provider_name(self) -> str:
        return "onedrive"

    async def _get_json(self, url: str, headers: dict[str, str]) -> dict:
        try:
            response = await self._http.get(url, headers=headers)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ResolverError(
                message=f"Microsoft Graph lookup failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
