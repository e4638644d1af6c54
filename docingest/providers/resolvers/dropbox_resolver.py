"""Dropbox shared-link resolver.

Shared links (``www.dropbox.com/s/...`` or ``/scl/fi/...``) download
directly when ``dl=1`` is set, so no token is needed.  ``dropbox://`` URIs
are the same links with the scheme and host swapped.
"""

from __future__ import annotations

from urllib.parse import parse_qsl, unquote, urlencode, urlparse

import httpx
import structlog

from docingest.interfaces.cloud_resolver import ICloudResolver
from docingest.models.ingestion import IngestionSource
from docingest.models.plan import PlanEntry
from docingest.providers.resolvers.base import download_to_plan
from docingest.utils.errors import ResolverError

logger = structlog.get_logger(logger_name=__name__)

_SCHEME = "dropbox://"
_HOST = "www.dropbox.com"


class DropboxResolver(ICloudResolver):
    """Downloads Dropbox shared links."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http = http_client

    def can_resolve(self, source: str) -> bool:
        return source.startswith(_SCHEME) or "dropbox.com/" in source

    async def resolve(self, source: str) -> PlanEntry:
        if source.startswith(_SCHEME):
            source = f"https://{_HOST}/{source[len(_SCHEME):].lstrip('/')}"

        parsed = urlparse(source)
        path = parsed.path.rstrip("/")
        if not path:
            raise ResolverError(
                message=f"Dropbox link has no path: {source!r}",
                provider_name=self.get_provider_name(),
            )

        query = dict(parse_qsl(parsed.query))
        rlkey = query.get("rlkey")
        identity = f"{_SCHEME}{path.lstrip('/')}"
        if rlkey:
            identity = f"{identity}?rlkey={rlkey}"

        query["dl"] = "1"
        download_url = parsed._replace(netloc=parsed.netloc or _HOST, query=urlencode(query)).geturl()
        logger.debug("dropbox_resolved", identity_path=identity)
        return await download_to_plan(
            self._http,
            download_url,
            file_name=unquote(path.rsplit("/", 1)[-1]),
            identity_path=identity,
            provenance=IngestionSource.DROPBOX,
            provider_name=self.get_provider_name(),
        )

    def get_provider_name(self) -> str:
        return "dropbox"
