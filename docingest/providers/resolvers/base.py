"""Shared download helper for the HTTP-based cloud resolvers."""

from __future__ import annotations

import re
import tempfile
from pathlib import Path

import httpx
import structlog

from docingest.models.ingestion import IngestionSource
from docingest.models.plan import PlanEntry, TransientLease
from docingest.utils.errors import ResolverError

logger = structlog.get_logger(logger_name=__name__)

_UNSAFE_NAME_RE = re.compile(r"[^\w.\- ]+")
_FALLBACK_NAME = "download.bin"


def safe_file_name(name: str | None) -> str:
    """Reduce a remote file name to a safe local base name."""
    base = Path(name or "").name
    cleaned = _UNSAFE_NAME_RE.sub("_", base).strip(" .")
    return cleaned or _FALLBACK_NAME


async def download_to_plan(
    http_client: httpx.AsyncClient,
    url: str,
    *,
    file_name: str | None,
    identity_path: str,
    provenance: IngestionSource,
    provider_name: str,
    headers: dict[str, str] | None = None,
) -> PlanEntry:
    """Stream *url* into a private temp directory and lease it.

    The file keeps its remote name so extension-based processing works.
    If the download fails, the directory is removed before
    :class:`ResolverError` is raised.
    """
    temp_dir = Path(tempfile.mkdtemp(prefix="docingest-"))
    lease = TransientLease(temp_dir)
    local_path = temp_dir / safe_file_name(file_name)

    try:
        async with http_client.stream(
            "GET", url, headers=headers, follow_redirects=True
        ) as response:
            response.raise_for_status()
            with open(local_path, "wb") as fh:
                async for block in response.aiter_bytes():
                    fh.write(block)
    except (httpx.HTTPError, OSError) as exc:
        lease.release()
        raise ResolverError(
            message=f"Download failed for {identity_path}: {exc}",
            provider_name=provider_name,
        ) from exc

    logger.info(
        "cloud_file_downloaded",
        provider=provider_name,
        identity_path=identity_path,
        local_path=str(local_path),
        size=local_path.stat().st_size,
    )
    return PlanEntry(
        local_path=str(local_path),
        identity_path=identity_path,
        provenance=provenance,
        lease=lease,
    )


def bearer_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}
