"""Abstract base class for per-provider cloud file resolvers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docingest.models.plan import PlanEntry


# Concrete implementations:
#   GoogleDriveResolver -- gdrive://{fileId}, drive.google.com links
#   OneDriveResolver    -- onedrive://{driveId}/{itemId}, 1drv.ms, sharepoint.com
#   DropboxResolver     -- dropbox://..., dropbox.com shared links
# Located in: docingest/providers/resolvers/
class ICloudResolver(ABC):
    """Maps a cloud URI or share link to a downloaded, leased local copy."""

    @abstractmethod
    def can_resolve(self, source: str) -> bool:
        """Return ``True`` if this resolver understands *source*.

        Must be cheap and free of I/O; the registry calls it for every
        input in precedence order.
        """

    @abstractmethod
    async def resolve(self, source: str) -> PlanEntry:
        """Download *source* and return a plan entry owning the temp copy.

        Returns
        -------
        PlanEntry
            ``identity_path`` uses the provider's stable scheme and
            ``lease`` deletes the download when released.

        Raises
        ------
        docingest.utils.errors.ResolverError
            If lookup or download fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short provider name used in logs and config."""
