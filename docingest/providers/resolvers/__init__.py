"""Cloud drive resolvers."""

from docingest.providers.resolvers.dropbox_resolver import DropboxResolver
from docingest.providers.resolvers.google_drive_resolver import GoogleDriveResolver
from docingest.providers.resolvers.onedrive_resolver import OneDriveResolver

__all__ = ["DropboxResolver", "GoogleDriveResolver", "OneDriveResolver"]
