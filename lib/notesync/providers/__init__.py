"""
NoteSync Core - Storage Providers
=================================
Remote storage backends for note synchronization.

Supported:
    - WebDAV (Nextcloud, ownCloud, Basic auth)
    - Google Drive (OAuth2 with token refresh)
    - Dropbox (OAuth2 with offline access)
"""

from .base import BaseStorageProvider
from .factory import StorageFactory, DEFAULT_PROVIDERS
from .dropbox_provider import DropboxProvider
from .google_drive_provider import GoogleDriveProvider
from .webdav_provider import WebDAVProvider

__all__ = [
    "BaseStorageProvider",
    "StorageFactory",
    "DEFAULT_PROVIDERS",
    "DropboxProvider",
    "GoogleDriveProvider",
    "WebDAVProvider",
]
