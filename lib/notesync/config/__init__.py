"""
Configuration module - Credentials and constants management.
"""

from .credentials import (
    get_encryption_key,
    decrypt_credential,
    decrypt_auth,
    mask_credentials,
)

from .constants import (
    SHARED_VERSION,
    SYNC_FILE_EXTENSIONS,
    SYNC_DIRECTORY_NAMES,
    SYNC_STATE_FILENAME,
    MAX_RETRIES,
    RETRY_DELAY_SECONDS,
    PROVIDER_CATALOG,
    # Sync directions
    SYNC_DIRECTION_LOCAL_TO_REMOTE,
    SYNC_DIRECTION_REMOTE_TO_LOCAL,
    SYNC_DIRECTION_BIDIRECTIONAL,
    # Provider identifiers
    STORAGE_PROVIDER_WEBDAV,
    STORAGE_PROVIDER_GOOGLE_DRIVE,
    STORAGE_PROVIDER_DROPBOX,
)

__all__ = [
    # Credentials
    "get_encryption_key",
    "decrypt_credential",
    "decrypt_auth",
    "mask_credentials",
    # Constants
    "SHARED_VERSION",
    "SYNC_FILE_EXTENSIONS",
    "SYNC_DIRECTORY_NAMES",
    "SYNC_STATE_FILENAME",
    "MAX_RETRIES",
    "RETRY_DELAY_SECONDS",
    "PROVIDER_CATALOG",
    # Sync directions
    "SYNC_DIRECTION_LOCAL_TO_REMOTE",
    "SYNC_DIRECTION_REMOTE_TO_LOCAL",
    "SYNC_DIRECTION_BIDIRECTIONAL",
    # Provider identifiers
    "STORAGE_PROVIDER_WEBDAV",
    "STORAGE_PROVIDER_GOOGLE_DRIVE",
    "STORAGE_PROVIDER_DROPBOX",
]
