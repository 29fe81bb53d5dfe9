"""
NoteSync Core - Multi-provider note synchronization engine.

Keeps a local directory of markdown notes in sync with WebDAV, Google
Drive or Dropbox.
"""

from .config import (
    SHARED_VERSION,
    PROVIDER_CATALOG,
    decrypt_auth,
    mask_credentials,
)
from .errors import (
    NoteSyncError,
    ProviderConfigError,
    ProviderError,
    UnsupportedOperationError,
    SyncCancelledError,
)
from .models import (
    SyncConfig,
    SyncDirection,
    SyncAction,
    RemoteFileInfo,
    SyncCounters,
    SyncOutcome,
    ProgressEvent,
)
from .providers import (
    BaseStorageProvider,
    StorageFactory,
    DropboxProvider,
    GoogleDriveProvider,
    WebDAVProvider,
)
from .sync import (
    CancellationToken,
    DirectorySyncer,
    ProgressReporter,
    SyncStateStore,
)
from .manager import CloudStorageManager
from .utils import setup_logger

__all__ = [
    # Config
    "SHARED_VERSION",
    "PROVIDER_CATALOG",
    "decrypt_auth",
    "mask_credentials",
    # Errors
    "NoteSyncError",
    "ProviderConfigError",
    "ProviderError",
    "UnsupportedOperationError",
    "SyncCancelledError",
    # Models
    "SyncConfig",
    "SyncDirection",
    "SyncAction",
    "RemoteFileInfo",
    "SyncCounters",
    "SyncOutcome",
    "ProgressEvent",
    # Providers
    "BaseStorageProvider",
    "StorageFactory",
    "DropboxProvider",
    "GoogleDriveProvider",
    "WebDAVProvider",
    # Sync
    "CancellationToken",
    "DirectorySyncer",
    "ProgressReporter",
    "SyncStateStore",
    # Orchestrator
    "CloudStorageManager",
    # Logging
    "setup_logger",
]
