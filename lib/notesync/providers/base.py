"""
NoteSync Core - Base Storage Provider
=====================================
Abstract base class for all remote storage backends.

Every provider is created fresh for one call, initialized with that call's
SyncConfig and discarded afterwards:
- No cross-call caching of credentials or connections
- initialize() builds the client/session and does no network I/O
- Single-file primitives swallow errors into False so one failed file
  never aborts the caller's loop
- Listing and metadata raise ProviderError so the syncer can account
  for enumeration failures
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Iterable

from ..errors import ProviderConfigError, UnsupportedOperationError
from ..models import SyncConfig, RemoteFileInfo
from ..utils.file_utils import compute_md5


class BaseStorageProvider(ABC):
    """
    Abstract base class for remote storage providers.

    All providers (WebDAV, Google Drive, Dropbox) implement this interface
    to be usable with the StorageFactory and the DirectorySyncer.
    """

    provider_type: str = ""
    service_name: str = ""

    def __init__(self):
        self.config: Optional[SyncConfig] = None
        self.auth: Dict[str, Any] = {}

    @abstractmethod
    def initialize(self, config: SyncConfig) -> bool:
        """
        Build the backend client from ``config.auth``.

        Idempotent: calling it twice with the same config yields the same
        state. Performs no network I/O beyond what an SDK constructor needs.

        Returns:
            True if the client was built

        Raises:
            ProviderConfigError: If auth lacks fields the provider always needs
        """
        pass

    @abstractmethod
    def test_connection(self) -> Dict[str, Any]:
        """
        Issue one cheap identity call.

        Returns:
            {'success': bool, 'message': str}; never raises
        """
        pass

    @abstractmethod
    def upload_file(self, local_path: str, remote_path: str) -> bool:
        """Upload a local file, overwriting any remote file at that path."""
        pass

    @abstractmethod
    def download_file(self, remote_path: str, local_path: str) -> bool:
        """Download a remote file atomically, creating local parents."""
        pass

    @abstractmethod
    def delete_file(self, remote_path: str) -> bool:
        """Delete a remote file."""
        pass

    @abstractmethod
    def create_directory(self, remote_path: str) -> bool:
        """Create a remote directory; True if it already exists."""
        pass

    @abstractmethod
    def list_files(self, remote_path: str) -> List[RemoteFileInfo]:
        """
        List the direct children of a remote directory.

        Raises:
            ProviderError: If the directory cannot be enumerated
        """
        pass

    @abstractmethod
    def get_file_info(self, remote_path: str) -> Optional[RemoteFileInfo]:
        """
        Metadata for one remote path.

        Returns:
            RemoteFileInfo, or None if nothing exists at that path

        Raises:
            ProviderError: For any backend failure other than not-found
        """
        pass

    @abstractmethod
    def authenticate(self) -> Dict[str, Any]:
        """
        Start the provider's auth flow.

        Returns:
            {'success': bool, 'message': str, 'authUrl': str (OAuth only)}
        """
        pass

    @abstractmethod
    def refresh_auth(self) -> bool:
        """Refresh an expired access token. Prior tokens survive a failure."""
        pass

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """
        Complete an OAuth authorization-code flow.

        Default implementation raises UnsupportedOperationError.
        OAuth providers override it.

        Returns:
            Token dictionary ({'accessToken', 'refreshToken', ...})
        """
        raise UnsupportedOperationError(self.get_service_name(), "exchange_code")

    def local_content_hash(self, local_path: str) -> str:
        """
        Hash of a local file in the same scheme as remote ``content_hash``.

        Default is MD5 hex, matching Google Drive and WebDAV checksums.
        """
        return compute_md5(local_path)

    def ensure_ready(self) -> None:
        """
        Raise ProviderConfigError if transfers cannot run yet.

        Called once before a sync pass so a misconfigured target fails the
        whole call instead of failing every file.
        """
        if self.config is None:
            raise ProviderConfigError(f"{self.get_service_name()} is not initialized")

    def get_auth_tokens(self) -> Dict[str, Any]:
        """Current token set (after refresh_auth), empty for token-less providers."""
        return {}

    def get_service_name(self) -> str:
        """Human-readable provider name (e.g., 'Dropbox')."""
        return self.service_name

    def _require_auth_fields(self, auth: Dict[str, Any], fields: Iterable[str]) -> None:
        """Fail fast with the list of missing auth fields."""
        missing = [name for name in fields if not auth.get(name)]
        if missing:
            raise ProviderConfigError(
                f"Missing required {self.get_service_name()} auth fields: {', '.join(missing)}"
            )
