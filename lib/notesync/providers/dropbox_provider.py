"""
Dropbox Storage Provider
========================
Dropbox implementation of the sync provider contract.

Features:
- OAuth2 authorization-code flow with offline (refresh token) access
- Manual token refresh against the OAuth2 token endpoint
- Chunked uploads for large files
- Native content_hash for skip detection
"""

import logging
import os
from typing import List, Dict, Any, Optional
from urllib.parse import urlencode

import requests
import dropbox
from dropbox.exceptions import ApiError, AuthError, InternalServerError, RateLimitError
from dropbox.files import WriteMode, FileMetadata, FolderMetadata

from .base import BaseStorageProvider
from ..config.constants import (
    STORAGE_PROVIDER_DROPBOX,
    DROPBOX_AUTHORIZE_URL,
    DROPBOX_TOKEN_URL,
    DEFAULT_REDIRECT_URI,
    HTTP_TIMEOUT_SECONDS,
    UPLOAD_CHUNK_SIZE,
)
from ..errors import ProviderConfigError, ProviderError
from ..models import SyncConfig, RemoteFileInfo
from ..utils.file_utils import (
    normalize_dropbox_path,
    dropbox_api_path,
    atomic_write_path,
    compute_dropbox_content_hash,
)
from ..utils.retry import call_with_retries
from ..utils.time_utils import datetime_to_epoch_ms

logger = logging.getLogger(__name__)

# Errors worth a second attempt
TRANSIENT_ERRORS = (
    InternalServerError,
    RateLimitError,
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)


class DropboxProvider(BaseStorageProvider):
    """
    Dropbox storage provider.

    Auth map keys:
    - clientId: Dropbox app key (required)
    - clientSecret: Dropbox app secret
    - redirectUri: OAuth redirect URI
    - accessToken / refreshToken: tokens from a completed OAuth flow

    Paths are filesystem-style ("/Notes/todo.md"). The entry id exposed in
    RemoteFileInfo is Dropbox's path_lower.
    """

    provider_type = STORAGE_PROVIDER_DROPBOX
    service_name = "Dropbox"

    def __init__(self):
        super().__init__()
        self.client: Optional[dropbox.Dropbox] = None

    def initialize(self, config: SyncConfig) -> bool:
        """
        Build a Dropbox client from the auth map.

        The client is only built once tokens exist; before the OAuth flow
        has completed the provider can still produce an authorization URL.
        """
        auth = dict(config.auth)
        self._require_auth_fields(auth, ('clientId',))

        self.config = config
        self.auth = auth
        self.client = None

        if not (auth.get('accessToken') or auth.get('refreshToken')):
            logger.info("Dropbox initialized without tokens (authorization pending)")
            return True

        try:
            self.client = self._build_client(auth)
            return True
        except Exception as e:
            logger.error(f"Dropbox initialization failed: {e}")
            return False

    def _build_client(self, auth: Dict[str, Any]) -> dropbox.Dropbox:
        return dropbox.Dropbox(
            oauth2_access_token=auth.get('accessToken') or None,
            oauth2_refresh_token=auth.get('refreshToken') or None,
            app_key=auth.get('clientId'),
            app_secret=auth.get('clientSecret') or None,
        )

    def ensure_ready(self) -> None:
        super().ensure_ready()
        if self.client is None:
            raise ProviderConfigError(
                "Dropbox is not authorized: missing accessToken or refreshToken"
            )

    def test_connection(self) -> Dict[str, Any]:
        """Verify the tokens by fetching the current account."""
        if self.client is None:
            return {'success': False, 'message': 'Dropbox is not initialized or not authorized'}

        try:
            account = self.client.users_get_current_account()
            user = account.name.display_name or account.email
            return {'success': True, 'message': f"Connected as: {user}"}
        except AuthError as e:
            return {'success': False, 'message': f"Dropbox authentication failed: {e}"}
        except Exception as e:
            return {'success': False, 'message': f"Dropbox connection failed: {e}"}

    def upload_file(self, local_path: str, remote_path: str) -> bool:
        """Upload a local file, overwriting the remote copy."""
        if self.client is None:
            return False

        normalized_path = normalize_dropbox_path(remote_path)

        try:
            file_size = os.path.getsize(local_path)

            if file_size <= UPLOAD_CHUNK_SIZE:
                with open(local_path, 'rb') as f:
                    content = f.read()
                call_with_retries(
                    self.client.files_upload,
                    content,
                    normalized_path,
                    mode=WriteMode('overwrite'),
                    autorename=False,
                    retry_on=TRANSIENT_ERRORS,
                    description=f"Dropbox upload {normalized_path}",
                )
            else:
                self._chunked_upload(local_path, normalized_path, file_size)

            logger.debug(f"Uploaded: {normalized_path}")
            return True

        except Exception as e:
            logger.error(f"Dropbox upload failed: {local_path} -> {normalized_path}: {e}")
            return False

    def _chunked_upload(self, local_path: str, remote_path: str, file_size: int) -> None:
        """Upload a large file using an upload session."""
        with open(local_path, 'rb') as f:
            session = self.client.files_upload_session_start(f.read(UPLOAD_CHUNK_SIZE))
            cursor = dropbox.files.UploadSessionCursor(
                session_id=session.session_id,
                offset=f.tell(),
            )
            commit = dropbox.files.CommitInfo(
                path=remote_path,
                mode=WriteMode('overwrite'),
                autorename=False,
            )

            while cursor.offset < file_size:
                chunk = f.read(UPLOAD_CHUNK_SIZE)
                if f.tell() < file_size:
                    self.client.files_upload_session_append_v2(chunk, cursor)
                    cursor.offset = f.tell()
                else:
                    self.client.files_upload_session_finish(chunk, cursor, commit)
                    break

    def download_file(self, remote_path: str, local_path: str) -> bool:
        """Download to a temp file next to local_path, then move into place."""
        if self.client is None:
            return False

        normalized_path = normalize_dropbox_path(remote_path)

        try:
            with atomic_write_path(local_path) as temp_path:
                call_with_retries(
                    self.client.files_download_to_file,
                    temp_path,
                    normalized_path,
                    retry_on=TRANSIENT_ERRORS,
                    description=f"Dropbox download {normalized_path}",
                )
            logger.debug(f"Downloaded: {normalized_path}")
            return True

        except Exception as e:
            logger.error(f"Dropbox download failed: {normalized_path} -> {local_path}: {e}")
            return False

    def delete_file(self, remote_path: str) -> bool:
        if self.client is None:
            return False

        normalized_path = normalize_dropbox_path(remote_path)

        try:
            self.client.files_delete_v2(normalized_path)
            return True
        except Exception as e:
            logger.error(f"Dropbox delete failed: {normalized_path}: {e}")
            return False

    def create_directory(self, remote_path: str) -> bool:
        """Create a folder; an existing folder counts as success."""
        if self.client is None:
            return False

        normalized_path = normalize_dropbox_path(remote_path)
        if normalized_path == "/":
            return True

        try:
            self.client.files_create_folder_v2(normalized_path, autorename=False)
            logger.debug(f"Created folder: {normalized_path}")
            return True
        except ApiError as e:
            if e.error.is_path() and e.error.get_path().is_conflict():
                return True
            logger.error(f"Failed to create Dropbox folder {normalized_path}: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to create Dropbox folder {normalized_path}: {e}")
            return False

    def list_files(self, remote_path: str) -> List[RemoteFileInfo]:
        """List direct children; a missing folder lists as empty."""
        self.ensure_ready()

        api_path = dropbox_api_path(remote_path)
        entries: List[RemoteFileInfo] = []

        try:
            result = call_with_retries(
                self.client.files_list_folder,
                api_path,
                retry_on=TRANSIENT_ERRORS,
                description=f"Dropbox list {api_path or '/'}",
            )

            while True:
                for entry in result.entries:
                    info = self._to_file_info(entry)
                    if info is not None:
                        entries.append(info)

                if not result.has_more:
                    break
                result = self.client.files_list_folder_continue(result.cursor)

            return entries

        except ApiError as e:
            if e.error.is_path() and e.error.get_path().is_not_found():
                return []
            raise ProviderError(f"Dropbox list failed for {api_path or '/'}: {e}")
        except Exception as e:
            raise ProviderError(f"Dropbox list failed for {api_path or '/'}: {e}")

    def get_file_info(self, remote_path: str) -> Optional[RemoteFileInfo]:
        self.ensure_ready()

        normalized_path = normalize_dropbox_path(remote_path)
        if normalized_path == "/":
            return RemoteFileInfo(id="", name="", path="/", is_directory=True)

        try:
            metadata = call_with_retries(
                self.client.files_get_metadata,
                normalized_path,
                retry_on=TRANSIENT_ERRORS,
                description=f"Dropbox metadata {normalized_path}",
            )
            return self._to_file_info(metadata)
        except ApiError as e:
            if e.error.is_path() and e.error.get_path().is_not_found():
                return None
            raise ProviderError(f"Dropbox metadata failed for {normalized_path}: {e}")
        except Exception as e:
            raise ProviderError(f"Dropbox metadata failed for {normalized_path}: {e}")

    def _to_file_info(self, entry) -> Optional[RemoteFileInfo]:
        if isinstance(entry, FileMetadata):
            return RemoteFileInfo(
                id=entry.path_lower or entry.name,
                name=entry.name,
                path=entry.path_display or entry.path_lower or entry.name,
                size=entry.size,
                modified_time=datetime_to_epoch_ms(entry.client_modified or entry.server_modified),
                is_directory=False,
                content_hash=entry.content_hash,
            )
        if isinstance(entry, FolderMetadata):
            return RemoteFileInfo(
                id=entry.path_lower or entry.name,
                name=entry.name,
                path=entry.path_display or entry.path_lower or entry.name,
                is_directory=True,
            )
        # DeletedMetadata and anything newer
        return None

    def local_content_hash(self, local_path: str) -> str:
        return compute_dropbox_content_hash(local_path)

    def authenticate(self) -> Dict[str, Any]:
        """Build the authorization URL for the external browser step."""
        client_id = self.auth.get('clientId')
        if not client_id:
            return {'success': False, 'message': 'Dropbox clientId is not configured'}

        params = {
            'client_id': client_id,
            'response_type': 'code',
            'token_access_type': 'offline',
            'redirect_uri': self.auth.get('redirectUri') or DEFAULT_REDIRECT_URI,
        }
        auth_url = f"{DROPBOX_AUTHORIZE_URL}?{urlencode(params)}"

        return {
            'success': True,
            'message': 'Complete the OAuth authorization in your browser',
            'authUrl': auth_url,
        }

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for access and refresh tokens."""
        if not code:
            raise ProviderConfigError("Authorization code is empty")

        data = {
            'code': code,
            'grant_type': 'authorization_code',
            'client_id': self.auth.get('clientId'),
            'client_secret': self.auth.get('clientSecret'),
            'redirect_uri': self.auth.get('redirectUri') or DEFAULT_REDIRECT_URI,
        }

        try:
            response = requests.post(DROPBOX_TOKEN_URL, data=data, timeout=HTTP_TIMEOUT_SECONDS)
            response.raise_for_status()
            token_data = response.json()
        except Exception as e:
            raise ProviderError(f"Dropbox code exchange failed: {e}")
        finally:
            data.clear()  # Clear credentials from memory

        access_token = token_data.get('access_token')
        if not access_token:
            raise ProviderError("No access token in Dropbox response")

        tokens = {
            'accessToken': access_token,
            'refreshToken': token_data.get('refresh_token') or self.auth.get('refreshToken'),
            'expiresIn': token_data.get('expires_in'),
        }
        self.auth.update({k: v for k, v in tokens.items() if k != 'expiresIn' and v})
        self.client = self._build_client(self.auth)
        return tokens

    def refresh_auth(self) -> bool:
        """Exchange the refresh token for a new access token."""
        refresh_token = self.auth.get('refreshToken')
        client_id = self.auth.get('clientId')
        if not (refresh_token and client_id):
            return False

        data = {
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
            'client_id': client_id,
        }
        if self.auth.get('clientSecret'):
            data['client_secret'] = self.auth['clientSecret']

        try:
            logger.info("Refreshing Dropbox token...")
            response = requests.post(DROPBOX_TOKEN_URL, data=data, timeout=HTTP_TIMEOUT_SECONDS)
            response.raise_for_status()
            access_token = response.json().get('access_token')
            if not access_token:
                raise ValueError("No access token in response")
        except Exception as e:
            logger.error(f"Failed to refresh Dropbox token: {e}")
            return False
        finally:
            data.clear()  # Clear credentials from memory

        self.auth['accessToken'] = access_token
        self.client = self._build_client(self.auth)
        logger.info("Successfully obtained fresh Dropbox token")
        return True

    def get_auth_tokens(self) -> Dict[str, Any]:
        return {
            'accessToken': self.auth.get('accessToken'),
            'refreshToken': self.auth.get('refreshToken'),
        }
