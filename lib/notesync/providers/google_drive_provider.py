"""
NoteSync Core - Google Drive Storage Provider
=============================================
Google Drive implementation of the sync provider contract.

Drive addresses files by id, not by path. Paths are resolved by walking
folder names down from 'root', one query per segment.

Features:
- OAuth2 authorization-code flow with offline access (refresh token)
- Token refresh through google-auth
- md5Checksum for skip detection
- Resumable uploads for large files
"""

import logging
from typing import List, Dict, Any, Optional

from googleapiclient.errors import HttpError

from .base import BaseStorageProvider
from ..config.constants import (
    STORAGE_PROVIDER_GOOGLE_DRIVE,
    GOOGLE_AUTH_URI,
    GOOGLE_TOKEN_URI,
    GOOGLE_DRIVE_SCOPES,
    GOOGLE_DRIVE_FOLDER_MIME_TYPE,
    DEFAULT_REDIRECT_URI,
    UPLOAD_CHUNK_SIZE,
)
from ..errors import ProviderConfigError, ProviderError
from ..models import SyncConfig, RemoteFileInfo
from ..utils.file_utils import (
    normalize_remote_path,
    split_remote_path,
    join_remote_path,
    remote_parent_and_name,
    atomic_write_path,
)
from ..utils.retry import call_with_retries
from ..utils.time_utils import iso_to_epoch_ms

logger = logging.getLogger(__name__)

# Lazy import Google libraries
_google_imported = False
_Credentials = None
_Request = None
_build = None
_Flow = None
_MediaFileUpload = None
_MediaIoBaseDownload = None
_RefreshError = None


def _import_google_libs():
    """Lazy import Google libraries only when needed"""
    global _google_imported, _Credentials, _Request, _build, _Flow
    global _MediaFileUpload, _MediaIoBaseDownload, _RefreshError

    if _google_imported:
        return

    from google.oauth2.credentials import Credentials
    from google.auth.transport.requests import Request
    from google.auth.exceptions import RefreshError
    from google_auth_oauthlib.flow import Flow
    from googleapiclient.discovery import build
    from googleapiclient.http import MediaFileUpload, MediaIoBaseDownload

    _Credentials = Credentials
    _Request = Request
    _build = build
    _Flow = Flow
    _MediaFileUpload = MediaFileUpload
    _MediaIoBaseDownload = MediaIoBaseDownload
    _RefreshError = RefreshError
    _google_imported = True


FILE_FIELDS = 'id, name, mimeType, size, modifiedTime, md5Checksum, parents'

# HTTP statuses worth a second attempt
TRANSIENT_STATUSES = (429, 500, 502, 503, 504)


class _TransientDriveError(Exception):
    """Wraps an HttpError with a retryable status."""


def _escape_query_value(value: str) -> str:
    return value.replace('\\', '\\\\').replace("'", "\\'")


class GoogleDriveProvider(BaseStorageProvider):
    """
    Google Drive storage provider.

    Auth map keys:
    - clientId / clientSecret: OAuth client credentials (clientId required)
    - redirectUri: OAuth redirect URI
    - accessToken / refreshToken: tokens from a completed OAuth flow
    """

    provider_type = STORAGE_PROVIDER_GOOGLE_DRIVE
    service_name = "Google Drive"

    def __init__(self):
        super().__init__()
        self.credentials = None
        self.service = None

    def initialize(self, config: SyncConfig) -> bool:
        """
        Build Drive credentials and service from the auth map.

        Without tokens only the authorization URL can be produced.
        """
        auth = dict(config.auth)
        self._require_auth_fields(auth, ('clientId',))

        self.config = config
        self.auth = auth
        self.credentials = None
        self.service = None

        if not (auth.get('accessToken') or auth.get('refreshToken')):
            logger.info("Google Drive initialized without tokens (authorization pending)")
            return True

        try:
            self._build_service()
            return True
        except Exception as e:
            logger.error(f"Google Drive initialization failed: {e}")
            return False

    def _build_service(self) -> None:
        _import_google_libs()

        self.credentials = _Credentials(
            token=self.auth.get('accessToken') or None,
            refresh_token=self.auth.get('refreshToken') or None,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self.auth.get('clientId'),
            client_secret=self.auth.get('clientSecret'),
            scopes=list(GOOGLE_DRIVE_SCOPES),
        )
        self.service = _build('drive', 'v3', credentials=self.credentials, cache_discovery=False)

    def _client_config(self) -> Dict[str, Any]:
        return {
            'web': {
                'client_id': self.auth.get('clientId'),
                'client_secret': self.auth.get('clientSecret'),
                'auth_uri': GOOGLE_AUTH_URI,
                'token_uri': GOOGLE_TOKEN_URI,
                'redirect_uris': [self._redirect_uri()],
            }
        }

    def _redirect_uri(self) -> str:
        return self.auth.get('redirectUri') or DEFAULT_REDIRECT_URI

    def _make_flow(self):
        _import_google_libs()
        return _Flow.from_client_config(
            self._client_config(),
            scopes=list(GOOGLE_DRIVE_SCOPES),
            redirect_uri=self._redirect_uri(),
            autogenerate_code_verifier=False,
        )

    def ensure_ready(self) -> None:
        super().ensure_ready()
        if self.service is None:
            raise ProviderConfigError(
                "Google Drive is not authorized: missing accessToken or refreshToken"
            )

    def _execute(self, request, description: str):
        """Execute an API request, retrying transient HTTP statuses."""
        def run():
            try:
                return request.execute()
            except HttpError as e:
                if e.resp is not None and e.resp.status in TRANSIENT_STATUSES:
                    raise _TransientDriveError(str(e)) from e
                raise

        try:
            return call_with_retries(
                run,
                retry_on=(_TransientDriveError, ConnectionError, TimeoutError),
                description=description,
            )
        except _TransientDriveError as e:
            raise e.__cause__

    # =========================================================================
    # PATH RESOLUTION
    # =========================================================================

    def _find_child(self, parent_id: str, name: str, folder_only: bool = False) -> Optional[Dict[str, Any]]:
        query = f"name = '{_escape_query_value(name)}' and '{parent_id}' in parents and trashed = false"
        if folder_only:
            query += f" and mimeType = '{GOOGLE_DRIVE_FOLDER_MIME_TYPE}'"

        result = self._execute(
            self.service.files().list(
                q=query,
                fields=f'files({FILE_FIELDS})',
                pageSize=10,
                spaces='drive',
            ),
            f"Drive lookup '{name}'",
        )
        files = result.get('files', [])
        return files[0] if files else None

    def _resolve_folder_id(self, remote_path: str) -> Optional[str]:
        """Folder id for a path, or None if any segment is missing."""
        folder_id = 'root'
        for segment in split_remote_path(remote_path):
            child = self._find_child(folder_id, segment, folder_only=True)
            if child is None:
                return None
            folder_id = child['id']
        return folder_id

    def _find_or_create_folder(self, remote_path: str) -> str:
        """Walk the path from 'root', creating missing folders."""
        folder_id = 'root'
        for segment in split_remote_path(remote_path):
            child = self._find_child(folder_id, segment, folder_only=True)
            if child is None:
                created = self._execute(
                    self.service.files().create(
                        body={
                            'name': segment,
                            'mimeType': GOOGLE_DRIVE_FOLDER_MIME_TYPE,
                            'parents': [folder_id],
                        },
                        fields='id',
                    ),
                    f"Drive create folder '{segment}'",
                )
                logger.debug(f"Created folder: {segment} (ID: {created['id']})")
                folder_id = created['id']
            else:
                folder_id = child['id']
        return folder_id

    def _resolve_file(self, remote_path: str) -> Optional[Dict[str, Any]]:
        parent_path, name = remote_parent_and_name(remote_path)
        if not name:
            return None
        parent_id = self._resolve_folder_id(parent_path)
        if parent_id is None:
            return None
        return self._find_child(parent_id, name)

    def _to_file_info(self, item: Dict[str, Any], parent_path: str) -> RemoteFileInfo:
        parents = item.get('parents') or []
        return RemoteFileInfo(
            id=item['id'],
            name=item['name'],
            path=join_remote_path(parent_path, item['name']),
            size=int(item.get('size', 0) or 0),
            modified_time=iso_to_epoch_ms(item.get('modifiedTime')),
            is_directory=item.get('mimeType') == GOOGLE_DRIVE_FOLDER_MIME_TYPE,
            parent_id=parents[0] if parents else None,
            content_hash=item.get('md5Checksum'),
        )

    # =========================================================================
    # CONTRACT
    # =========================================================================

    def test_connection(self) -> Dict[str, Any]:
        if self.service is None:
            return {'success': False, 'message': 'Google Drive is not initialized or not authorized'}

        try:
            about = self.service.about().get(fields='user').execute()
            user = about.get('user', {})
            email = user.get('emailAddress') or user.get('displayName', 'unknown')
            return {'success': True, 'message': f"Connected as: {email}"}
        except Exception as e:
            return {'success': False, 'message': f"Google Drive connection failed: {e}"}

    def upload_file(self, local_path: str, remote_path: str) -> bool:
        """Upload a file, updating the existing Drive file with the same name."""
        if self.service is None:
            return False

        parent_path, name = remote_parent_and_name(remote_path)

        try:
            _import_google_libs()
            parent_id = self._find_or_create_folder(parent_path)
            existing = self._find_child(parent_id, name)

            media = _MediaFileUpload(
                local_path,
                mimetype='text/markdown' if name.lower().endswith('.md') else 'application/octet-stream',
                chunksize=UPLOAD_CHUNK_SIZE,
                resumable=True,
            )

            if existing:
                self._execute(
                    self.service.files().update(fileId=existing['id'], media_body=media, fields='id'),
                    f"Drive update '{name}'",
                )
            else:
                self._execute(
                    self.service.files().create(
                        body={'name': name, 'parents': [parent_id]},
                        media_body=media,
                        fields='id',
                    ),
                    f"Drive create '{name}'",
                )

            logger.debug(f"Uploaded: {normalize_remote_path(remote_path)}")
            return True

        except Exception as e:
            logger.error(f"Google Drive upload failed: {local_path} -> {remote_path}: {e}")
            return False

    def download_file(self, remote_path: str, local_path: str) -> bool:
        if self.service is None:
            return False

        try:
            _import_google_libs()
            item = self._resolve_file(remote_path)
            if item is None:
                logger.error(f"Google Drive file not found: {remote_path}")
                return False

            with atomic_write_path(local_path) as temp_path:
                with open(temp_path, 'wb') as f:
                    downloader = _MediaIoBaseDownload(
                        f,
                        self.service.files().get_media(fileId=item['id']),
                        chunksize=UPLOAD_CHUNK_SIZE,
                    )
                    done = False
                    while not done:
                        _, done = downloader.next_chunk()

            logger.debug(f"Downloaded: {remote_path}")
            return True

        except Exception as e:
            logger.error(f"Google Drive download failed: {remote_path} -> {local_path}: {e}")
            return False

    def delete_file(self, remote_path: str) -> bool:
        if self.service is None:
            return False

        try:
            item = self._resolve_file(remote_path)
            if item is None:
                return False
            self._execute(self.service.files().delete(fileId=item['id']), f"Drive delete '{remote_path}'")
            return True
        except Exception as e:
            logger.error(f"Google Drive delete failed: {remote_path}: {e}")
            return False

    def create_directory(self, remote_path: str) -> bool:
        if self.service is None:
            return False

        try:
            self._find_or_create_folder(remote_path)
            return True
        except Exception as e:
            logger.error(f"Failed to create Google Drive folder {remote_path}: {e}")
            return False

    def list_files(self, remote_path: str) -> List[RemoteFileInfo]:
        """List direct children; a missing folder lists as empty."""
        self.ensure_ready()

        parent_path = normalize_remote_path(remote_path)
        try:
            folder_id = self._resolve_folder_id(parent_path)
            if folder_id is None:
                return []

            entries: List[RemoteFileInfo] = []
            page_token = None
            while True:
                result = self._execute(
                    self.service.files().list(
                        q=f"'{folder_id}' in parents and trashed = false",
                        fields=f'nextPageToken, files({FILE_FIELDS})',
                        pageSize=1000,
                        pageToken=page_token,
                        spaces='drive',
                    ),
                    f"Drive list '{parent_path}'",
                )
                for item in result.get('files', []):
                    entries.append(self._to_file_info(item, parent_path))

                page_token = result.get('nextPageToken')
                if not page_token:
                    break

            return entries

        except Exception as e:
            raise ProviderError(f"Google Drive list failed for {parent_path}: {e}")

    def get_file_info(self, remote_path: str) -> Optional[RemoteFileInfo]:
        self.ensure_ready()

        parent_path, name = remote_parent_and_name(remote_path)
        if not name:
            return RemoteFileInfo(id='root', name='', path='/', is_directory=True)

        try:
            item = self._resolve_file(remote_path)
        except Exception as e:
            raise ProviderError(f"Google Drive metadata failed for {remote_path}: {e}")

        if item is None:
            return None
        return self._to_file_info(item, parent_path)

    def authenticate(self) -> Dict[str, Any]:
        """Build the consent URL (offline access so a refresh token is issued)."""
        try:
            flow = self._make_flow()
            auth_url, _ = flow.authorization_url(
                access_type='offline',
                prompt='consent',
                include_granted_scopes='true',
            )
        except Exception as e:
            return {'success': False, 'message': f"Failed to build Google authorization URL: {e}"}

        return {
            'success': True,
            'message': 'Complete the OAuth authorization in your browser',
            'authUrl': auth_url,
        }

    def exchange_code(self, code: str) -> Dict[str, Any]:
        if not code:
            raise ProviderConfigError("Authorization code is empty")

        try:
            flow = self._make_flow()
            flow.fetch_token(code=code)
        except Exception as e:
            raise ProviderError(f"Google Drive code exchange failed: {e}")

        credentials = flow.credentials
        tokens = {
            'accessToken': credentials.token,
            'refreshToken': credentials.refresh_token or self.auth.get('refreshToken'),
            'expiry': credentials.expiry.isoformat() if credentials.expiry else None,
        }
        self.auth['accessToken'] = tokens['accessToken']
        if tokens['refreshToken']:
            self.auth['refreshToken'] = tokens['refreshToken']
        self._build_service()
        return tokens

    def refresh_auth(self) -> bool:
        """Refresh the OAuth2 access token"""
        if not self.auth.get('refreshToken'):
            return False

        try:
            _import_google_libs()
            if self.credentials is None:
                self._build_service()
            self.credentials.refresh(_Request())
        except _RefreshError as e:
            logger.error(f"Google Drive token refresh failed: {e}. User may need to re-authorize.")
            return False
        except Exception as e:
            logger.error(f"Google Drive token refresh failed: {e}")
            return False

        self.auth['accessToken'] = self.credentials.token
        if self.credentials.refresh_token:
            self.auth['refreshToken'] = self.credentials.refresh_token
        logger.info("Google Drive token refreshed successfully")
        return True

    def get_auth_tokens(self) -> Dict[str, Any]:
        return {
            'accessToken': self.auth.get('accessToken'),
            'refreshToken': self.auth.get('refreshToken'),
        }
