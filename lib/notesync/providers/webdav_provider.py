"""
NoteSync Core - WebDAV Storage Provider
=======================================
WebDAV implementation of the sync provider contract (Nextcloud, ownCloud,
Apache mod_dav, ...).

Speaks plain HTTP through a requests Session:
- PROPFIND (Depth 0/1) for metadata and listings
- PUT / GET for transfers
- MKCOL for directories
- DELETE for removal

Remote hashes come from the ownCloud/Nextcloud ``oc:checksums`` property
(MD5 entry) when the server exposes it; otherwise the syncer falls back
to size comparison only.
"""

import logging
import posixpath
import xml.etree.ElementTree as ET
from typing import List, Dict, Any, Optional
from urllib.parse import quote, unquote, urlparse

import requests
from requests.auth import HTTPBasicAuth

from .base import BaseStorageProvider
from ..config.constants import STORAGE_PROVIDER_WEBDAV, HTTP_TIMEOUT_SECONDS
from ..errors import ProviderError
from ..models import SyncConfig, RemoteFileInfo
from ..utils.file_utils import (
    normalize_remote_path,
    join_remote_path,
    split_remote_path,
    atomic_write_path,
)
from ..utils.retry import call_with_retries
from ..utils.time_utils import http_date_to_epoch_ms

logger = logging.getLogger(__name__)

DAV_NS = 'DAV:'
OC_NS = 'http://owncloud.org/ns'

PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:" xmlns:oc="http://owncloud.org/ns">'
    '<d:prop>'
    '<d:resourcetype/><d:getcontentlength/><d:getlastmodified/>'
    '<d:getetag/><oc:checksums/>'
    '</d:prop>'
    '</d:propfind>'
)

TRANSIENT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)

DOWNLOAD_CHUNK_SIZE = 64 * 1024


def _find_text(element: ET.Element, tag: str) -> Optional[str]:
    found = element.find(f'.//{tag}')
    if found is None or found.text is None:
        return None
    return found.text.strip()


def _md5_from_checksums(prop: ET.Element) -> Optional[str]:
    """Pick the MD5 out of 'SHA1:... MD5:... ADLER32:...'."""
    for checksum in prop.iter(f'{{{OC_NS}}}checksum'):
        for token in (checksum.text or '').split():
            algo, _, value = token.partition(':')
            if algo.upper() == 'MD5' and value:
                return value.lower()
    return None


class WebDAVProvider(BaseStorageProvider):
    """
    WebDAV storage provider.

    Auth map keys:
    - url: server base URL, e.g. https://cloud.example.com/remote.php/dav/files/me (required)
    - username / password: HTTP Basic credentials
    """

    provider_type = STORAGE_PROVIDER_WEBDAV
    service_name = "WebDAV"

    def __init__(self):
        super().__init__()
        self.base_url: str = ""
        self.session: Optional[requests.Session] = None

    def initialize(self, config: SyncConfig) -> bool:
        auth = dict(config.auth)
        self._require_auth_fields(auth, ('url',))

        self.config = config
        self.auth = auth
        self.base_url = auth['url'].rstrip('/')

        self.session = requests.Session()
        if auth.get('username'):
            self.session.auth = HTTPBasicAuth(auth['username'], auth.get('password') or '')
        return True

    # =========================================================================
    # HTTP HELPERS
    # =========================================================================

    def _url(self, remote_path: str) -> str:
        return self.base_url + quote(normalize_remote_path(remote_path))

    def _base_path(self) -> str:
        return unquote(urlparse(self.base_url).path).rstrip('/')

    def _request(self, method: str, remote_path: str, **kwargs) -> requests.Response:
        kwargs.setdefault('timeout', HTTP_TIMEOUT_SECONDS)
        return call_with_retries(
            self.session.request,
            method,
            self._url(remote_path),
            retry_on=TRANSIENT_ERRORS,
            description=f"WebDAV {method} {normalize_remote_path(remote_path)}",
            **kwargs,
        )

    def _propfind(self, remote_path: str, depth: str) -> Optional[List[RemoteFileInfo]]:
        """Run PROPFIND; None if the resource does not exist."""
        response = self._request(
            'PROPFIND',
            remote_path,
            data=PROPFIND_BODY,
            headers={'Depth': depth, 'Content-Type': 'application/xml; charset=utf-8'},
        )
        if response.status_code == 404:
            return None
        if response.status_code != 207:
            raise ProviderError(
                f"WebDAV PROPFIND {normalize_remote_path(remote_path)} failed: HTTP {response.status_code}"
            )
        return self._parse_multistatus(response.content)

    def _parse_multistatus(self, content: bytes) -> List[RemoteFileInfo]:
        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise ProviderError(f"Invalid WebDAV response: {e}")

        base_path = self._base_path()
        entries = []

        for response in root.findall(f'{{{DAV_NS}}}response'):
            href = _find_text(response, f'{{{DAV_NS}}}href')
            if not href:
                continue

            href_path = unquote(urlparse(href).path)
            if base_path and href_path.startswith(base_path):
                href_path = href_path[len(base_path):]
            path = normalize_remote_path(href_path)

            prop = response.find(f'.//{{{DAV_NS}}}prop')
            if prop is None:
                continue

            is_directory = prop.find(f'.//{{{DAV_NS}}}collection') is not None
            size = _find_text(prop, f'{{{DAV_NS}}}getcontentlength')

            entries.append(RemoteFileInfo(
                id=href,
                name=posixpath.basename(path),
                path=path,
                size=int(size) if size and size.isdigit() else 0,
                modified_time=http_date_to_epoch_ms(_find_text(prop, f'{{{DAV_NS}}}getlastmodified')),
                is_directory=is_directory,
                content_hash=None if is_directory else _md5_from_checksums(prop),
            ))

        return entries

    # =========================================================================
    # CONTRACT
    # =========================================================================

    def test_connection(self) -> Dict[str, Any]:
        if self.session is None:
            return {'success': False, 'message': 'WebDAV is not initialized'}

        try:
            response = self._request(
                'PROPFIND', '/',
                data=PROPFIND_BODY,
                headers={'Depth': '0', 'Content-Type': 'application/xml; charset=utf-8'},
            )
        except Exception as e:
            return {'success': False, 'message': f"WebDAV connection failed: {e}"}

        if response.status_code in (401, 403):
            return {'success': False, 'message': 'WebDAV authentication failed: check username and password'}
        if response.status_code != 207:
            return {'success': False, 'message': f"WebDAV connection failed: HTTP {response.status_code}"}
        return {'success': True, 'message': f"Connected to {self.base_url}"}

    def upload_file(self, local_path: str, remote_path: str) -> bool:
        if self.session is None:
            return False

        try:
            # Every attempt, retries included, sends the full body
            with open(local_path, 'rb') as f:
                content = f.read()
            response = self._request('PUT', remote_path, data=content)
            if response.status_code not in (200, 201, 204):
                logger.error(f"WebDAV upload failed: {remote_path}: HTTP {response.status_code}")
                return False
            logger.debug(f"Uploaded: {normalize_remote_path(remote_path)}")
            return True
        except Exception as e:
            logger.error(f"WebDAV upload failed: {local_path} -> {remote_path}: {e}")
            return False

    def download_file(self, remote_path: str, local_path: str) -> bool:
        if self.session is None:
            return False

        try:
            response = self._request('GET', remote_path, stream=True)
            if response.status_code != 200:
                logger.error(f"WebDAV download failed: {remote_path}: HTTP {response.status_code}")
                return False

            with atomic_write_path(local_path) as temp_path:
                with open(temp_path, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)

            logger.debug(f"Downloaded: {normalize_remote_path(remote_path)}")
            return True
        except Exception as e:
            logger.error(f"WebDAV download failed: {remote_path} -> {local_path}: {e}")
            return False

    def delete_file(self, remote_path: str) -> bool:
        if self.session is None:
            return False

        try:
            response = self._request('DELETE', remote_path)
            return response.status_code in (200, 204)
        except Exception as e:
            logger.error(f"WebDAV delete failed: {remote_path}: {e}")
            return False

    def create_directory(self, remote_path: str) -> bool:
        """MKCOL each missing segment; 405 means it already exists."""
        if self.session is None:
            return False

        current = "/"
        try:
            for segment in split_remote_path(remote_path):
                current = join_remote_path(current, segment)
                response = self._request('MKCOL', current)
                if response.status_code not in (201, 405):
                    logger.error(f"Failed to create WebDAV folder {current}: HTTP {response.status_code}")
                    return False
            return True
        except Exception as e:
            logger.error(f"Failed to create WebDAV folder {remote_path}: {e}")
            return False

    def list_files(self, remote_path: str) -> List[RemoteFileInfo]:
        self.ensure_ready()

        target = normalize_remote_path(remote_path)
        try:
            entries = self._propfind(target, '1')
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"WebDAV list failed for {target}: {e}")

        if entries is None:
            return []
        # Depth 1 includes the collection itself
        return [entry for entry in entries if entry.path != target]

    def get_file_info(self, remote_path: str) -> Optional[RemoteFileInfo]:
        self.ensure_ready()

        target = normalize_remote_path(remote_path)
        try:
            entries = self._propfind(target, '0')
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"WebDAV metadata failed for {target}: {e}")

        if not entries:
            return None
        return entries[0]

    def authenticate(self) -> Dict[str, Any]:
        """WebDAV uses Basic auth: there is no browser step."""
        return {'success': True, 'message': 'WebDAV uses username/password authentication'}

    def refresh_auth(self) -> bool:
        """Nothing to refresh for Basic auth."""
        return True
