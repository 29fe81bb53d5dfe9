"""
Pytest Configuration and Fixtures
==================================
Loads test credentials from environment and provides reusable fixtures.

Unit tests run against an in-memory provider (``MemoryProvider``) so the
sync engine can be exercised without any backend.
"""

import hashlib
import os
import sys
import pytest
from pathlib import Path
from dotenv import load_dotenv

# Add lib to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "lib"))

# Load test environment variables
env_file = project_root / ".env.test"
if env_file.exists():
    load_dotenv(env_file)
else:
    # Try loading from CI environment
    load_dotenv()

from notesync.errors import ProviderError  # noqa: E402
from notesync.models import RemoteFileInfo  # noqa: E402
from notesync.providers.base import BaseStorageProvider  # noqa: E402
from notesync.utils.file_utils import (  # noqa: E402
    normalize_remote_path,
    remote_parent_and_name,
    atomic_write_path,
    compute_md5,
)


# =============================================================================
# IN-MEMORY PROVIDER
# =============================================================================

class RemoteStore:
    """
    Backing store shared by every MemoryProvider instance of one test.

    Knobs:
    - expose_hash: report MD5 content hashes like Drive/WebDAV do
    - fail_uploads / fail_downloads: file names whose transfer returns False
    - fail_listing / fail_metadata: remote paths that raise ProviderError
    - on_upload: callback(remote_path) run after every successful upload
    """

    def __init__(self):
        self.files = {}
        self.dirs = {"/"}
        self.mtimes = {}
        self.expose_hash = True
        self.fail_uploads = set()
        self.fail_downloads = set()
        self.fail_listing = set()
        self.fail_metadata = set()
        self.on_upload = None
        self.uploads = []
        self.downloads = []
        self.hash_calls = 0
        self._clock = 1_700_000_000_000

    def put(self, remote_path: str, content: bytes) -> None:
        path = normalize_remote_path(remote_path)
        self._add_parents(path)
        self.files[path] = content
        self._clock += 1000
        self.mtimes[path] = self._clock

    def get(self, remote_path: str) -> bytes:
        return self.files[normalize_remote_path(remote_path)]

    def _add_parents(self, path: str) -> None:
        parent, _ = remote_parent_and_name(path)
        while parent not in self.dirs:
            self.dirs.add(parent)
            parent, _ = remote_parent_and_name(parent)


class MemoryProvider(BaseStorageProvider):
    """Provider backed by a RemoteStore. Bound to a store per test."""

    provider_type = "memory"
    service_name = "Memory"
    store: RemoteStore = None

    def initialize(self, config):
        self.config = config
        self.auth = dict(config.auth)
        return True

    def test_connection(self):
        return {'success': True, 'message': 'Connected to memory'}

    def upload_file(self, local_path, remote_path):
        path = normalize_remote_path(remote_path)
        _, name = remote_parent_and_name(path)
        if name in self.store.fail_uploads:
            return False
        with open(local_path, 'rb') as f:
            self.store.put(path, f.read())
        self.store.uploads.append(path)
        if self.store.on_upload:
            self.store.on_upload(path)
        return True

    def download_file(self, remote_path, local_path):
        path = normalize_remote_path(remote_path)
        _, name = remote_parent_and_name(path)
        if name in self.store.fail_downloads or path not in self.store.files:
            return False
        with atomic_write_path(local_path) as temp_path:
            with open(temp_path, 'wb') as f:
                f.write(self.store.files[path])
        self.store.downloads.append(path)
        return True

    def delete_file(self, remote_path):
        return self.store.files.pop(normalize_remote_path(remote_path), None) is not None

    def create_directory(self, remote_path):
        path = normalize_remote_path(remote_path)
        self.store._add_parents(path)
        self.store.dirs.add(path)
        return True

    def list_files(self, remote_path):
        path = normalize_remote_path(remote_path)
        if path in self.store.fail_listing:
            raise ProviderError(f"listing failed: {path}")
        entries = []
        for directory in self.store.dirs:
            if directory != "/" and remote_parent_and_name(directory)[0] == path:
                entries.append(self._info(directory, is_directory=True))
        for file_path in self.store.files:
            if remote_parent_and_name(file_path)[0] == path:
                entries.append(self._info(file_path))
        return entries

    def get_file_info(self, remote_path):
        path = normalize_remote_path(remote_path)
        if path in self.store.fail_metadata:
            raise ProviderError(f"metadata failed: {path}")
        if path in self.store.files:
            return self._info(path)
        if path in self.store.dirs:
            return self._info(path, is_directory=True)
        return None

    def _info(self, path, is_directory=False):
        parent, name = remote_parent_and_name(path)
        if is_directory:
            return RemoteFileInfo(id=path, name=name, path=path, is_directory=True, parent_id=parent)
        content = self.store.files[path]
        content_hash = None
        if self.store.expose_hash:
            content_hash = hashlib.md5(content).hexdigest()
        return RemoteFileInfo(
            id=path,
            name=name,
            path=path,
            size=len(content),
            modified_time=self.store.mtimes[path],
            parent_id=parent,
            content_hash=content_hash,
        )

    def local_content_hash(self, local_path):
        self.store.hash_calls += 1
        return compute_md5(local_path)

    def authenticate(self):
        return {'success': True, 'message': 'No authorization needed'}

    def refresh_auth(self):
        return True


@pytest.fixture
def remote_store():
    """Fresh in-memory remote for one test."""
    return RemoteStore()


@pytest.fixture
def memory_provider_class(remote_store):
    """MemoryProvider subclass bound to this test's remote store."""
    return type("BoundMemoryProvider", (MemoryProvider,), {"store": remote_store})


@pytest.fixture
def memory_provider(memory_provider_class, tmp_path):
    """Initialized MemoryProvider instance."""
    from notesync.models import SyncConfig

    provider = memory_provider_class()
    provider.initialize(SyncConfig(provider="memory", local_path=str(tmp_path)))
    return provider


@pytest.fixture
def manager(memory_provider_class):
    """CloudStorageManager whose only provider is the in-memory one."""
    from notesync import CloudStorageManager, StorageFactory

    factory = StorageFactory(providers={"memory": memory_provider_class})
    return CloudStorageManager(factory=factory)


@pytest.fixture
def notes_dir(tmp_path):
    """Local note root."""
    root = tmp_path / "notes"
    root.mkdir()
    return root


@pytest.fixture
def memory_config(notes_dir):
    """SyncConfig pointing at the in-memory provider."""
    from notesync.models import SyncConfig

    return SyncConfig(provider="memory", remote_path="/Notes", local_path=str(notes_dir))


def write_note(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def make_note():
    """Write a note file below a root: make_note(root, 'a/b.md', 'text')."""
    return write_note


# =============================================================================
# CREDENTIAL FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def dropbox_auth():
    """Dropbox OAuth credentials from environment."""
    auth = {
        "clientId": os.getenv("TEST_DROPBOX_APP_KEY"),
        "clientSecret": os.getenv("TEST_DROPBOX_APP_SECRET"),
        "refreshToken": os.getenv("TEST_DROPBOX_REFRESH_TOKEN"),
    }

    if not all(auth.values()):
        pytest.skip("Dropbox credentials not configured")

    return auth


@pytest.fixture(scope="session")
def dropbox_test_folder():
    """Dropbox test folder path."""
    return os.getenv("TEST_DROPBOX_TEST_FOLDER", "/NoteSync-Tests")


@pytest.fixture(scope="session")
def google_drive_auth():
    """Google Drive OAuth credentials from environment."""
    auth = {
        "clientId": os.getenv("TEST_GDRIVE_CLIENT_ID"),
        "clientSecret": os.getenv("TEST_GDRIVE_CLIENT_SECRET"),
        "refreshToken": os.getenv("TEST_GDRIVE_REFRESH_TOKEN"),
    }

    if not all(auth.values()):
        pytest.skip("Google Drive credentials not configured")

    return auth


@pytest.fixture(scope="session")
def google_drive_test_folder():
    """Google Drive test folder path."""
    return os.getenv("TEST_GDRIVE_TEST_FOLDER", "/NoteSync-Tests")


@pytest.fixture(scope="session")
def webdav_auth():
    """WebDAV server credentials from environment."""
    auth = {
        "url": os.getenv("TEST_WEBDAV_URL"),
        "username": os.getenv("TEST_WEBDAV_USERNAME"),
        "password": os.getenv("TEST_WEBDAV_PASSWORD"),
    }

    if not all(auth.values()):
        pytest.skip("WebDAV credentials not configured")

    return auth


@pytest.fixture(scope="session")
def webdav_test_folder():
    """WebDAV test folder path."""
    return os.getenv("TEST_WEBDAV_TEST_FOLDER", "/NoteSync-Tests")


@pytest.fixture(scope="session")
def encryption_key():
    """Fernet encryption key for testing."""
    key = os.getenv("TEST_ENCRYPTION_KEY")

    if not key:
        # Generate a temporary key for unit tests
        from cryptography.fernet import Fernet
        key = Fernet.generate_key().decode()

    return key


# =============================================================================
# PROVIDER FIXTURES
# =============================================================================

def _real_provider(provider_type, auth, tmp_path):
    from notesync import StorageFactory, SyncConfig

    config = SyncConfig(provider=provider_type, local_path=str(tmp_path), auth=auth)
    return StorageFactory().create(config)


@pytest.fixture
def dropbox_provider(dropbox_auth, tmp_path):
    """Initialized Dropbox storage provider."""
    return _real_provider("dropbox", dropbox_auth, tmp_path)


@pytest.fixture
def google_drive_provider(google_drive_auth, tmp_path):
    """Initialized Google Drive storage provider."""
    return _real_provider("googledrive", google_drive_auth, tmp_path)


@pytest.fixture
def webdav_provider(webdav_auth, tmp_path):
    """Initialized WebDAV storage provider."""
    return _real_provider("webdav", webdav_auth, tmp_path)


# =============================================================================
# UTILITY FIXTURES
# =============================================================================

@pytest.fixture
def mock_env(monkeypatch):
    """Helper to mock environment variables."""
    def _mock_env(env_dict):
        for key, value in env_dict.items():
            monkeypatch.setenv(key, value)
    return _mock_env


# =============================================================================
# TEST MARKERS COLLECTION
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: Tests that call external APIs")
    config.addinivalue_line("markers", "dropbox: Tests requiring Dropbox credentials")
    config.addinivalue_line("markers", "google_drive: Tests requiring Google Drive credentials")
    config.addinivalue_line("markers", "webdav: Tests requiring a WebDAV server")
    config.addinivalue_line("markers", "slow: Tests that take more than 30 seconds")
