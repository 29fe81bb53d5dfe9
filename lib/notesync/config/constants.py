"""
NoteSync Core - Constants and Configuration
===========================================
Shared constants, allow-lists, endpoints and default values
for the multi-provider note synchronization engine.
"""

from typing import Dict, Tuple

# Version identifier for NoteSync Core
SHARED_VERSION = "1.0.0"

# =============================================================================
# SYNC ALLOW-LISTS
# =============================================================================

# Only note files are synchronized
SYNC_FILE_EXTENSIONS: Tuple[str, ...] = ('.md',)

# Only attachment folders are descended into
SYNC_DIRECTORY_NAMES: Tuple[str, ...] = ('.assets',)

# Per-target sync state file, kept in the local root (never synced: not a note)
SYNC_STATE_FILENAME: str = ".notesync-state.json"
SYNC_STATE_VERSION: str = "1.0"

# Infix used when preserving a local file that conflicts with the remote copy
CONFLICT_COPY_INFIX: str = ".conflict-"
CONFLICT_TIMESTAMP_FORMAT: str = "%Y%m%d-%H%M%S"

# =============================================================================
# SYNC DIRECTIONS
# =============================================================================

SYNC_DIRECTION_LOCAL_TO_REMOTE: str = "localToRemote"
SYNC_DIRECTION_REMOTE_TO_LOCAL: str = "remoteToLocal"
SYNC_DIRECTION_BIDIRECTIONAL: str = "bidirectional"

# =============================================================================
# RETRY CONFIGURATION
# =============================================================================

# Maximum attempts for a single network call inside a provider
MAX_RETRIES: int = 3

# Delay between retries (seconds)
RETRY_DELAY_SECONDS: float = 2.0

# Timeout for plain HTTP requests (seconds)
HTTP_TIMEOUT_SECONDS: int = 30

# =============================================================================
# TRANSFER CONFIGURATION
# =============================================================================

# Chunk size for large file uploads (bytes)
UPLOAD_CHUNK_SIZE: int = 8 * 1024 * 1024  # 8MB

# Read buffer used when hashing local files (bytes)
HASH_READ_SIZE: int = 1024 * 1024  # 1MB

# Dropbox content_hash block size (fixed by the Dropbox API)
DROPBOX_HASH_BLOCK_SIZE: int = 4 * 1024 * 1024  # 4MB

# =============================================================================
# PROVIDER IDENTIFIERS
# =============================================================================

STORAGE_PROVIDER_WEBDAV: str = "webdav"
STORAGE_PROVIDER_GOOGLE_DRIVE: str = "googledrive"
STORAGE_PROVIDER_DROPBOX: str = "dropbox"

# Static catalog, independent of runtime availability
PROVIDER_CATALOG: Tuple[Dict[str, str], ...] = (
    {
        'id': STORAGE_PROVIDER_WEBDAV,
        'name': 'WebDAV',
        'description': 'Nextcloud, ownCloud and other WebDAV-compatible storage',
    },
    {
        'id': STORAGE_PROVIDER_GOOGLE_DRIVE,
        'name': 'Google Drive',
        'description': 'Cloud storage provided by Google',
    },
    {
        'id': STORAGE_PROVIDER_DROPBOX,
        'name': 'Dropbox',
        'description': 'Dropbox cloud storage',
    },
)

# =============================================================================
# API ENDPOINTS
# =============================================================================

# Dropbox OAuth2 endpoints
DROPBOX_AUTHORIZE_URL: str = "https://www.dropbox.com/oauth2/authorize"
DROPBOX_TOKEN_URL: str = "https://api.dropboxapi.com/oauth2/token"

# Google OAuth2 endpoints
GOOGLE_AUTH_URI: str = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI: str = "https://oauth2.googleapis.com/token"
GOOGLE_DRIVE_SCOPES: Tuple[str, ...] = ('https://www.googleapis.com/auth/drive',)
GOOGLE_DRIVE_FOLDER_MIME_TYPE: str = "application/vnd.google-apps.folder"

# Redirect URI used when the caller does not configure one
DEFAULT_REDIRECT_URI: str = "http://localhost:3000/auth/callback"

# =============================================================================
# ENVIRONMENT VARIABLES
# =============================================================================

ENCRYPTION_KEY_ENV_VAR: str = "NOTESYNC_ENCRYPTION_KEY"
LOG_LEVEL_ENV_VAR: str = "NOTESYNC_LOG_LEVEL"
