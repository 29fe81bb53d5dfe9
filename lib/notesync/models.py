"""
NoteSync Core - Data Model
==========================
Sync target configuration, remote file metadata, pass outcomes and
progress events.

Wire payloads use camelCase keys (the desktop UI speaks that dialect);
the dataclasses use snake_case and convert at the edges with
``from_dict`` / ``to_dict``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional

from .config.constants import (
    SYNC_DIRECTION_LOCAL_TO_REMOTE,
    SYNC_DIRECTION_REMOTE_TO_LOCAL,
    SYNC_DIRECTION_BIDIRECTIONAL,
)

# WebDAV settings historically live at the top level of the config payload
_WEBDAV_TOP_LEVEL_FIELDS = ('url', 'username', 'password')


class SyncDirection(Enum):
    """Direction of a sync pass."""
    LOCAL_TO_REMOTE = SYNC_DIRECTION_LOCAL_TO_REMOTE
    REMOTE_TO_LOCAL = SYNC_DIRECTION_REMOTE_TO_LOCAL
    BIDIRECTIONAL = SYNC_DIRECTION_BIDIRECTIONAL

    @property
    def uploads(self) -> bool:
        return self in (SyncDirection.LOCAL_TO_REMOTE, SyncDirection.BIDIRECTIONAL)

    @property
    def downloads(self) -> bool:
        return self in (SyncDirection.REMOTE_TO_LOCAL, SyncDirection.BIDIRECTIONAL)


class SyncAction(Enum):
    """Progress action reported to the UI."""
    UPLOAD = "upload"
    DOWNLOAD = "download"
    COMPARE = "compare"


@dataclass
class SyncConfig:
    """
    One sync target, supplied fresh on every call.

    ``auth`` is opaque here: the provider decides which keys it needs.
    """
    provider: str
    remote_path: str = "/"
    local_path: str = ""
    enabled: bool = True
    sync_on_startup: bool = False
    sync_direction: SyncDirection = SyncDirection.BIDIRECTIONAL
    auth: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncConfig":
        """
        Build a config from a camelCase wire payload.

        Top-level WebDAV ``url`` / ``username`` / ``password`` are folded into
        ``auth`` unless ``auth`` already defines them.
        """
        auth = dict(data.get('auth') or {})
        for key in _WEBDAV_TOP_LEVEL_FIELDS:
            if data.get(key) and not auth.get(key):
                auth[key] = data[key]

        direction = data.get('syncDirection', SYNC_DIRECTION_BIDIRECTIONAL)
        try:
            sync_direction = SyncDirection(direction)
        except ValueError:
            raise ValueError(f"Unknown sync direction: '{direction}'")

        return cls(
            provider=str(data.get('provider', '')).lower().strip(),
            remote_path=data.get('remotePath') or "/",
            local_path=data.get('localPath') or "",
            enabled=bool(data.get('enabled', True)),
            sync_on_startup=bool(data.get('syncOnStartup', False)),
            sync_direction=sync_direction,
            auth=auth,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'provider': self.provider,
            'enabled': self.enabled,
            'remotePath': self.remote_path,
            'localPath': self.local_path,
            'syncOnStartup': self.sync_on_startup,
            'syncDirection': self.sync_direction.value,
            'auth': dict(self.auth),
        }


@dataclass
class RemoteFileInfo:
    """
    Remote entry metadata.

    ``id`` is provider-native (Drive file id, Dropbox path_lower, WebDAV
    href) and must never be compared across providers.
    """
    id: str
    name: str
    path: str
    size: int = 0
    modified_time: int = 0  # epoch ms
    is_directory: bool = False
    parent_id: Optional[str] = None
    content_hash: Optional[str] = None

    @property
    def version(self) -> str:
        """Token identifying this revision of the remote file."""
        if self.content_hash:
            return self.content_hash
        return f"{self.size}:{self.modified_time}"

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'id': self.id,
            'name': self.name,
            'path': self.path,
            'size': self.size,
            'modifiedTime': self.modified_time,
            'isDirectory': self.is_directory,
        }
        if self.parent_id is not None:
            result['parentId'] = self.parent_id
        if self.content_hash is not None:
            result['contentHash'] = self.content_hash
        return result


@dataclass
class SyncCounters:
    """Counts accumulated across one sync pass. Never reset mid-pass."""
    uploaded: int = 0
    downloaded: int = 0
    failed: int = 0
    skipped: int = 0
    conflicts: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'uploaded': self.uploaded,
            'downloaded': self.downloaded,
            'failed': self.failed,
            'skipped': self.skipped,
            'conflicts': self.conflicts,
        }


@dataclass
class SyncOutcome:
    """Result of a sync pass, always well-formed."""
    success: bool
    message: str
    uploaded: int = 0
    downloaded: int = 0
    failed: int = 0
    skipped: int = 0
    conflicts: int = 0
    cancelled: bool = False

    @classmethod
    def failure(cls, message: str) -> "SyncOutcome":
        return cls(success=False, message=message)

    @classmethod
    def from_counters(
        cls,
        counters: SyncCounters,
        message: str,
        success: bool = True,
        cancelled: bool = False,
    ) -> "SyncOutcome":
        return cls(
            success=success,
            message=message,
            uploaded=counters.uploaded,
            downloaded=counters.downloaded,
            failed=counters.failed,
            skipped=counters.skipped,
            conflicts=counters.conflicts,
            cancelled=cancelled,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'uploaded': self.uploaded,
            'downloaded': self.downloaded,
            'failed': self.failed,
            'skipped': self.skipped,
            'conflicts': self.conflicts,
            'cancelled': self.cancelled,
        }


@dataclass
class ProgressEvent:
    """Coarse progress notification. Purely informational."""
    total: int
    processed: int
    action: SyncAction
    phase: Optional[str] = None
    current_file: Optional[str] = None
    uploaded: Optional[int] = None
    downloaded: Optional[int] = None
    skipped: Optional[int] = None
    failed: Optional[int] = None
    conflicts: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'total': self.total,
            'processed': self.processed,
            'action': self.action.value,
        }
        optional = {
            'phase': self.phase,
            'currentFile': self.current_file,
            'uploaded': self.uploaded,
            'downloaded': self.downloaded,
            'skipped': self.skipped,
            'failed': self.failed,
            'conflicts': self.conflicts,
        }
        result.update({k: v for k, v in optional.items() if v is not None})
        return result
