"""
Sync State Store
================
Per-target record of the last synchronized state of every file.

Stored as JSON in the local root (``.notesync-state.json``), keyed by the
file path relative to that root:

    {
        "version": "1.0",
        "files": {
            "todo.md": {
                "localSize": 120,
                "localMtime": 1704103200000,
                "remoteVersion": "9e107d9d372bb6826bd81d3542a419d6"
            }
        }
    }

A record is written after every successful transfer or verified skip.
Bidirectional passes compare against it to tell "changed on one side"
from "changed on both sides".
"""

import json
import logging
import os
from typing import Dict, Any, Optional

from ..config.constants import SYNC_STATE_FILENAME, SYNC_STATE_VERSION
from ..models import RemoteFileInfo
from ..utils.file_utils import atomic_write_path

logger = logging.getLogger(__name__)


def _local_stat(local_path: str) -> Dict[str, int]:
    stat = os.stat(local_path)
    return {
        'localSize': stat.st_size,
        'localMtime': int(stat.st_mtime * 1000),
    }


class SyncStateStore:

    def __init__(self, local_root: str):
        self.local_root = local_root
        self.path = os.path.join(local_root, SYNC_STATE_FILENAME)
        self._files: Dict[str, Dict[str, Any]] = {}
        self._dirty = False

    def load(self) -> "SyncStateStore":
        """Load from disk. A missing or unreadable file starts empty."""
        self._files = {}
        if not os.path.exists(self.path):
            return self

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            files = data.get('files') if isinstance(data, dict) else None
            if isinstance(files, dict):
                self._files = files
            else:
                logger.warning(f"Ignoring malformed sync state {self.path}")
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable sync state {self.path}: {e}")

        return self

    def save(self) -> None:
        if not self._dirty:
            return
        payload = {'version': SYNC_STATE_VERSION, 'files': self._files}
        with atomic_write_path(self.path) as temp_path:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, sort_keys=True)
        self._dirty = False

    def clear(self) -> bool:
        """Delete the state file. Returns True if there was one."""
        self._files = {}
        self._dirty = False
        if os.path.exists(self.path):
            os.remove(self.path)
            return True
        return False

    def relative_key(self, local_path: str) -> str:
        return os.path.relpath(local_path, self.local_root).replace(os.sep, '/')

    def get(self, local_path: str) -> Optional[Dict[str, Any]]:
        return self._files.get(self.relative_key(local_path))

    def record(self, local_path: str, remote: Optional[RemoteFileInfo]) -> None:
        """Remember the current local stat and remote version of a file."""
        key = self.relative_key(local_path)
        if remote is None:
            self.forget(local_path)
            return
        try:
            entry = _local_stat(local_path)
        except OSError:
            self.forget(local_path)
            return
        entry['remoteVersion'] = remote.version
        self._files[key] = entry
        self._dirty = True

    def forget(self, local_path: str) -> None:
        if self._files.pop(self.relative_key(local_path), None) is not None:
            self._dirty = True

    def local_changed(self, local_path: str) -> bool:
        """True if the file differs from its record (or has no record)."""
        entry = self.get(local_path)
        if entry is None:
            return True
        try:
            current = _local_stat(local_path)
        except OSError:
            return True
        return (
            current['localSize'] != entry.get('localSize')
            or current['localMtime'] != entry.get('localMtime')
        )

    def remote_changed(self, local_path: str, remote: RemoteFileInfo) -> bool:
        entry = self.get(local_path)
        if entry is None:
            return True
        return remote.version != entry.get('remoteVersion')

    def __len__(self) -> int:
        return len(self._files)
