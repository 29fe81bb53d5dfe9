"""
NoteSync Core - Directory Syncer
================================
Walks a local note directory and its remote counterpart and transfers
whatever differs.

Rules:
- Only ``.md`` files are synced; only ``.assets`` folders are descended into
- A file is skipped when the other side has the same size and (if a remote
  hash exists) the same hash; the local hash is computed only after the
  sizes agree
- A failed file counts into ``failed`` and never aborts the walk
- A directory that cannot be enumerated counts as one failure and its
  subtree is skipped
- Counters accumulate across the whole recursion and survive cancellation
- In a two-way pass with recorded state, a note changed only remotely is
  not uploaded over, and a local edit not yet uploaded is never downloaded
  over
"""

import logging
import os
from typing import List, Optional

from .cancellation import CancellationToken
from .decision import FileDigest, needs_transfer
from .progress import ProgressReporter
from .state import SyncStateStore
from ..errors import NoteSyncError, SyncCancelledError
from ..models import SyncCounters, SyncDirection, SyncAction, ProgressEvent, RemoteFileInfo
from ..providers.base import BaseStorageProvider
from ..utils.file_utils import (
    is_synced_file,
    is_synced_directory,
    join_remote_path,
    normalize_remote_path,
    conflict_copy_path,
)

logger = logging.getLogger(__name__)


class DirectorySyncer:
    """
    One sync pass over one local/remote root pair.

    Usage:
        syncer = DirectorySyncer(provider, reporter=reporter, token=token)
        counters = SyncCounters()
        syncer.sync_directory(local_root, remote_root, SyncDirection.BIDIRECTIONAL, counters)
    """

    def __init__(
        self,
        provider: BaseStorageProvider,
        reporter: Optional[ProgressReporter] = None,
        token: Optional[CancellationToken] = None,
        state: Optional[SyncStateStore] = None,
    ):
        self.provider = provider
        self.reporter = reporter
        self.token = token or CancellationToken()
        self.state = state
        self._discovered = 0
        self._processed = 0

    def sync_directory(
        self,
        local_dir: str,
        remote_dir: str,
        direction: SyncDirection,
        counters: Optional[SyncCounters] = None,
    ) -> SyncCounters:
        """
        Run one pass in the given direction.

        Args:
            local_dir: Local root directory
            remote_dir: Remote root path
            direction: Upload, download or both (upload first)
            counters: Accumulator; pass one in to keep partial counts
                      when the pass is cancelled

        Returns:
            The accumulated counters

        Raises:
            SyncCancelledError: When the token is cancelled mid-pass
        """
        if counters is None:
            counters = SyncCounters()

        remote_dir = normalize_remote_path(remote_dir)
        detect_conflicts = direction == SyncDirection.BIDIRECTIONAL and self.state is not None

        try:
            if direction.uploads:
                self._emit(SyncAction.UPLOAD, counters, phase='start')
                self._upload_tree(local_dir, remote_dir, counters, detect_conflicts)

            if direction.downloads:
                self._emit(SyncAction.DOWNLOAD, counters, phase='start')
                self._download_tree(local_dir, remote_dir, counters, detect_conflicts)
        finally:
            self._save_state()

        return counters

    # =========================================================================
    # UPLOAD
    # =========================================================================

    def _upload_tree(
        self,
        local_dir: str,
        remote_dir: str,
        counters: SyncCounters,
        detect_conflicts: bool,
    ) -> None:
        if not self.provider.create_directory(remote_dir):
            logger.error(f"Could not create remote directory {remote_dir}")
            counters.failed += 1
            return

        try:
            with os.scandir(local_dir) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.error(f"Cannot read local directory {local_dir}: {e}")
            counters.failed += 1
            return

        files = [e for e in entries if e.is_file() and is_synced_file(e.name)]
        self._discovered += len(files)

        for entry in entries:
            self.token.raise_if_cancelled()

            if entry.is_dir():
                if is_synced_directory(entry.name):
                    self._upload_tree(
                        entry.path,
                        join_remote_path(remote_dir, entry.name),
                        counters,
                        detect_conflicts,
                    )
                continue

            if not (entry.is_file() and is_synced_file(entry.name)):
                continue

            remote_path = join_remote_path(remote_dir, entry.name)
            try:
                self._upload_one(entry.path, remote_path, counters, detect_conflicts)
            except SyncCancelledError:
                raise
            except Exception as e:
                logger.error(f"Failed to sync {entry.path}: {e}")
                counters.failed += 1

            self._processed += 1
            self._emit(SyncAction.UPLOAD, counters, current_file=entry.path)

    def _upload_one(
        self,
        local_path: str,
        remote_path: str,
        counters: SyncCounters,
        detect_conflicts: bool,
    ) -> None:
        try:
            remote_info = self.provider.get_file_info(remote_path)
        except NoteSyncError as e:
            # Unknown remote state never leads to a skip
            logger.warning(f"Metadata lookup failed for {remote_path}, uploading: {e}")
            remote_info = None

        local = FileDigest.for_local(local_path, self.provider.local_content_hash)
        remote = FileDigest.for_remote(remote_info)

        if not needs_transfer(local, remote):
            counters.skipped += 1
            self._record(local_path, remote_info)
            return

        if detect_conflicts and remote is not None and self._changed_remotely(local_path, remote_info):
            if not self.state.local_changed(local_path):
                # Edited remotely only; the download step fetches it
                logger.debug(f"Remote edit of {remote_path} left for download")
                return
            self._resolve_conflict(local_path, remote_path, counters)
            return

        if self.provider.upload_file(local_path, remote_path):
            counters.uploaded += 1
            self._record_from_remote(local_path, remote_path)
        else:
            counters.failed += 1

    def _changed_remotely(self, local_path: str, remote_info: RemoteFileInfo) -> bool:
        """The remote side moved on since the last recorded sync."""
        if self.state.get(local_path) is None:
            return False
        return self.state.remote_changed(local_path, remote_info)

    def _resolve_conflict(self, local_path: str, remote_path: str, counters: SyncCounters) -> None:
        """Keep the local edit as a conflict copy and take the remote version."""
        copy_path = conflict_copy_path(local_path)
        os.replace(local_path, copy_path)

        if self.provider.download_file(remote_path, local_path):
            logger.warning(f"Conflict on {local_path}: local version kept as {copy_path}")
            counters.conflicts += 1
            counters.downloaded += 1
            self._record_from_remote(local_path, remote_path)
        else:
            os.replace(copy_path, local_path)
            counters.failed += 1

    # =========================================================================
    # DOWNLOAD
    # =========================================================================

    def _download_tree(
        self,
        local_dir: str,
        remote_dir: str,
        counters: SyncCounters,
        keep_local_edits: bool = False,
    ) -> None:
        try:
            entries: List[RemoteFileInfo] = self.provider.list_files(remote_dir)
        except NoteSyncError as e:
            logger.error(f"Cannot list remote directory {remote_dir}: {e}")
            counters.failed += 1
            return

        entries = sorted(entries, key=lambda e: e.name)
        self._discovered += sum(
            1 for e in entries if not e.is_directory and is_synced_file(e.name)
        )

        for entry in entries:
            self.token.raise_if_cancelled()

            if entry.is_directory:
                if is_synced_directory(entry.name):
                    self._download_tree(
                        os.path.join(local_dir, entry.name),
                        join_remote_path(remote_dir, entry.name),
                        counters,
                        keep_local_edits,
                    )
                continue

            if not is_synced_file(entry.name):
                continue

            local_path = os.path.join(local_dir, entry.name)
            remote_path = join_remote_path(remote_dir, entry.name)
            try:
                self._download_one(entry, remote_path, local_path, counters, keep_local_edits)
            except SyncCancelledError:
                raise
            except Exception as e:
                logger.error(f"Failed to sync {remote_path}: {e}")
                counters.failed += 1

            self._processed += 1
            self._emit(SyncAction.DOWNLOAD, counters, current_file=remote_path)

    def _download_one(
        self,
        remote_info: RemoteFileInfo,
        remote_path: str,
        local_path: str,
        counters: SyncCounters,
        keep_local_edits: bool = False,
    ) -> None:
        local = None
        if os.path.isfile(local_path):
            local = FileDigest.for_local(local_path, self.provider.local_content_hash)

        if not needs_transfer(local, FileDigest.for_remote(remote_info)):
            counters.skipped += 1
            self._record(local_path, remote_info)
            return

        if local is not None and keep_local_edits and self.state.local_changed(local_path):
            # Unsynced local edit, e.g. its upload just failed
            logger.warning(f"Not overwriting local edit of {local_path}; left for the next pass")
            return

        if self.provider.download_file(remote_path, local_path):
            counters.downloaded += 1
            self._record(local_path, remote_info)
        else:
            counters.failed += 1

    # =========================================================================
    # STATE / PROGRESS
    # =========================================================================

    def _record(self, local_path: str, remote_info: Optional[RemoteFileInfo]) -> None:
        if self.state is not None:
            self.state.record(local_path, remote_info)

    def _record_from_remote(self, local_path: str, remote_path: str) -> None:
        if self.state is None:
            return
        try:
            self.state.record(local_path, self.provider.get_file_info(remote_path))
        except NoteSyncError as e:
            logger.debug(f"No remote version recorded for {remote_path}: {e}")
            self.state.forget(local_path)

    def _save_state(self) -> None:
        if self.state is None:
            return
        try:
            self.state.save()
        except OSError as e:
            logger.warning(f"Could not save sync state {self.state.path}: {e}")

    def _emit(
        self,
        action: SyncAction,
        counters: SyncCounters,
        phase: Optional[str] = None,
        current_file: Optional[str] = None,
    ) -> None:
        if self.reporter is None:
            return
        self.reporter.emit(ProgressEvent(
            total=self._discovered,
            processed=self._processed,
            action=action,
            phase=phase,
            current_file=current_file,
            uploaded=counters.uploaded,
            downloaded=counters.downloaded,
            skipped=counters.skipped,
            failed=counters.failed,
            conflicts=counters.conflicts,
        ))
