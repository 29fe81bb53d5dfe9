"""
NoteSync Core - Cloud Storage Manager
=====================================
Orchestrator behind every sync, test and auth call.

For each call the manager:
1. Looks up the provider id in its factory (unknown id -> failure result)
2. Decrypts ``*_encrypted`` auth fields
3. Creates and initializes a fresh provider for this call only
4. Delegates, converting any exception into a failure result

Nothing here raises to the caller: every public method returns a
well-formed result dictionary or SyncOutcome.
"""

import dataclasses
import logging
import os
import threading
from typing import Any, Callable, Dict, List, Optional, Set

from .config.constants import PROVIDER_CATALOG
from .config.credentials import decrypt_auth, mask_credentials
from .errors import SyncCancelledError
from .models import SyncConfig, SyncDirection, SyncCounters, SyncOutcome, SyncAction, ProgressEvent
from .providers.base import BaseStorageProvider
from .providers.factory import StorageFactory
from .sync.cancellation import CancellationToken
from .sync.progress import ProgressReporter
from .sync.state import SyncStateStore
from .sync.syncer import DirectorySyncer

logger = logging.getLogger(__name__)


def _unsupported_message(config: SyncConfig) -> str:
    return f"unsupported provider: {config.provider}"


class CloudStorageManager:
    """
    Multi-provider sync orchestrator.

    Usage:
        manager = CloudStorageManager()
        unsubscribe = manager.subscribe(lambda event: print(event.to_dict()))
        outcome = manager.sync_bidirectional(SyncConfig.from_dict(payload))
    """

    def __init__(
        self,
        factory: Optional[StorageFactory] = None,
        reporter: Optional[ProgressReporter] = None,
        encryption_key: Optional[str] = None,
    ):
        self.factory = factory or StorageFactory()
        self.progress = reporter or ProgressReporter()
        self._encryption_key = encryption_key
        self._active_tokens: Set[CancellationToken] = set()
        self._lock = threading.Lock()

    # =========================================================================
    # PROVIDER LIFECYCLE
    # =========================================================================

    def _is_supported(self, config: SyncConfig) -> bool:
        return self.factory.is_provider_supported(config.provider)

    def _create_provider(self, config: SyncConfig) -> BaseStorageProvider:
        """Fresh provider for one call, with decrypted auth."""
        auth = decrypt_auth(config.auth, self._encryption_key)
        logger.debug(f"Creating {config.provider} provider with auth {mask_credentials(auth)}")
        return self.factory.create(dataclasses.replace(config, auth=auth))

    # =========================================================================
    # CONNECTION / AUTH
    # =========================================================================

    def test_connection(self, config: SyncConfig) -> Dict[str, Any]:
        if not self._is_supported(config):
            return {'success': False, 'message': _unsupported_message(config)}

        try:
            provider = self._create_provider(config)
            return provider.test_connection()
        except Exception as e:
            logger.error(f"Connection test failed for {config.provider}: {e}")
            return {'success': False, 'message': f"Connection failed: {e}"}

    def authenticate(self, config: SyncConfig) -> Dict[str, Any]:
        if not self._is_supported(config):
            return {'success': False, 'message': _unsupported_message(config)}

        try:
            provider = self._create_provider(config)
            return provider.authenticate()
        except Exception as e:
            logger.error(f"Authentication failed for {config.provider}: {e}")
            return {'success': False, 'message': f"Authentication failed: {e}"}

    def handle_oauth_callback(self, config: SyncConfig, code: str) -> Dict[str, Any]:
        """Exchange an OAuth authorization code for tokens."""
        if not self._is_supported(config):
            return {'success': False, 'message': _unsupported_message(config)}

        try:
            provider = self._create_provider(config)
            tokens = provider.exchange_code(code)
        except Exception as e:
            logger.error(f"OAuth callback failed for {config.provider}: {e}")
            return {'success': False, 'message': f"Authorization failed: {e}"}

        logger.info(f"{provider.get_service_name()} authorization completed")
        return {
            'success': True,
            'message': f"{provider.get_service_name()} authorization completed",
            'tokens': tokens,
        }

    def refresh_auth(self, config: SyncConfig) -> Dict[str, Any]:
        """Refresh the access token and hand the new token set back."""
        if not self._is_supported(config):
            return {'success': False, 'message': _unsupported_message(config)}

        try:
            provider = self._create_provider(config)
            refreshed = provider.refresh_auth()
        except Exception as e:
            logger.error(f"Token refresh failed for {config.provider}: {e}")
            return {'success': False, 'message': f"Token refresh failed: {e}"}

        if not refreshed:
            return {'success': False, 'message': 'Token refresh failed'}

        result = {'success': True, 'message': 'Token refreshed'}
        tokens = provider.get_auth_tokens()
        if tokens:
            result['tokens'] = tokens
        return result

    # =========================================================================
    # SYNC
    # =========================================================================

    def sync(self, config: SyncConfig) -> SyncOutcome:
        """Run a pass in the direction configured on the target."""
        return self._run_sync(config, config.sync_direction)

    def sync_local_to_remote(self, config: SyncConfig) -> SyncOutcome:
        return self._run_sync(config, SyncDirection.LOCAL_TO_REMOTE)

    def sync_remote_to_local(self, config: SyncConfig) -> SyncOutcome:
        return self._run_sync(config, SyncDirection.REMOTE_TO_LOCAL)

    def sync_bidirectional(self, config: SyncConfig) -> SyncOutcome:
        return self._run_sync(config, SyncDirection.BIDIRECTIONAL)

    def _run_sync(self, config: SyncConfig, direction: SyncDirection) -> SyncOutcome:
        if not self._is_supported(config):
            return SyncOutcome.failure(_unsupported_message(config))

        if not config.local_path:
            return SyncOutcome.failure("Sync failed: localPath is not configured")

        try:
            provider = self._create_provider(config)
            provider.ensure_ready()
            os.makedirs(config.local_path, exist_ok=True)
            state = SyncStateStore(config.local_path).load()
        except Exception as e:
            logger.error(f"Sync could not start for {config.provider}: {e}")
            return SyncOutcome.failure(f"Sync failed: {e}")

        token = CancellationToken()
        counters = SyncCounters()
        with self._lock:
            self._active_tokens.add(token)

        logger.info(
            f"Starting {direction.value} sync: {config.local_path} <-> "
            f"{provider.get_service_name()}:{config.remote_path}"
        )

        try:
            syncer = DirectorySyncer(provider, reporter=self.progress, token=token, state=state)
            syncer.sync_directory(config.local_path, config.remote_path, direction, counters)
            outcome = SyncOutcome.from_counters(counters, self._summary(counters))
        except SyncCancelledError:
            logger.info("Sync cancelled")
            outcome = SyncOutcome.from_counters(counters, "Sync cancelled", cancelled=True)
        except Exception as e:
            logger.error(f"Sync failed for {config.provider}: {e}")
            outcome = SyncOutcome.from_counters(counters, f"Sync failed: {e}", success=False)
        finally:
            with self._lock:
                self._active_tokens.discard(token)

        self.progress.emit(ProgressEvent(
            total=counters.uploaded + counters.downloaded + counters.skipped + counters.failed,
            processed=counters.uploaded + counters.downloaded + counters.skipped + counters.failed,
            action=SyncAction.COMPARE,
            phase='cancelled' if outcome.cancelled else 'done',
            uploaded=counters.uploaded,
            downloaded=counters.downloaded,
            skipped=counters.skipped,
            failed=counters.failed,
            conflicts=counters.conflicts,
        ))

        logger.info(outcome.message)
        return outcome

    @staticmethod
    def _summary(counters: SyncCounters) -> str:
        message = (
            f"Sync completed: {counters.uploaded} uploaded, {counters.downloaded} downloaded, "
            f"{counters.skipped} skipped, {counters.failed} failed"
        )
        if counters.conflicts:
            message += f", {counters.conflicts} conflicts"
        return message

    def cancel_sync(self) -> Dict[str, Any]:
        """Ask every in-flight pass to stop before its next file."""
        with self._lock:
            tokens = list(self._active_tokens)

        for token in tokens:
            token.cancel()

        if not tokens:
            return {'success': True, 'message': 'No sync in progress'}
        return {'success': True, 'message': f"Cancellation requested for {len(tokens)} sync(s)"}

    def clear_sync_state(self, config: SyncConfig) -> Dict[str, Any]:
        """Forget the recorded sync state of a target."""
        if not config.local_path:
            return {'success': False, 'message': 'localPath is not configured'}

        try:
            removed = SyncStateStore(config.local_path).clear()
        except OSError as e:
            return {'success': False, 'message': f"Failed to clear sync state: {e}"}

        return {
            'success': True,
            'message': 'Sync state cleared' if removed else 'No sync state to clear',
        }

    # =========================================================================
    # CATALOG / PROGRESS
    # =========================================================================

    def get_supported_providers(self) -> List[Dict[str, str]]:
        return [dict(entry) for entry in PROVIDER_CATALOG]

    def get_available_providers(self) -> List[str]:
        return self.factory.get_supported_providers()

    def subscribe(self, listener: Callable[[ProgressEvent], None]) -> Callable[[], None]:
        return self.progress.subscribe(listener)

    @property
    def active_sync_count(self) -> int:
        with self._lock:
            return len(self._active_tokens)
