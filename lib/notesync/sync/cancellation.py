"""
Cooperative cancellation for sync passes.
"""

import threading

from ..errors import SyncCancelledError


class CancellationToken:
    """One per sync pass. Checked between files, never mid-transfer."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SyncCancelledError("Sync cancelled")
