"""
Progress Reporter
=================
Fan-out of ProgressEvent notifications to subscribed listeners.

Listeners are informational only: an exception raised by a listener is
logged and never reaches the sync pass.
"""

import logging
import threading
from typing import Callable, List

from ..models import ProgressEvent

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressEvent], None]


class ProgressReporter:

    def __init__(self):
        self._listeners: List[ProgressListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A function that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: ProgressEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Progress listener failed: {e}")

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)
