"""
Sync module - Directory walk, transfer decisions, state, progress and cancellation.
"""

from .cancellation import CancellationToken
from .decision import FileDigest, needs_transfer
from .progress import ProgressReporter
from .state import SyncStateStore
from .syncer import DirectorySyncer

__all__ = [
    "CancellationToken",
    "FileDigest",
    "needs_transfer",
    "ProgressReporter",
    "SyncStateStore",
    "DirectorySyncer",
]
