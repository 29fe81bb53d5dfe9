"""
NoteSync Core - Exceptions
==========================
Typed errors raised below the orchestrator boundary.

Everything derives from NoteSyncError so the CloudStorageManager can
convert any of them into a failure result with a single except clause.
"""


class NoteSyncError(Exception):
    """Base class for all sync engine errors."""


class ProviderConfigError(NoteSyncError):
    """Auth map is missing fields required by the provider."""


class ProviderError(NoteSyncError):
    """A backend call failed (listing, metadata, token exchange...)."""


class UnsupportedOperationError(NoteSyncError):
    """The provider does not implement the requested operation."""

    def __init__(self, provider: str, operation: str):
        self.provider = provider
        self.operation = operation
        super().__init__(f"{provider} does not support {operation}")


class SyncCancelledError(NoteSyncError):
    """Raised inside a sync pass once cancellation has been observed."""
