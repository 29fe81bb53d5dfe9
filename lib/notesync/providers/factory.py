"""
Storage Factory
===============
Registry of provider classes keyed by provider id.

A factory is built once (by the CloudStorageManager) and hands out a
fresh, initialized provider instance for every call. No instance or
credential outlives the call that created it.
"""

from typing import Dict, List, Optional, Type

from .base import BaseStorageProvider
from .dropbox_provider import DropboxProvider
from .google_drive_provider import GoogleDriveProvider
from .webdav_provider import WebDAVProvider

from ..config.constants import (
    STORAGE_PROVIDER_WEBDAV,
    STORAGE_PROVIDER_GOOGLE_DRIVE,
    STORAGE_PROVIDER_DROPBOX,
)
from ..models import SyncConfig

DEFAULT_PROVIDERS: Dict[str, Type[BaseStorageProvider]] = {
    STORAGE_PROVIDER_WEBDAV: WebDAVProvider,
    STORAGE_PROVIDER_GOOGLE_DRIVE: GoogleDriveProvider,
    STORAGE_PROVIDER_DROPBOX: DropboxProvider,
}


class StorageFactory:
    """
    Factory for creating storage provider instances.

    Usage:
        factory = StorageFactory()
        provider = factory.create(config)  # initialized, ready for one call
    """

    def __init__(self, providers: Optional[Dict[str, Type[BaseStorageProvider]]] = None):
        self._providers: Dict[str, Type[BaseStorageProvider]] = {}
        for provider_type, provider_class in (providers or DEFAULT_PROVIDERS).items():
            self.register_provider(provider_type, provider_class)

    def create(self, config: SyncConfig) -> BaseStorageProvider:
        """
        Create and initialize a provider for one call.

        Args:
            config: Sync target configuration (auth already decrypted)

        Returns:
            Initialized storage provider instance

        Raises:
            ValueError: If the provider id is unknown
            ProviderConfigError: If auth lacks required fields
            ConnectionError: If initialize() returns False
        """
        provider_type = config.provider.lower().strip()

        if provider_type not in self._providers:
            supported = ", ".join(self._providers.keys())
            raise ValueError(
                f"Unknown storage provider: '{provider_type}'. "
                f"Supported: {supported}"
            )

        provider = self._providers[provider_type]()
        if not provider.initialize(config):
            raise ConnectionError(f"Failed to initialize {provider.get_service_name()}")

        return provider

    def get_supported_providers(self) -> List[str]:
        """Get list of registered provider ids."""
        return list(self._providers.keys())

    def is_provider_supported(self, provider_type: str) -> bool:
        """Check if a provider id is registered."""
        return bool(provider_type) and provider_type.lower().strip() in self._providers

    def register_provider(self, provider_type: str, provider_class: type) -> None:
        """
        Register a provider class.

        Args:
            provider_type: Provider id
            provider_class: Class that implements BaseStorageProvider
        """
        if not issubclass(provider_class, BaseStorageProvider):
            raise TypeError(
                f"Provider class must inherit from BaseStorageProvider"
            )
        self._providers[provider_type.lower().strip()] = provider_class
