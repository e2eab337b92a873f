"""
Adapters - Concrete implementations of ports.

This module contains implementations for:
- External API: Cloudflare
- SyncState persistence: in-memory, JSON file
- Declared objects: in-memory
- Config: Environment variables
"""

from .cloudflare import CloudflareApiClient, CloudflareApiFactory, CloudflareResourceAdapter
from .config import EnvironmentConfigProvider
from .memory import InMemoryDeclaredObjectStore, InMemorySyncStateRepository
from .storage import JsonFileSyncStateRepository

__all__ = [
    "CloudflareApiClient",
    "CloudflareApiFactory",
    "CloudflareResourceAdapter",
    "EnvironmentConfigProvider",
    "InMemoryDeclaredObjectStore",
    "InMemorySyncStateRepository",
    "JsonFileSyncStateRepository",
]
