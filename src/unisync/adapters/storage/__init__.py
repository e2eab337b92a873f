"""
Storage Adapters - Durable SyncState repositories.
"""

from .json_file import JsonFileSyncStateRepository

__all__ = ["JsonFileSyncStateRepository"]
