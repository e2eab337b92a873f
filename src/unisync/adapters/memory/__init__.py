"""
In-Memory Adapters - Process-local repository and declared object store.
"""

from .objects import InMemoryDeclaredObjectStore
from .repository import InMemorySyncStateRepository

__all__ = [
    "InMemoryDeclaredObjectStore",
    "InMemorySyncStateRepository",
]
