"""
SyncState Repository Port - Versioned persistence for SyncState records.

Semantics follow a declarative resource store:

- every record carries a ``resource_version``; ``update`` with a stale
  version raises ConflictError;
- ``delete`` on a record that still has finalizers only sets the tombstone
  (``deletion_requested``); the record is physically removed once an update
  leaves it tombstoned with no finalizers;
- watchers are notified with the record name after every change.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..domain import ResourceType, SyncState
from ..exceptions import UnisyncError


class StoreError(UnisyncError):
    """Base exception for repository errors."""

    def __init__(self, message: str, name: Optional[str] = None, cause: Optional[Exception] = None):
        super().__init__(message, cause=cause)
        self.name = name


class ConflictError(StoreError):
    """The record changed since it was read (optimistic concurrency)."""


class AlreadyExistsError(StoreError):
    """A record with the same name already exists."""


class SyncStateNotFoundError(StoreError):
    """No record with that name exists."""


WatchCallback = Callable[[str], None]


class SyncStateRepositoryPort(ABC):
    """Abstract interface for SyncState persistence."""

    @abstractmethod
    def get(self, name: str) -> Optional[SyncState]:
        """Fetch a fresh copy by storage name, or None."""
        ...

    @abstractmethod
    def find_by_external_id(
        self,
        resource_type: ResourceType,
        external_id: str,
    ) -> Optional[SyncState]:
        """Fetch a fresh copy by (resource type, external id), or None."""
        ...

    @abstractmethod
    def list(self, resource_type: Optional[ResourceType] = None) -> list[SyncState]:
        """List records, optionally filtered by type."""
        ...

    @abstractmethod
    def create(self, sync_state: SyncState) -> SyncState:
        """
        Persist a new record.

        Raises:
            AlreadyExistsError: If the name is taken.
        """
        ...

    @abstractmethod
    def update(self, sync_state: SyncState) -> SyncState:
        """
        Persist changes, checking ``resource_version``.

        Returns:
            The stored copy with its new version.

        Raises:
            ConflictError: If the stored version differs.
            SyncStateNotFoundError: If the record is gone.
        """
        ...

    @abstractmethod
    def delete(self, name: str, resource_version: Optional[int] = None) -> None:
        """
        Delete, or tombstone while finalizers remain.

        Args:
            name: Storage name
            resource_version: If given, the delete only succeeds against
                that exact version

        Raises:
            ConflictError: If ``resource_version`` is stale.
            SyncStateNotFoundError: If the record is gone.
        """
        ...

    @abstractmethod
    def watch(self, callback: WatchCallback) -> None:
        """Register a callback invoked with the name of every changed record."""
        ...
