"""
In-Memory SyncState Repository - Versioned, thread-safe record store.

Behaves like a declarative resource API server: every write bumps
``resource_version``, stale writes conflict, deletes of records with
finalizers only set the tombstone, and watchers hear about every change.
Callers always get deep copies, never the stored object.
"""

import logging
import threading
from typing import Optional

from ...core.domain import ResourceType, SyncState
from ...core.ports import (
    AlreadyExistsError,
    ConflictError,
    SyncStateNotFoundError,
    SyncStateRepositoryPort,
    WatchCallback,
)


class InMemorySyncStateRepository(SyncStateRepositoryPort):
    """SyncState repository backed by a dict."""

    def __init__(self):
        self._records: dict[str, SyncState] = {}
        self._by_external_id: dict[tuple[ResourceType, str], str] = {}
        self._watchers: list[WatchCallback] = []
        self._lock = threading.RLock()
        self._version = 0
        self.logger = logging.getLogger("InMemorySyncStateRepository")

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, name: str) -> Optional[SyncState]:
        with self._lock:
            record = self._records.get(name)
            return record.copy() if record else None

    def find_by_external_id(
        self,
        resource_type: ResourceType,
        external_id: str,
    ) -> Optional[SyncState]:
        with self._lock:
            name = self._by_external_id.get((resource_type, external_id))
            return self.get(name) if name else None

    def list(self, resource_type: Optional[ResourceType] = None) -> list[SyncState]:
        with self._lock:
            return [
                record.copy()
                for name, record in sorted(self._records.items())
                if resource_type is None or record.resource_type == resource_type
            ]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, sync_state: SyncState) -> SyncState:
        stored = self._create(sync_state)
        self._notify(sync_state.name)
        return stored

    def update(self, sync_state: SyncState) -> SyncState:
        stored = self._update(sync_state)
        self._notify(sync_state.name)
        return stored

    def delete(self, name: str, resource_version: Optional[int] = None) -> None:
        self._delete(name, resource_version)
        self._notify(name)

    def watch(self, callback: WatchCallback) -> None:
        with self._lock:
            self._watchers.append(callback)

    # -------------------------------------------------------------------------
    # Write steps (no notification)
    # -------------------------------------------------------------------------

    def _create(self, sync_state: SyncState) -> SyncState:
        with self._lock:
            if sync_state.name in self._records:
                raise AlreadyExistsError(f"SyncState {sync_state.name} already exists", name=sync_state.name)
            return self._store(sync_state)

    def _update(self, sync_state: SyncState) -> SyncState:
        name = sync_state.name
        with self._lock:
            current = self._require(name)
            self._check_version(current, sync_state.resource_version)

            # The tombstone is owned by delete(), never cleared by an update
            sync_state = sync_state.copy()
            sync_state.deletion_requested = current.deletion_requested

            stored = self._store(sync_state)
            if stored.deletion_requested and not stored.finalizers:
                self._remove(name)
                self.logger.debug(f"SyncState {name} released by last finalizer")
        return stored

    def _delete(self, name: str, resource_version: Optional[int]) -> None:
        with self._lock:
            current = self._require(name)
            if resource_version is not None:
                self._check_version(current, resource_version)

            if current.finalizers:
                if not current.deletion_requested:
                    current = current.copy()
                    current.deletion_requested = True
                    current.generation += 1
                    self._store(current)
                    self.logger.debug(f"SyncState {name} tombstoned, finalizers: {current.finalizers}")
            else:
                self._remove(name)

    # -------------------------------------------------------------------------
    # Internals (lock held)
    # -------------------------------------------------------------------------

    def _require(self, name: str) -> SyncState:
        current = self._records.get(name)
        if current is None:
            raise SyncStateNotFoundError(f"SyncState {name} not found", name=name)
        return current

    def _check_version(self, current: SyncState, expected: int) -> None:
        if current.resource_version != expected:
            raise ConflictError(
                f"SyncState {current.name} was modified (have version {expected}, "
                f"stored {current.resource_version})",
                name=current.name,
            )

    def _store(self, sync_state: SyncState) -> SyncState:
        previous = self._records.get(sync_state.name)
        if previous is not None:
            self._by_external_id.pop((previous.resource_type, previous.external_id), None)

        self._version += 1
        record = sync_state.copy()
        record.resource_version = self._version
        self._records[record.name] = record
        self._by_external_id[(record.resource_type, record.external_id)] = record.name
        return record.copy()

    def _remove(self, name: str) -> None:
        record = self._records.pop(name, None)
        if record is not None:
            self._by_external_id.pop((record.resource_type, record.external_id), None)

    def _notify(self, name: str) -> None:
        for callback in list(self._watchers):
            try:
                callback(name)
            except Exception as e:
                self.logger.error(f"Watch callback failed for {name}: {e}")
