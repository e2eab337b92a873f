"""
JSON File Repository - SyncState records persisted to a single JSON file.

Keeps the in-memory repository's semantics on top of a file that several
processes may share. Every write takes an exclusive ``flock`` on a sidecar
lock file, reloads the file, applies the change with the usual version
checks and replaces the file atomically. Reads reload when another process
has replaced the file since it was last seen.
"""

import fcntl
import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from ...core.domain import ResourceType, SyncState
from ...core.ports import StoreError
from ..memory.repository import InMemorySyncStateRepository


FORMAT_VERSION = 1


class JsonFileSyncStateRepository(InMemorySyncStateRepository):
    """
    File-backed SyncState repository.

    File layout::

        {"version": 1, "resourceVersion": <last issued>, "syncStates": [<SyncState.to_dict()>, ...]}
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self.lock_path = self.path.with_suffix(self.path.suffix + ".lock")
        self._file_lock = threading.Lock()
        self._stamp: Optional[tuple[int, int, int]] = None
        self.logger = logging.getLogger("JsonFileSyncStateRepository")
        self._reload()
        self.logger.info(f"Loaded {len(self._records)} SyncState(s) from {self.path}")

    # -------------------------------------------------------------------------
    # Reads (pick up other processes' writes)
    # -------------------------------------------------------------------------

    def get(self, name: str) -> Optional[SyncState]:
        self._refresh()
        return super().get(name)

    def find_by_external_id(self, resource_type: ResourceType, external_id: str) -> Optional[SyncState]:
        self._refresh()
        return super().find_by_external_id(resource_type, external_id)

    def list(self, resource_type: Optional[ResourceType] = None) -> list[SyncState]:
        self._refresh()
        return super().list(resource_type)

    # -------------------------------------------------------------------------
    # Writes (lock, reload, apply, replace)
    # -------------------------------------------------------------------------

    def create(self, sync_state: SyncState) -> SyncState:
        with self._exclusive():
            self._reload()
            stored = self._create(sync_state)
            self._save()
        self._notify(sync_state.name)
        return stored

    def update(self, sync_state: SyncState) -> SyncState:
        with self._exclusive():
            self._reload()
            stored = self._update(sync_state)
            self._save()
        self._notify(sync_state.name)
        return stored

    def delete(self, name: str, resource_version: Optional[int] = None) -> None:
        with self._exclusive():
            self._reload()
            self._delete(name, resource_version)
            self._save()
        self._notify(name)

    # -------------------------------------------------------------------------
    # File I/O
    # -------------------------------------------------------------------------

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the in-process lock and the cross-process file lock."""
        with self._file_lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
            except OSError as e:
                raise StoreError(f"Cannot open lock file {self.lock_path}: {e}", cause=e)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX)
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                os.close(fd)

    def _file_stamp(self) -> Optional[tuple[int, int, int]]:
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            return None
        return (st.st_ino, st.st_mtime_ns, st.st_size)

    def _refresh(self) -> None:
        if self._file_stamp() != self._stamp:
            self._reload()

    def _reload(self) -> None:
        stamp = self._file_stamp()
        data = self._read() if stamp is not None else {}

        states = []
        for raw in data.get("syncStates", []):
            try:
                states.append(SyncState.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                raise StoreError(f"Invalid SyncState in {self.path}: {e}", cause=e)

        with self._lock:
            self._records.clear()
            self._by_external_id.clear()
            for state in states:
                self._records[state.name] = state
                self._by_external_id[(state.resource_type, state.external_id)] = state.name
                self._version = max(self._version, state.resource_version)
            self._version = max(self._version, int(data.get("resourceVersion", 0)))
            self._stamp = stamp

    def _read(self) -> dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError(f"Cannot read state file {self.path}: {e}", cause=e)

        if not isinstance(data, dict):
            raise StoreError(f"State file {self.path} must hold a JSON object")
        if data.get("version", FORMAT_VERSION) != FORMAT_VERSION:
            raise StoreError(f"Unsupported state file version {data.get('version')} in {self.path}")
        return data

    def _save(self) -> None:
        """Replace the state file. Called with the file lock held."""
        with self._lock:
            payload = {
                "version": FORMAT_VERSION,
                "resourceVersion": self._version,
                "syncStates": [state.to_dict() for _, state in sorted(self._records.items())],
            }

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp_path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreError(f"Cannot write state file {self.path}: {e}", cause=e)
        self._stamp = self._file_stamp()
