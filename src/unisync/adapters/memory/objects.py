"""
In-Memory Declared Objects - A minimal declarative object store.
"""

import copy
import threading
from typing import Any, Optional

from ...core.domain import DeclaredObject, OwnerRef
from ...core.ports import DeclaredObjectPort


class InMemoryDeclaredObjectStore(DeclaredObjectPort):
    """
    Declared objects keyed by OwnerRef.

    A mirrored status carrying ``externalId`` also populates the object's
    external id, the way a controller records the created resource.
    """

    def __init__(self):
        self._objects: dict[OwnerRef, DeclaredObject] = {}
        self._lock = threading.Lock()

    def put(self, obj: DeclaredObject) -> None:
        with self._lock:
            self._objects[obj.ref] = copy.deepcopy(obj)

    def remove(self, ref: OwnerRef) -> bool:
        with self._lock:
            return self._objects.pop(ref, None) is not None

    def get(self, ref: OwnerRef) -> Optional[DeclaredObject]:
        with self._lock:
            obj = self._objects.get(ref)
            return copy.deepcopy(obj) if obj else None

    def update_status(self, ref: OwnerRef, status: dict[str, Any]) -> bool:
        with self._lock:
            obj = self._objects.get(ref)
            if obj is None:
                return False
            obj.status.update(status)
            if status.get("externalId"):
                obj.external_id = status["externalId"]
            return True
