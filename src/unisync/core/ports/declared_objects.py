"""
Declared Object Port - Read access to declarative objects and status mirroring.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ..domain import DeclaredObject, OwnerRef


class DeclaredObjectPort(ABC):
    """Abstract interface to the declarative object store."""

    @abstractmethod
    def get(self, ref: OwnerRef) -> Optional[DeclaredObject]:
        """Fetch a declared object, or None."""
        ...

    @abstractmethod
    def update_status(self, ref: OwnerRef, status: dict[str, Any]) -> bool:
        """
        Merge ``status`` into the object's status.

        Returns:
            False if the object no longer exists.
        """
        ...
