"""
Domain Events - Things that happened during synchronization.

Events are immutable records of something that occurred.
Every event renders a human-readable message, which is what gets mirrored
onto contributing objects and shown to operators.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)
    sync_state: str = ""
    resource_type: str = ""

    @property
    def event_type(self) -> str:
        """Get the event type name."""
        return self.__class__.__name__

    @property
    def is_warning(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return f"{self.event_type} on {self.sync_state}"


@dataclass(frozen=True)
class ResourceCreated(DomainEvent):
    """Event: The external resource was created."""

    external_id: str = ""

    @property
    def message(self) -> str:
        return f"Created {self.resource_type} {self.external_id}"


@dataclass(frozen=True)
class ResourceUpdated(DomainEvent):
    """Event: The external resource was updated in place."""

    external_id: str = ""
    config_hash: str = ""

    @property
    def message(self) -> str:
        return f"Updated {self.resource_type} {self.external_id}"


@dataclass(frozen=True)
class ResourceRecreated(DomainEvent):
    """Event: The resource vanished externally and was created again."""

    old_id: str = ""
    external_id: str = ""

    @property
    def is_warning(self) -> bool:
        return True

    @property
    def message(self) -> str:
        return f"{self.resource_type} {self.old_id} was missing externally; recreated as {self.external_id}"


@dataclass(frozen=True)
class IdentityMigrated(DomainEvent):
    """Event: The SyncState's external id moved to a new real id."""

    old_id: str = ""
    new_id: str = ""

    @property
    def message(self) -> str:
        return f"External id changed from {self.old_id} to {self.new_id}"


@dataclass(frozen=True)
class SyncFailed(DomainEvent):
    """Event: Extraction or the external call failed."""

    error: str = ""
    retry_in: float = 0.0

    @property
    def is_warning(self) -> bool:
        return True

    @property
    def message(self) -> str:
        return f"Sync failed: {self.error} (retrying in {self.retry_in:.0f}s)"


@dataclass(frozen=True)
class ResourceDeleted(DomainEvent):
    """Event: The external resource is gone and cleanup finished."""

    external_id: str = ""
    skipped: bool = False  # nothing had been created externally

    @property
    def message(self) -> str:
        if self.skipped:
            return f"{self.resource_type} was never created; nothing to delete"
        return f"Deleted {self.resource_type} {self.external_id}"


@dataclass(frozen=True)
class DeletionFailed(DomainEvent):
    """Event: The external delete failed; the finalizer stays in place."""

    external_id: str = ""
    error: str = ""

    @property
    def is_warning(self) -> bool:
        return True

    @property
    def message(self) -> str:
        return f"Failed to delete {self.resource_type} {self.external_id}: {self.error}"


class EventBus:
    """
    Simple event bus for publishing and subscribing to domain events.

    This enables loose coupling between components.
    A failing handler is logged and does not stop the others.
    """

    def __init__(self, keep_history: bool = True):
        self._handlers: dict[type, list] = {}
        self._history: list[DomainEvent] = []
        self._keep_history = keep_history
        self.logger = logging.getLogger("EventBus")

    def subscribe(self, event_type: type, handler: Callable[[DomainEvent], None]) -> None:
        """Subscribe a handler to an event type."""
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)

    def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribers."""
        if self._keep_history:
            self._history.append(event)

        handlers = list(self._handlers.get(type(event), []))
        if type(event) is not DomainEvent:
            handlers.extend(self._handlers.get(DomainEvent, []))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                self.logger.error(f"Handler for {event.event_type} failed: {e}")

    def get_history(self, event_type: Optional[type] = None) -> list[DomainEvent]:
        """Get published events, optionally filtered by type."""
        if event_type is None:
            return self._history.copy()
        return [e for e in self._history if isinstance(e, event_type)]

    def clear_history(self) -> None:
        """Clear event history."""
        self._history.clear()
