"""
Status Mirror - Copy sync outcomes onto the contributing declared objects.

Subscribes to the EventBus. For every event the current SyncState is read
and each source's owner gets the phase, external id and event message, so
users see sync progress on the objects they wrote.
"""

import logging
from typing import Any

from ...core.domain import (
    DomainEvent,
    EventBus,
    ResourceDeleted,
    SyncState,
    is_placeholder,
)
from ...core.ports import DeclaredObjectPort, SyncStateRepositoryPort


class StatusMirror:
    """EventBus subscriber writing sync status to declared objects."""

    def __init__(
        self,
        repository: SyncStateRepositoryPort,
        objects: DeclaredObjectPort,
    ):
        self.repository = repository
        self.objects = objects
        self.logger = logging.getLogger("StatusMirror")

    def attach(self, event_bus: EventBus) -> None:
        """Subscribe to every domain event."""
        event_bus.subscribe(DomainEvent, self.handle)

    def handle(self, event: DomainEvent) -> None:
        if not event.sync_state or isinstance(event, ResourceDeleted):
            # Owners of a deleted resource are gone or about to be
            return

        state = self.repository.get(event.sync_state)
        if state is None:
            return

        status = self.status_for(state, event)
        for source in state.sources:
            if not self.objects.update_status(source.owner, status):
                self.logger.debug(f"{source.owner} no longer exists, status not mirrored")

    def status_for(self, state: SyncState, event: DomainEvent) -> dict[str, Any]:
        status: dict[str, Any] = {
            "syncState": state.name,
            "phase": state.status.phase.value,
            "message": event.message,
            "lastError": state.status.last_error,
        }
        if not is_placeholder(state.external_id):
            status["externalId"] = state.external_id
        if state.status.last_sync_time:
            status["lastSyncTime"] = state.status.last_sync_time.isoformat()
        return status
