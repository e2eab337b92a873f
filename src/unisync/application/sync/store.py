"""
SyncState Store - Register and unregister configuration sources.

This is the only way declared-object controllers touch SyncState records.
The store merges sources into the shared record; it never compares configs
or talks to the external API (that is the engine's job).
"""

import logging
from typing import Any, Optional

from ...core.domain import (
    CredentialsRef,
    OwnerRef,
    ResourceType,
    SyncState,
    is_placeholder,
    placeholder_for,
    sync_state_name,
)
from ...core.exceptions import IdentityError
from ...core.ports import (
    AlreadyExistsError,
    StoreError,
    SyncStateNotFoundError,
    SyncStateRepositoryPort,
)
from .debounce import Debouncer
from .retry import DEFAULT_CONFLICT_ATTEMPTS, ConflictRetryer, retry_on_conflict


class SyncStateStore:
    """
    CRUD/merge operations over the SyncState aggregate.

    All mutations go through ConflictRetryer because many controllers
    register into the same records concurrently.
    """

    def __init__(
        self,
        repository: SyncStateRepositoryPort,
        debouncer: Optional[Debouncer] = None,
        conflict_attempts: int = DEFAULT_CONFLICT_ATTEMPTS,
    ):
        """
        Initialize the store.

        Args:
            repository: SyncState persistence
            debouncer: Marks identities pending on every change (optional)
            conflict_attempts: Attempts per read-modify-write cycle
        """
        self.repository = repository
        self.debouncer = debouncer
        self.retryer = ConflictRetryer(repository, attempts=conflict_attempts)
        self.logger = logging.getLogger("SyncStateStore")

    # -------------------------------------------------------------------------
    # Lookup / Create
    # -------------------------------------------------------------------------

    def lookup(self, resource_type: ResourceType, key: str) -> Optional[SyncState]:
        """
        Find a SyncState by the id (real or placeholder) it was created under,
        or by its current external id.

        Returns:
            The record, or None (not-found is not an error)
        """
        if not key:
            return None
        state = self.repository.get(sync_state_name(resource_type, key))
        if state is not None and state.resource_type == resource_type:
            return state
        return self.repository.find_by_external_id(resource_type, key)

    def get_or_create(
        self,
        resource_type: ResourceType,
        external_id: str,
        account_id: str = "",
        zone_id: str = "",
        credentials_ref: Optional[CredentialsRef] = None,
    ) -> SyncState:
        """
        Fetch the SyncState for ``external_id``, creating it if absent.

        The loser of a concurrent create observes the winner's record.
        """
        existing = self.lookup(resource_type, external_id)
        if existing is not None:
            return existing

        name = sync_state_name(resource_type, external_id)
        self.logger.info(f"Creating SyncState {name} ({resource_type}, id={external_id})")

        state = SyncState(
            name=name,
            resource_type=resource_type,
            external_id=external_id,
            account_id=account_id,
            zone_id=zone_id,
            credentials_ref=credentials_ref,
        )
        try:
            return self.repository.create(state)
        except AlreadyExistsError:
            winner = self.repository.get(name)
            if winner is None:
                raise StoreError(f"SyncState {name} vanished after create conflict", name=name)
            self.logger.debug(f"Lost create race for {name}, using existing record")
            return winner

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    def register(
        self,
        sync_state: SyncState,
        source: OwnerRef,
        config: dict[str, Any],
        priority: int,
    ) -> SyncState:
        """
        Upsert ``source``'s config into the SyncState.

        Persisted unconditionally; change detection happens in the engine.

        Raises:
            StoreError: If the record is being deleted.
        """
        def apply(state: SyncState) -> None:
            if state.deletion_requested:
                raise StoreError(f"SyncState {state.name} is being deleted", name=state.name)
            state.upsert_source(source, config, priority)

        updated = self.retryer.update(sync_state.name, apply)
        self._mark_pending(updated.name)

        self.logger.debug(
            f"Registered {source} in {updated.name} ({len(updated.sources)} source(s))"
        )
        return updated

    def unregister(self, sync_state: SyncState, owner: OwnerRef) -> Optional[SyncState]:
        """
        Remove ``owner``'s source. Deletes the SyncState when none remain.

        Unregistering an absent source, or from a vanished record, is a no-op.
        A record that is already empty is deleted.

        Returns:
            The reduced SyncState, or None if it was deleted or never existed
        """
        name = sync_state.name
        removed = False
        deleted = False

        def fetch() -> Optional[SyncState]:
            return self.repository.get(name)

        def apply(state: Optional[SyncState]) -> bool:
            nonlocal removed
            if state is None:
                return False
            removed = state.remove_source(owner)
            # An earlier attempt may have emptied the record and lost the delete
            return removed or (not state.has_sources and not state.deletion_requested)

        def persist(state: SyncState) -> Optional[SyncState]:
            nonlocal deleted
            if removed:
                state = self.repository.update(state)
                if state.has_sources:
                    return state
            # Versioned delete: a source registered in between wins
            self.logger.info(f"No sources remaining, deleting SyncState {name}")
            self.repository.delete(name, resource_version=state.resource_version)
            deleted = True
            return None

        try:
            result = retry_on_conflict(fetch, apply, persist, self.retryer.attempts)
        except SyncStateNotFoundError:
            return None

        if deleted or result is None or not result.has_sources:
            return None
        self._mark_pending(name)
        self.logger.debug(f"Removed {owner} from {name} ({len(result.sources)} remaining)")
        return result

    # -------------------------------------------------------------------------
    # Convenience: identity-aware registration
    # -------------------------------------------------------------------------

    def register_source(
        self,
        resource_type: ResourceType,
        owner: OwnerRef,
        config: dict[str, Any],
        priority: int,
        external_id: Optional[str] = None,
        natural_key: Optional[str] = None,
        account_id: str = "",
        zone_id: str = "",
        credentials_ref: Optional[CredentialsRef] = None,
    ) -> SyncState:
        """
        Register ``owner``'s config under its known external id, or under the
        deterministic placeholder when the resource does not exist yet.

        Raises:
            IdentityError: If ``external_id`` carries the placeholder prefix.
        """
        if external_id and is_placeholder(external_id):
            raise IdentityError(f"External id {external_id!r} uses the reserved placeholder prefix")

        key = external_id or placeholder_for(owner, natural_key)
        state = self.get_or_create(resource_type, key, account_id, zone_id, credentials_ref)
        return self.register(state, owner, config, priority)

    def unregister_source(
        self,
        resource_type: ResourceType,
        owner: OwnerRef,
        external_id: Optional[str] = None,
        natural_key: Optional[str] = None,
    ) -> Optional[SyncState]:
        """
        Remove ``owner`` from whichever SyncState holds it: the one for the
        known external id first, then the placeholder one.
        """
        candidates = [external_id, placeholder_for(owner, natural_key)]
        for key in candidates:
            if not key:
                continue
            state = self.lookup(resource_type, key)
            if state is None or state.find_source(owner) is None:
                continue
            return self.unregister(state, owner)

        self.logger.debug(f"No SyncState holds {owner}; nothing to unregister")
        return None

    def list(self, resource_type: Optional[ResourceType] = None) -> list[SyncState]:
        return self.repository.list(resource_type)

    def _mark_pending(self, name: str) -> None:
        if self.debouncer is not None:
            self.debouncer.mark_pending(name)
