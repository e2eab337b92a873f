"""
Sync Engine - Converge one SyncState onto the external API.

Each reconcile is a discrete, level-triggered invocation: it refetches the
record, decides what to do from the persisted state alone, performs at most
one external mutation and persists the outcome. Nothing is cached between
calls.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from ...core.domain import (
    DeletionFailed,
    DomainEvent,
    EventBus,
    IdentityMigrated,
    ResourceConfig,
    ResourceCreated,
    ResourceDeleted,
    ResourceRecreated,
    ResourceUpdated,
    SyncFailed,
    SyncPhase,
    SyncState,
    is_placeholder,
)
from ...core.exceptions import ConfigError, ExtractionError, IdentityError
from ...core.ports import (
    ConflictError,
    EngineConfig,
    ExternalApiError,
    ExternalApiFactoryPort,
    ExternalApiPort,
    NotFoundError,
    SyncStateNotFoundError,
    SyncStateRepositoryPort,
)
from .debounce import Debouncer
from .extraction import ConfigExtractor
from .hashing import ContentHasher
from .requeue import RequeuePolicy
from .retry import ConflictRetryer


SYNC_FINALIZER = "unisync.io/sync-finalizer"

# Failures that end up in the SyncState's status instead of propagating
_RECORDED_ERRORS = (ExternalApiError, ExtractionError, ConfigError, IdentityError)


@dataclass
class ReconcileResult:
    """What the caller should do after a reconcile."""

    requeue: bool = False
    requeue_after: float = 0.0
    action: str = "none"

    @classmethod
    def done(cls, action: str = "none") -> "ReconcileResult":
        return cls(requeue=False, requeue_after=0.0, action=action)

    @classmethod
    def after(cls, seconds: float, action: str) -> "ReconcileResult":
        return cls(requeue=True, requeue_after=seconds, action=action)

    @classmethod
    def immediately(cls, action: str) -> "ReconcileResult":
        return cls(requeue=True, requeue_after=0.0, action=action)


@dataclass
class SyncPlan:
    """Dry-run result: what a reconcile would do right now."""

    name: str
    action: str
    reason: str = ""
    external_id: str = ""
    config_hash: Optional[str] = None
    config: dict[str, Any] = field(default_factory=dict)


@dataclass
class _ApplyOutcome:
    external_id: str
    events: list[DomainEvent] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncEngine:
    """
    Reconciliation loop for a single SyncState.

    Phases: New -> Syncing -> Synced | Error. Synced and Error re-enter
    Syncing when the merged config hash changes or on requeue. Deletion is
    orthogonal and guarded by SYNC_FINALIZER.
    """

    def __init__(
        self,
        repository: SyncStateRepositoryPort,
        api_factory: ExternalApiFactoryPort,
        debouncer: Optional[Debouncer] = None,
        event_bus: Optional[EventBus] = None,
        config: Optional[EngineConfig] = None,
        hasher: Optional[ContentHasher] = None,
        extractor: Optional[ConfigExtractor] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the engine.

        Args:
            repository: SyncState persistence
            api_factory: Builds the external API for each SyncState
            debouncer: Shared with the SyncStateStore
            event_bus: Receives one event per outcome
            config: Requeue intervals and retry limits
            clock: Wall clock for the persisted retry deadline
        """
        self.config = config or EngineConfig()
        self.repository = repository
        self.api_factory = api_factory
        self.debouncer = debouncer or Debouncer(self.config.debounce_seconds)
        self.event_bus = event_bus or EventBus()
        self.hasher = hasher or ContentHasher()
        self.extractor = extractor or ConfigExtractor()
        self.clock = clock or _utcnow
        self.requeue = RequeuePolicy.from_config(self.config)
        self.retryer = ConflictRetryer(repository, attempts=self.config.conflict_attempts)
        self.logger = logging.getLogger("SyncEngine")

    # -------------------------------------------------------------------------
    # Reconcile
    # -------------------------------------------------------------------------

    def reconcile(self, name: str) -> ReconcileResult:
        """
        Run one reconciliation of the SyncState named ``name``.

        Raises:
            StoreError: If persisting fails for a reason other than a
                recoverable conflict.
        """
        state = self.repository.get(name)
        if state is None:
            self.logger.debug(f"SyncState {name} is gone")
            self.debouncer.cancel(name)
            return ReconcileResult.done("gone")

        if state.deletion_requested or not state.has_sources:
            return self._handle_deletion(state)

        remaining = self.debouncer.remaining(name)
        if remaining > 0:
            self.logger.debug(f"{name} is debounced for another {remaining:.2f}s")
            return ReconcileResult.after(remaining, "debounced")

        if not state.has_finalizer(SYNC_FINALIZER):
            self.retryer.update(name, lambda s: s.add_finalizer(SYNC_FINALIZER))
            self.logger.debug(f"Added finalizer to {name}")
            return ReconcileResult.immediately("finalizer-added")

        backoff = self.backoff_remaining(state)
        if backoff > 0:
            self.logger.debug(f"{name} is backing off for another {backoff:.0f}s")
            return ReconcileResult.after(backoff, "backoff")

        generation = state.generation
        try:
            config = self.extractor.extract(state)
        except ExtractionError as e:
            return self._record_failure(state, e, generation)

        new_hash = self.hasher.hash(config)
        if state.status.phase is SyncPhase.SYNCED and not self.hasher.changed(
            state.status.last_applied_hash, new_hash
        ):
            self.logger.debug(f"{name} unchanged ({new_hash[:12]}), skipping")
            return ReconcileResult.after(self.requeue.after_success(), "noop")

        state = self.retryer.update(name, self._mark_syncing)
        self.logger.info(f"Syncing {state.resource_type} {name} (id={state.external_id})")

        try:
            api = self.api_factory.for_state(state)
            outcome = self._apply(api, state, config, new_hash)
        except _RECORDED_ERRORS as e:
            return self._record_failure(state, e, generation)

        return self._record_success(state, outcome, new_hash, generation)

    def backoff_remaining(self, state: SyncState) -> float:
        """
        Seconds left before a failed SyncState may be attempted again.

        Zero unless the last attempt failed and nothing was registered,
        unregistered or deleted since; new input is retried at once.
        """
        status = state.status
        if status.phase is not SyncPhase.ERROR or status.next_retry_time is None:
            return 0.0
        if status.observed_generation != state.generation:
            return 0.0
        return max(0.0, (status.next_retry_time - self.clock()).total_seconds())

    def _mark_syncing(self, state: SyncState) -> None:
        state.status.phase = SyncPhase.SYNCING

    def _apply(
        self,
        api: ExternalApiPort,
        state: SyncState,
        config: ResourceConfig,
        config_hash: str,
    ) -> _ApplyOutcome:
        """Create or update the external resource. Only not-found on update is handled."""
        params = config.to_params()
        common = {"sync_state": state.name, "resource_type": state.resource_type.kind}

        if state.is_pending:
            new_id = self._created_id(api.create(params))
            return _ApplyOutcome(new_id, [
                ResourceCreated(external_id=new_id, **common),
                IdentityMigrated(old_id=state.external_id, new_id=new_id, **common),
            ])

        try:
            api.update(state.external_id, params)
        except NotFoundError:
            self.logger.warning(
                f"{state.resource_type} {state.external_id} not found externally, recreating"
            )
            new_id = self._created_id(api.create(params))
            return _ApplyOutcome(new_id, [
                ResourceRecreated(old_id=state.external_id, external_id=new_id, **common),
                IdentityMigrated(old_id=state.external_id, new_id=new_id, **common),
            ])

        return _ApplyOutcome(state.external_id, [
            ResourceUpdated(external_id=state.external_id, config_hash=config_hash, **common),
        ])

    def _created_id(self, result: dict[str, Any]) -> str:
        new_id = str(result.get("id") or "") if result else ""
        if not new_id or is_placeholder(new_id):
            raise IdentityError(f"External API returned unusable id {new_id!r}")
        return new_id

    def _record_success(
        self,
        state: SyncState,
        outcome: _ApplyOutcome,
        new_hash: str,
        generation: int,
    ) -> ReconcileResult:
        def apply(s: SyncState) -> None:
            if s.external_id != outcome.external_id:
                s.migrate_identity(outcome.external_id)
            s.status.phase = SyncPhase.SYNCED
            s.status.last_applied_hash = new_hash
            s.status.last_error = None
            s.status.failure_count = 0
            s.status.last_sync_time = self.clock()
            s.status.observed_generation = generation
            s.status.next_retry_time = None

        self.retryer.update(state.name, apply)
        self.logger.info(f"Synced {state.name} (id={outcome.external_id})")

        for event in outcome.events:
            self.event_bus.publish(event)

        return ReconcileResult.after(self.requeue.after_success(), "synced")

    def _mark_failed(self, name: str, error: Exception, generation: int) -> float:
        """Persist Error status and the retry deadline; returns the delay."""
        def apply(s: SyncState) -> None:
            s.status.phase = SyncPhase.ERROR
            s.status.last_error = str(error)
            s.status.failure_count += 1
            s.status.observed_generation = generation
            delay = self.requeue.after_error(s.status.failure_count, error)
            s.status.next_retry_time = self.clock() + timedelta(seconds=delay)

        updated = self.retryer.update(name, apply)
        return self.requeue.after_error(updated.status.failure_count, error)

    def _record_failure(self, state: SyncState, error: Exception, generation: int) -> ReconcileResult:
        delay = self._mark_failed(state.name, error, generation)

        self.logger.error(f"Sync of {state.name} failed: {error} (retry in {delay:.0f}s)")
        self.event_bus.publish(SyncFailed(
            sync_state=state.name,
            resource_type=state.resource_type.kind,
            error=str(error),
            retry_in=delay,
        ))
        return ReconcileResult.after(delay, "error")

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    def _handle_deletion(self, state: SyncState) -> ReconcileResult:
        """
        Delete the external resource, then release the SyncState.

        Order matters: the finalizer is only removed after the external
        delete succeeded (or was unnecessary).
        """
        name = state.name
        orphaned = not state.has_sources and not state.deletion_requested

        if not state.has_finalizer(SYNC_FINALIZER):
            if orphaned:
                self._delete_record(state)
            return ReconcileResult.done("deleted")

        backoff = self.backoff_remaining(state)
        if backoff > 0:
            self.logger.debug(f"Delete of {name} is backing off for another {backoff:.0f}s")
            return ReconcileResult.after(backoff, "backoff")

        common = {"sync_state": name, "resource_type": state.resource_type.kind}
        skipped = is_placeholder(state.external_id)

        if skipped:
            self.logger.info(f"{name} was never created externally, skipping delete")
        else:
            try:
                api = self.api_factory.for_state(state)
                api.delete(state.external_id)
                self.logger.info(f"Deleted {state.resource_type} {state.external_id}")
            except NotFoundError:
                self.logger.info(f"{state.resource_type} {state.external_id} already gone")
            except (ExternalApiError, ConfigError) as e:
                return self._record_deletion_failure(state, e)

        updated = self.retryer.update(name, lambda s: s.remove_finalizer(SYNC_FINALIZER))
        if orphaned and not updated.has_sources:
            self._delete_record(updated)

        self.debouncer.cancel(name)
        self.event_bus.publish(ResourceDeleted(
            external_id="" if skipped else state.external_id,
            skipped=skipped,
            **common,
        ))
        return ReconcileResult.done("deleted")

    def _delete_record(self, state: SyncState) -> None:
        self.logger.info(f"Removing orphaned SyncState {state.name}")
        try:
            self.repository.delete(state.name, resource_version=state.resource_version)
        except SyncStateNotFoundError:
            pass
        except ConflictError:
            # Changed underneath us; the watch delivers it again
            self.logger.debug(f"{state.name} changed before orphan removal")

    def _record_deletion_failure(self, state: SyncState, error: Exception) -> ReconcileResult:
        delay = self._mark_failed(state.name, error, state.generation)

        self.logger.error(f"Delete of {state.name} ({state.external_id}) failed: {error}")
        self.event_bus.publish(DeletionFailed(
            sync_state=state.name,
            resource_type=state.resource_type.kind,
            external_id=state.external_id,
            error=str(error),
        ))
        return ReconcileResult.after(delay, "delete-failed")

    # -------------------------------------------------------------------------
    # Dry run
    # -------------------------------------------------------------------------

    def plan(self, name: str) -> SyncPlan:
        """Describe what ``reconcile`` would do, without any writes or API calls."""
        state = self.repository.get(name)
        if state is None:
            return SyncPlan(name=name, action="none", reason="SyncState not found")

        if state.deletion_requested or not state.has_sources:
            if is_placeholder(state.external_id):
                reason = "no sources remain; never created externally"
            else:
                reason = "no sources remain" if not state.deletion_requested else "deletion requested"
            return SyncPlan(name=name, action="delete", reason=reason, external_id=state.external_id)

        remaining = self.debouncer.remaining(name)
        if remaining > 0:
            return SyncPlan(
                name=name,
                action="wait",
                reason=f"debounced for {remaining:.2f}s",
                external_id=state.external_id,
            )

        backoff = self.backoff_remaining(state)
        if backoff > 0:
            return SyncPlan(
                name=name,
                action="wait",
                reason=f"backing off for {backoff:.0f}s after error",
                external_id=state.external_id,
            )

        try:
            config = self.extractor.extract(state)
        except ExtractionError as e:
            return SyncPlan(name=name, action="error", reason=str(e), external_id=state.external_id)

        new_hash = self.hasher.hash(config)
        plan = SyncPlan(
            name=name,
            action="update",
            external_id=state.external_id,
            config_hash=new_hash,
            config=config.to_params(),
        )
        if state.status.phase is SyncPhase.SYNCED and not self.hasher.changed(
            state.status.last_applied_hash, new_hash
        ):
            plan.action = "noop"
            plan.reason = "configuration unchanged"
        elif state.is_pending:
            plan.action = "create"
            plan.reason = "resource does not exist yet"
        else:
            plan.reason = "configuration changed" if state.status.last_applied_hash else "never applied"
        return plan
