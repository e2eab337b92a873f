"""Tests for SyncEngine reconciliation and the deletion protocol."""

from datetime import timedelta

import pytest

from unisync.application.sync import SYNC_FINALIZER
from unisync.core.domain import (
    DeletionFailed,
    IdentityMigrated,
    OwnerRef,
    ResourceCreated,
    ResourceDeleted,
    ResourceRecreated,
    ResourceType,
    ResourceUpdated,
    SyncFailed,
    SyncPhase,
)
from unisync.core.ports import PermissionDeniedError, RateLimitError, TransientError


RULE = ResourceType.GATEWAY_RULE
OWNER_A = OwnerRef("GatewayRule", "A", "default")
OWNER_B = OwnerRef("GatewayRule", "B", "default")
R1_BLOCK = {"name": "r1", "action": "block"}


@pytest.fixture
def registered(store):
    """A registered, never-synced gateway rule."""
    return store.register_source(RULE, OWNER_A, R1_BLOCK, 10, account_id="acc-1")


@pytest.fixture
def synced(registered, api, settle, repository):
    """The registered rule after its first successful sync (id cf-42)."""
    api.next_ids = ["cf-42"]
    settle(registered.name)
    return repository.get(registered.name)


class TestReconcileCreate:
    """Tests for the first sync of a pending SyncState."""

    def test_creates_and_migrates_identity(self, registered, api, settle, repository):
        api.next_ids = ["cf-42"]

        result = settle(registered.name)

        assert result.action == "synced"
        assert result.requeue_after == 600
        assert api.calls_to("create") == [("create", {
            "name": "r1",
            "action": "block",
            "description": "",
            "enabled": True,
            "filters": [],
            "traffic": "",
            "identity": "",
            "device_posture": "",
        })]

        state = repository.get(registered.name)
        assert state.external_id == "cf-42"
        assert state.name == "gateway-rule-pending-a"
        assert state.status.phase is SyncPhase.SYNCED
        assert state.status.last_applied_hash
        assert state.status.last_error is None
        assert state.status.last_sync_time is not None

    def test_record_discoverable_by_real_id(self, synced, store):
        assert store.lookup(RULE, "cf-42").name == synced.name

    def test_publishes_created_and_migrated(self, synced, event_bus):
        created = event_bus.get_history(ResourceCreated)
        migrated = event_bus.get_history(IdentityMigrated)

        assert [e.external_id for e in created] == ["cf-42"]
        assert migrated[0].old_id == "pending-A"
        assert migrated[0].new_id == "cf-42"

    def test_debounced_reconcile_makes_no_calls(self, registered, engine, api, clock):
        clock.advance(0.2)
        result = engine.reconcile(registered.name)

        assert result.action == "debounced"
        assert result.requeue
        assert result.requeue_after == pytest.approx(0.3)
        assert api.calls == []

    def test_finalizer_added_before_external_calls(self, registered, engine, api, clock, repository):
        clock.advance(1)
        result = engine.reconcile(registered.name)

        assert result.action == "finalizer-added"
        assert result.requeue and result.requeue_after == 0
        assert repository.get(registered.name).has_finalizer(SYNC_FINALIZER)
        assert api.calls == []

    def test_missing_record(self, engine):
        assert engine.reconcile("gateway-rule-nope").action == "gone"

    def test_unusable_created_id_is_an_error(self, registered, api, settle, repository):
        api.next_ids = [""]

        result = settle(registered.name)

        state = repository.get(registered.name)
        assert result.action == "error"
        assert state.is_pending
        assert state.status.phase is SyncPhase.ERROR


class TestReconcileUpdate:
    """Tests for updates, skips and recreation."""

    def test_unchanged_config_is_noop(self, synced, engine, api):
        calls = len(api.calls)

        result = engine.reconcile(synced.name)

        assert result.action == "noop"
        assert result.requeue_after == 600
        assert len(api.calls) == calls

    def test_changed_config_updates_in_place(self, synced, store, api, settle, repository, event_bus):
        store.register_source(RULE, OWNER_A, {"name": "r1", "action": "allow"}, 10, external_id="cf-42")

        result = settle(synced.name)

        assert result.action == "synced"
        assert api.calls[-1][0:2] == ("update", "cf-42")
        state = repository.get(synced.name)
        assert state.external_id == "cf-42"
        assert state.status.last_applied_hash != synced.status.last_applied_hash
        assert event_bus.get_history(ResourceUpdated)[0].config_hash == state.status.last_applied_hash

    def test_recreates_when_missing_externally(self, synced, store, api, settle, engine, repository, event_bus):
        del api.resources["cf-42"]
        api.next_ids = ["cf-99"]
        store.register_source(RULE, OWNER_A, {"name": "r1", "action": "allow"}, 10, external_id="cf-42")

        result = settle(synced.name)

        assert result.action == "synced"
        assert [c[0] for c in api.calls[-2:]] == ["update", "create"]
        state = repository.get(synced.name)
        assert state.external_id == "cf-99"
        assert state.status.phase is SyncPhase.SYNCED

        recreated = event_bus.get_history(ResourceRecreated)
        assert recreated[0].old_id == "cf-42"
        assert recreated[0].is_warning

        # Settled: the next reconcile does nothing
        calls = len(api.calls)
        assert engine.reconcile(synced.name).action == "noop"
        assert len(api.calls) == calls

    def test_syncing_phase_never_short_circuits(self, synced, engine, repository, api):
        state = repository.get(synced.name)
        state.status.phase = SyncPhase.SYNCING
        repository.update(state)

        result = engine.reconcile(synced.name)

        assert result.action == "synced"
        assert api.calls[-1][0] == "update"

    def test_debounce_collapses_bursts(self, registered, store, api, settle, clock):
        for action in ("allow", "block", "allow"):
            clock.advance(0.1)
            store.register_source(RULE, OWNER_A, {"name": "r1", "action": action}, 10)

        settle(registered.name)

        assert len(api.calls) == 1
        assert api.calls[0][1]["action"] == "allow"

    def test_priority_merge_applies_winner(self, store, api, settle):
        state = store.register_source(RULE, OWNER_B, {"name": "r2", "action": "allow"}, 5, external_id="cf-7")
        store.register_source(RULE, OWNER_A, {"name": "r1", "action": "block"}, 1, external_id="cf-7")
        api.resources["cf-7"] = {}

        settle(state.name)

        method, external_id, params = api.calls[-1]
        assert (method, external_id) == ("update", "cf-7")
        assert params["name"] == "r1"
        assert params["action"] == "block"


class TestReconcileErrors:
    """Tests for error status and backoff."""

    def test_extraction_error(self, store, api, settle, repository, event_bus):
        state = store.register_source(RULE, OWNER_A, {"name": "r1"}, 10)

        result = settle(state.name)

        stored = repository.get(state.name)
        assert result.action == "error"
        assert result.requeue_after == 10
        assert stored.status.phase is SyncPhase.ERROR
        assert "GatewayRule/default/A" in stored.status.last_error
        assert stored.status.failure_count == 1
        assert api.calls == []
        assert event_bus.get_history(SyncFailed)[0].retry_in == 10

    @pytest.mark.parametrize("resource_type,config", [
        (ResourceType.DNS_RECORD, {"name": "www", "type": "A", "content": "192.0.2.1", "ttl": "300"}),
        (ResourceType.GATEWAY_LIST, {"name": "blocked", "items": [{"value": {"host": "a.example"}}]}),
    ])
    def test_wrongly_typed_config_is_recorded(self, store, api, settle, repository, resource_type, config):
        state = store.register_source(resource_type, OWNER_A, config, 10, zone_id="zone-1", account_id="acc-1")

        result = settle(state.name)

        stored = repository.get(state.name)
        assert result.action == "error"
        assert stored.status.phase is SyncPhase.ERROR
        assert "GatewayRule/default/A" in stored.status.last_error
        assert api.calls == []

    def test_backoff_grows_and_caps(self, registered, api, settle, engine, clock):
        api.fail_with = TransientError("503")
        delays = [settle(registered.name).requeue_after]
        for _ in range(6):
            clock.advance(delays[-1])
            delays.append(engine.reconcile(registered.name).requeue_after)

        assert delays == [10, 20, 40, 80, 160, 300, 300]
        assert len(api.calls_to("create")) == 7

    def test_no_api_call_inside_backoff_window(self, registered, api, settle, engine, clock, repository):
        api.fail_with = TransientError("503")
        settle(registered.name)
        clock.advance(4)

        result = engine.reconcile(registered.name)

        assert result.action == "backoff"
        assert result.requeue_after == pytest.approx(6)
        assert len(api.calls_to("create")) == 1
        assert repository.get(registered.name).status.failure_count == 1

    def test_retry_deadline_is_persisted(self, registered, api, settle, clock, repository):
        api.fail_with = TransientError("503")
        settle(registered.name)

        status = repository.get(registered.name).status
        assert status.next_retry_time == clock.utcnow() + timedelta(seconds=10)
        assert status.observed_generation == registered.generation

    def test_new_registration_skips_backoff(self, registered, store, api, settle, engine, clock):
        api.fail_with = TransientError("503")
        settle(registered.name)
        store.register_source(RULE, OWNER_A, {"name": "r1", "action": "allow"}, 10, account_id="acc-1")
        clock.advance(1)

        assert engine.reconcile(registered.name).action == "error"
        assert len(api.calls_to("create")) == 2

    def test_failure_keeps_last_applied_hash(self, synced, store, api, settle, repository):
        api.fail_with = PermissionDeniedError("nope")
        store.register_source(RULE, OWNER_A, {"name": "r1", "action": "allow"}, 10, external_id="cf-42")

        settle(synced.name)

        state = repository.get(synced.name)
        assert state.status.phase is SyncPhase.ERROR
        assert state.status.last_applied_hash == synced.status.last_applied_hash
        assert state.status.last_error == "nope"

    def test_recovery_resets_failures(self, registered, api, settle, engine, repository, clock):
        api.fail_with = TransientError("timeout")
        clock.advance(settle(registered.name).requeue_after)
        clock.advance(engine.reconcile(registered.name).requeue_after)
        assert repository.get(registered.name).status.failure_count == 2

        api.fail_with = None
        result = engine.reconcile(registered.name)

        state = repository.get(registered.name)
        assert result.action == "synced"
        assert state.status.failure_count == 0
        assert state.status.last_error is None
        assert state.status.next_retry_time is None

    def test_rate_limit_hint_respected(self, registered, api, settle):
        api.fail_with = RateLimitError("slow down", retry_after=120)
        assert settle(registered.name).requeue_after == 120


class TestDeletion:
    """Tests for the deletion protocol."""

    def test_unregister_deletes_external_resource(self, synced, store, api, engine, repository, event_bus):
        store.unregister_source(RULE, OWNER_A, external_id="cf-42")
        assert repository.get(synced.name).deletion_requested

        result = engine.reconcile(synced.name)

        assert result.action == "deleted"
        assert api.calls_to("delete") == [("delete", "cf-42")]
        assert repository.get(synced.name) is None
        assert event_bus.get_history(ResourceDeleted)[0].external_id == "cf-42"

        # Repeating the unregister and the reconcile is harmless
        assert store.unregister_source(RULE, OWNER_A, external_id="cf-42") is None
        assert engine.reconcile(synced.name).action == "gone"
        assert len(api.calls_to("delete")) == 1

    def test_pending_resource_is_not_deleted_externally(self, registered, store, engine, clock, api, repository, event_bus):
        clock.advance(1)
        engine.reconcile(registered.name)
        store.unregister_source(RULE, OWNER_A)

        assert engine.reconcile(registered.name).action == "deleted"
        assert api.calls == []
        assert repository.get(registered.name) is None
        assert event_bus.get_history(ResourceDeleted)[0].skipped

    def test_not_found_counts_as_deleted(self, synced, store, api, engine, repository):
        del api.resources["cf-42"]
        store.unregister_source(RULE, OWNER_A, external_id="cf-42")

        assert engine.reconcile(synced.name).action == "deleted"
        assert repository.get(synced.name) is None

    def test_delete_failure_keeps_finalizer(self, synced, store, api, engine, repository, event_bus, clock):
        store.unregister_source(RULE, OWNER_A, external_id="cf-42")
        api.fail_with = TransientError("503")

        result = engine.reconcile(synced.name)

        state = repository.get(synced.name)
        assert result.action == "delete-failed"
        assert result.requeue_after == 10
        assert state.has_finalizer(SYNC_FINALIZER)
        assert state.status.phase is SyncPhase.ERROR
        assert event_bus.get_history(DeletionFailed)

        api.fail_with = None
        assert engine.reconcile(synced.name).action == "backoff"
        assert len(api.calls_to("delete")) == 1

        clock.advance(result.requeue_after)
        assert engine.reconcile(synced.name).action == "deleted"
        assert repository.get(synced.name) is None

    def test_orphan_without_finalizer_is_removed(self, store, engine, repository):
        orphan = store.get_or_create(RULE, "pending-X")

        assert engine.reconcile(orphan.name).action == "deleted"
        assert repository.get(orphan.name) is None

    def test_orphan_with_finalizer_cleans_up(self, synced, engine, api, repository):
        state = repository.get(synced.name)
        state.sources = []
        repository.update(state)

        assert engine.reconcile(synced.name).action == "deleted"
        assert api.calls_to("delete") == [("delete", "cf-42")]
        assert repository.get(synced.name) is None

    def test_no_orphans_after_all_sources_leave(self, store, api, settle, engine, repository):
        store.register_source(RULE, OWNER_A, R1_BLOCK, 10, external_id="cf-7")
        state = store.register_source(RULE, OWNER_B, R1_BLOCK, 20, external_id="cf-7")
        api.resources["cf-7"] = {}
        settle(state.name)

        store.unregister_source(RULE, OWNER_A, external_id="cf-7")
        assert repository.get(state.name) is not None
        store.unregister_source(RULE, OWNER_B, external_id="cf-7")
        engine.reconcile(state.name)

        assert repository.list() == []
        assert api.resources == {}


class TestPlan:
    """Tests for the dry-run plan."""

    def test_plan_create(self, registered, engine, clock, api):
        clock.advance(1)
        plan = engine.plan(registered.name)

        assert plan.action == "create"
        assert plan.config["name"] == "r1"
        assert plan.config_hash
        assert api.calls == []

    def test_plan_wait_while_debounced(self, registered, engine):
        assert engine.plan(registered.name).action == "wait"

    def test_plan_wait_while_backing_off(self, registered, engine, api, settle):
        api.fail_with = TransientError("503")
        settle(registered.name)

        plan = engine.plan(registered.name)

        assert plan.action == "wait"
        assert "backing off" in plan.reason

    def test_plan_noop_and_update(self, synced, engine, store, clock):
        assert engine.plan(synced.name).action == "noop"

        store.register_source(RULE, OWNER_A, {"name": "r1", "action": "allow"}, 10, external_id="cf-42")
        clock.advance(1)
        plan = engine.plan(synced.name)
        assert plan.action == "update"
        assert plan.external_id == "cf-42"

    def test_plan_error(self, store, engine, clock):
        state = store.register_source(RULE, OWNER_A, {"name": "r1"}, 10)
        clock.advance(1)
        assert engine.plan(state.name).action == "error"

    def test_plan_delete(self, synced, store, engine, repository):
        store.unregister_source(RULE, OWNER_A, external_id="cf-42")
        plan = engine.plan(synced.name)

        assert plan.action == "delete"
        assert repository.get(synced.name).has_finalizer(SYNC_FINALIZER)

    def test_plan_missing(self, engine):
        assert engine.plan("nope").action == "none"

    def test_plan_does_not_write(self, registered, engine, clock, repository):
        clock.advance(1)
        version = repository.get(registered.name).resource_version
        engine.plan(registered.name)
        assert repository.get(registered.name).resource_version == version

