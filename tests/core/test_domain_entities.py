"""Tests for SyncState, value objects and placeholder identities."""

from datetime import datetime, timezone

import pytest

from unisync.core.domain import (
    ConfigSource,
    CredentialsRef,
    DeclaredObject,
    MergePolicy,
    OwnerRef,
    ResourceType,
    Scope,
    SyncPhase,
    SyncState,
    is_placeholder,
    placeholder_for,
    sanitize_name,
    sync_state_name,
)
from unisync.core.exceptions import IdentityError


def make_state(external_id: str = "pending-a") -> SyncState:
    return SyncState(
        name=sync_state_name(ResourceType.GATEWAY_RULE, external_id),
        resource_type=ResourceType.GATEWAY_RULE,
        external_id=external_id,
        account_id="acc-1",
    )


class TestOwnerRef:
    """Tests for OwnerRef."""

    def test_str_namespaced(self):
        assert str(OwnerRef("GatewayRule", "block-ads", "default")) == "GatewayRule/default/block-ads"

    def test_str_cluster_scoped(self):
        assert str(OwnerRef("AccessGroup", "team-a")) == "AccessGroup/team-a"

    def test_parse(self):
        assert OwnerRef.parse("GatewayRule/default/block-ads") == OwnerRef("GatewayRule", "block-ads", "default")
        assert OwnerRef.parse("AccessGroup/team-a") == OwnerRef("AccessGroup", "team-a")

    def test_parse_invalid(self):
        with pytest.raises(ValueError):
            OwnerRef.parse("just-a-name")

    def test_dict_round_trip(self):
        ref = OwnerRef("DNSRecord", "www", "web")
        assert OwnerRef.from_dict(ref.to_dict()) == ref


class TestPlaceholders:
    """Tests for placeholder identity rules."""

    def test_placeholder_from_source_name(self):
        assert placeholder_for(OwnerRef("GatewayRule", "A")) == "pending-A"

    def test_placeholder_with_natural_key(self):
        assert placeholder_for(OwnerRef("DNSRecord", "web"), "www") == "pending-web-www"

    def test_placeholder_is_deterministic(self):
        owner = OwnerRef("GatewayRule", "A", "ns")
        assert placeholder_for(owner) == placeholder_for(owner)

    def test_is_placeholder(self):
        assert is_placeholder("pending-A")
        assert not is_placeholder("cf-42")
        assert not is_placeholder("")
        assert not is_placeholder(None)
        assert not is_placeholder("pending-")

    def test_sanitize_name(self):
        assert sanitize_name("Pending_A.B") == "pending-a-b"
        assert len(sanitize_name("x" * 100)) == 63

    def test_sync_state_name(self):
        assert sync_state_name(ResourceType.GATEWAY_RULE, "pending-A") == "gateway-rule-pending-a"
        assert sync_state_name(ResourceType.DNS_RECORD, "abc123") == "dns-record-abc123"


class TestResourceType:
    """Tests for the resource catalog."""

    def test_attributes(self):
        assert ResourceType.GATEWAY_LIST.merge_policy is MergePolicy.ENTRIES
        assert ResourceType.GATEWAY_RULE.merge_policy is MergePolicy.SINGLE
        assert ResourceType.DNS_RECORD.scope is Scope.ZONE
        assert ResourceType.ACCESS_GROUP.scope is Scope.ACCOUNT

    def test_kebab_name(self):
        assert ResourceType.DNS_RECORD.kebab_name == "dns-record"
        assert ResourceType.VIRTUAL_NETWORK.kebab_name == "virtual-network"

    def test_from_kind(self):
        assert ResourceType.from_kind("GatewayList") is ResourceType.GATEWAY_LIST
        with pytest.raises(ValueError):
            ResourceType.from_kind("Tunnel")

    def test_phase_from_string(self):
        assert SyncPhase.from_string("synced") is SyncPhase.SYNCED
        assert SyncPhase.from_string("Pending") is SyncPhase.NEW


class TestSyncStateSources:
    """Tests for source management on the aggregate."""

    def test_upsert_new_source(self):
        state = make_state()
        owner = OwnerRef("GatewayRule", "A")

        assert state.upsert_source(owner, {"name": "r1"}, 10) is True
        assert len(state.sources) == 1
        assert state.find_source(owner).priority == 10

    def test_upsert_replaces_existing(self):
        state = make_state()
        owner = OwnerRef("GatewayRule", "A")
        state.upsert_source(owner, {"name": "r1"}, 10)

        assert state.upsert_source(owner, {"name": "r2"}, 5) is False
        assert len(state.sources) == 1
        assert state.sources[0].config == {"name": "r2"}
        assert state.sources[0].priority == 5

    def test_upsert_copies_config(self):
        state = make_state()
        config = {"name": "r1"}
        state.upsert_source(OwnerRef("GatewayRule", "A"), config, 10)
        config["name"] = "changed"

        assert state.sources[0].config == {"name": "r1"}

    def test_remove_source(self):
        state = make_state()
        owner = OwnerRef("GatewayRule", "A")
        state.upsert_source(owner, {"name": "r1"}, 10)

        assert state.remove_source(owner) is True
        assert state.remove_source(owner) is False
        assert not state.has_sources

    def test_sorted_sources_stable_on_ties(self):
        state = make_state()
        state.upsert_source(OwnerRef("K", "b"), {}, 5)
        state.upsert_source(OwnerRef("K", "a"), {}, 1)
        state.upsert_source(OwnerRef("K", "c"), {}, 5)

        assert [s.owner.name for s in state.sorted_sources()] == ["a", "b", "c"]

    def test_generation_tracks_source_changes(self):
        state = make_state()
        owner = OwnerRef("GatewayRule", "A")

        state.upsert_source(owner, {"name": "r1"}, 10)
        state.upsert_source(owner, {"name": "r2"}, 10)
        assert state.generation == 2

        state.remove_source(OwnerRef("GatewayRule", "other"))
        assert state.generation == 2
        state.remove_source(owner)
        assert state.generation == 3

    def test_status_writes_keep_generation(self):
        state = make_state()
        state.upsert_source(OwnerRef("GatewayRule", "A"), {"name": "r1"}, 10)
        state.status.phase = SyncPhase.ERROR
        state.status.failure_count = 3
        state.add_finalizer("f")

        assert state.generation == 1


class TestSyncStateIdentity:
    """Tests for identity migration."""

    def test_pending(self):
        assert make_state("pending-a").is_pending
        assert not make_state("cf-42").is_pending

    def test_migrate_placeholder_to_real(self):
        state = make_state("pending-a")
        previous = state.migrate_identity("cf-42")

        assert previous == "pending-a"
        assert state.external_id == "cf-42"
        assert state.name == "gateway-rule-pending-a"

    def test_migrate_real_to_real(self):
        state = make_state("cf-42")
        state.migrate_identity("cf-99")
        assert state.external_id == "cf-99"

    def test_never_migrates_to_placeholder(self):
        state = make_state("cf-42")
        with pytest.raises(IdentityError):
            state.migrate_identity("pending-a")
        with pytest.raises(IdentityError):
            state.migrate_identity("")
        assert state.external_id == "cf-42"


class TestSyncStateFinalizers:
    """Tests for finalizer bookkeeping."""

    def test_add_and_remove(self):
        state = make_state()
        assert state.add_finalizer("f") is True
        assert state.add_finalizer("f") is False
        assert state.has_finalizer("f")
        assert state.remove_finalizer("f") is True
        assert state.remove_finalizer("f") is False


class TestSyncStateSerialization:
    """Tests for the persisted shape."""

    def test_to_dict_shape(self):
        state = make_state("cf-42")
        state.credentials_ref = CredentialsRef("prod")
        state.upsert_source(OwnerRef("GatewayRule", "A", "ns"), {"name": "r1"}, 10)
        state.status.phase = SyncPhase.SYNCED
        state.status.last_applied_hash = "abc"

        data = state.to_dict()

        assert data["externalId"] == "cf-42"
        assert data["resourceType"] == "GatewayRule"
        assert data["credentialsRef"] == "prod"
        assert data["sources"][0]["ownerRef"] == {"kind": "GatewayRule", "namespace": "ns", "name": "A"}
        assert data["status"]["phase"] == "Synced"
        assert data["status"]["lastAppliedHash"] == "abc"

    def test_round_trip(self):
        state = make_state("cf-42")
        state.upsert_source(OwnerRef("GatewayRule", "A"), {"name": "r1"}, 10)
        state.add_finalizer("unisync.io/sync-finalizer")
        state.resource_version = 7

        restored = SyncState.from_dict(state.to_dict())

        assert restored.name == state.name
        assert restored.resource_type is ResourceType.GATEWAY_RULE
        assert restored.sources[0].owner == OwnerRef("GatewayRule", "A")
        assert restored.finalizers == ["unisync.io/sync-finalizer"]
        assert restored.resource_version == 7
        assert restored.generation == 1

    def test_retry_fields_round_trip(self):
        state = make_state()
        state.status.observed_generation = 4
        state.status.next_retry_time = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

        restored = SyncState.from_dict(state.to_dict()).status

        assert restored.observed_generation == 4
        assert restored.next_retry_time == state.status.next_retry_time

    def test_config_source_from_dict_defaults(self):
        source = ConfigSource.from_dict({"ownerRef": {"kind": "K", "name": "n"}})
        assert source.priority == 0
        assert source.config == {}


class TestDeclaredObject:
    """Tests for DeclaredObject readiness."""

    def test_ready_only_with_real_id(self):
        ref = OwnerRef("AccessGroup", "team-a")
        assert not DeclaredObject(ref).is_ready
        assert not DeclaredObject(ref, external_id="pending-team-a").is_ready
        assert DeclaredObject(ref, external_id="grp-1").is_ready
