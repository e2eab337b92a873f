"""
Domain - Entities, value objects, typed configs and events.
"""

from .enums import MergePolicy, ResourceType, Scope, SyncPhase
from .value_objects import (
    PENDING_PREFIX,
    CredentialsRef,
    OwnerRef,
    is_placeholder,
    placeholder_for,
    sanitize_name,
    sync_state_name,
)
from .entities import ConfigSource, DeclaredObject, SyncState, SyncStatusInfo
from .configs import (
    CONFIG_TYPES,
    AccessGroupConfig,
    DNSRecordConfig,
    GatewayListConfig,
    GatewayListItem,
    GatewayRuleConfig,
    ResourceConfig,
    VirtualNetworkConfig,
    config_type_for,
)
from .events import (
    DeletionFailed,
    DomainEvent,
    EventBus,
    IdentityMigrated,
    ResourceCreated,
    ResourceDeleted,
    ResourceRecreated,
    ResourceUpdated,
    SyncFailed,
)

__all__ = [
    "MergePolicy",
    "ResourceType",
    "Scope",
    "SyncPhase",
    "PENDING_PREFIX",
    "CredentialsRef",
    "OwnerRef",
    "is_placeholder",
    "placeholder_for",
    "sanitize_name",
    "sync_state_name",
    "ConfigSource",
    "DeclaredObject",
    "SyncState",
    "SyncStatusInfo",
    "CONFIG_TYPES",
    "AccessGroupConfig",
    "DNSRecordConfig",
    "GatewayListConfig",
    "GatewayListItem",
    "GatewayRuleConfig",
    "ResourceConfig",
    "VirtualNetworkConfig",
    "config_type_for",
    "DeletionFailed",
    "DomainEvent",
    "EventBus",
    "IdentityMigrated",
    "ResourceCreated",
    "ResourceDeleted",
    "ResourceRecreated",
    "ResourceUpdated",
    "SyncFailed",
]
