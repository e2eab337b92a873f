"""
Domain Enums - Fixed catalogs used across the sync architecture.
"""

from enum import Enum


class SyncPhase(Enum):
    """Lifecycle phase of a SyncState."""

    NEW = "New"
    SYNCING = "Syncing"
    SYNCED = "Synced"
    ERROR = "Error"

    @classmethod
    def from_string(cls, value: str) -> "SyncPhase":
        for phase in cls:
            if phase.value.lower() == value.strip().lower():
                return phase
        # "Pending" is what older records call a never-synced state
        return cls.NEW


class MergePolicy(Enum):
    """How contributor configs for one resource are combined."""

    SINGLE = "single"    # highest-priority source wins, the rest are ignored
    ENTRIES = "entries"  # entries are unioned across sources, first key wins


class Scope(Enum):
    """Addressing scope of an external resource."""

    ACCOUNT = "account"
    ZONE = "zone"


class ResourceType(Enum):
    """
    Catalog of sync-able external resource kinds.

    Each kind carries its merge policy and addressing scope.
    """

    DNS_RECORD = ("DNSRecord", MergePolicy.SINGLE, Scope.ZONE)
    GATEWAY_RULE = ("GatewayRule", MergePolicy.SINGLE, Scope.ACCOUNT)
    GATEWAY_LIST = ("GatewayList", MergePolicy.ENTRIES, Scope.ACCOUNT)
    ACCESS_GROUP = ("AccessGroup", MergePolicy.SINGLE, Scope.ACCOUNT)
    VIRTUAL_NETWORK = ("VirtualNetwork", MergePolicy.SINGLE, Scope.ACCOUNT)

    def __init__(self, kind: str, merge_policy: MergePolicy, scope: Scope):
        self.kind = kind
        self.merge_policy = merge_policy
        self.scope = scope

    def __str__(self) -> str:
        return self.kind

    @property
    def kebab_name(self) -> str:
        """DNSRecord -> dns-record, GatewayRule -> gateway-rule."""
        chars: list[str] = []
        for i, ch in enumerate(self.kind):
            if ch.isupper() and i > 0 and (
                not self.kind[i - 1].isupper()
                or (i + 1 < len(self.kind) and self.kind[i + 1].islower())
            ):
                chars.append("-")
            chars.append(ch.lower())
        return "".join(chars)

    @classmethod
    def from_kind(cls, kind: str) -> "ResourceType":
        for resource_type in cls:
            if resource_type.kind == kind:
                return resource_type
        raise ValueError(f"Unknown resource type: {kind}")
