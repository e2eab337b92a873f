"""
Domain Entities - The SyncState aggregate and its parts.

SyncState is the aggregate root: one record per external resource, holding
every contributing ConfigSource plus the sync status. All mutating methods
are pure in-memory operations; persistence is the repository's job.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from ..exceptions import IdentityError
from .enums import ResourceType, SyncPhase
from .value_objects import CredentialsRef, OwnerRef, is_placeholder


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class ConfigSource:
    """A configuration fragment contributed by one declared object."""

    owner: OwnerRef
    priority: int
    config: dict[str, Any]
    last_updated: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ownerRef": self.owner.to_dict(),
            "priority": self.priority,
            "config": copy.deepcopy(self.config),
            "lastUpdated": _format_time(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConfigSource":
        return cls(
            owner=OwnerRef.from_dict(data["ownerRef"]),
            priority=int(data.get("priority", 0)),
            config=copy.deepcopy(data.get("config") or {}),
            last_updated=_parse_time(data.get("lastUpdated")) or _utcnow(),
        )


@dataclass
class SyncStatusInfo:
    """Observed sync status of a SyncState."""

    phase: SyncPhase = SyncPhase.NEW
    last_applied_hash: Optional[str] = None
    last_error: Optional[str] = None
    last_sync_time: Optional[datetime] = None
    failure_count: int = 0
    observed_generation: int = 0
    next_retry_time: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "lastAppliedHash": self.last_applied_hash,
            "lastError": self.last_error,
            "lastSyncTime": _format_time(self.last_sync_time),
            "failureCount": self.failure_count,
            "observedGeneration": self.observed_generation,
            "nextRetryTime": _format_time(self.next_retry_time),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncStatusInfo":
        return cls(
            phase=SyncPhase.from_string(data.get("phase", "New")),
            last_applied_hash=data.get("lastAppliedHash"),
            last_error=data.get("lastError"),
            last_sync_time=_parse_time(data.get("lastSyncTime")),
            failure_count=int(data.get("failureCount", 0)),
            observed_generation=int(data.get("observedGeneration", 0)),
            next_retry_time=_parse_time(data.get("nextRetryTime")),
        )


@dataclass
class SyncState:
    """
    Aggregate tracking all contributors and sync status for one external resource.

    The storage ``name`` is fixed when the record is created; identity
    migration rewrites ``external_id`` in place and never renames the record.

    ``generation`` counts changes to the desired state (sources and the
    deletion request). Status writes never bump it, so the engine can tell
    its own writes apart from new input via ``status.observed_generation``.
    """

    name: str
    resource_type: ResourceType
    external_id: str
    account_id: str = ""
    zone_id: str = ""
    credentials_ref: Optional[CredentialsRef] = None
    sources: list[ConfigSource] = field(default_factory=list)
    status: SyncStatusInfo = field(default_factory=SyncStatusInfo)
    deletion_requested: bool = False
    finalizers: list[str] = field(default_factory=list)
    resource_version: int = 0
    generation: int = 0

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    def find_source(self, owner: OwnerRef) -> Optional[ConfigSource]:
        for source in self.sources:
            if source.owner == owner:
                return source
        return None

    def upsert_source(self, owner: OwnerRef, config: dict[str, Any], priority: int) -> bool:
        """Insert or replace the source for ``owner``. Returns True if it was new."""
        self.generation += 1
        existing = self.find_source(owner)
        if existing is not None:
            existing.config = copy.deepcopy(config)
            existing.priority = priority
            existing.last_updated = _utcnow()
            return False

        self.sources.append(ConfigSource(
            owner=owner,
            priority=priority,
            config=copy.deepcopy(config),
        ))
        return True

    def remove_source(self, owner: OwnerRef) -> bool:
        """Remove the source for ``owner``. Returns True if one was removed."""
        remaining = [s for s in self.sources if s.owner != owner]
        removed = len(remaining) != len(self.sources)
        self.sources = remaining
        if removed:
            self.generation += 1
        return removed

    def sorted_sources(self) -> list[ConfigSource]:
        """Sources by ascending priority; ties keep registration order."""
        return sorted(self.sources, key=lambda s: s.priority)

    @property
    def has_sources(self) -> bool:
        return bool(self.sources)

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    @property
    def is_pending(self) -> bool:
        """True while the external resource has not been created."""
        return is_placeholder(self.external_id)

    def migrate_identity(self, real_id: str) -> Optional[str]:
        """
        Record the real external id, returning the previous one.

        Raises:
            IdentityError: If ``real_id`` is empty or itself a placeholder.
        """
        if not real_id or is_placeholder(real_id):
            raise IdentityError(
                f"Refusing to migrate {self.name} to non-real id {real_id!r}"
            )
        previous = self.external_id
        self.external_id = real_id
        return previous

    # -------------------------------------------------------------------------
    # Finalizers
    # -------------------------------------------------------------------------

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.finalizers

    def add_finalizer(self, finalizer: str) -> bool:
        if finalizer in self.finalizers:
            return False
        self.finalizers.append(finalizer)
        return True

    def remove_finalizer(self, finalizer: str) -> bool:
        if finalizer not in self.finalizers:
            return False
        self.finalizers.remove(finalizer)
        return True

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def copy(self) -> "SyncState":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "resourceType": self.resource_type.kind,
            "externalId": self.external_id,
            "accountId": self.account_id,
            "zoneId": self.zone_id,
            "credentialsRef": self.credentials_ref.name if self.credentials_ref else None,
            "sources": [s.to_dict() for s in self.sources],
            "status": self.status.to_dict(),
            "deletionRequested": self.deletion_requested,
            "finalizers": list(self.finalizers),
            "resourceVersion": self.resource_version,
            "generation": self.generation,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncState":
        cred = data.get("credentialsRef")
        return cls(
            name=data["name"],
            resource_type=ResourceType.from_kind(data["resourceType"]),
            external_id=data["externalId"],
            account_id=data.get("accountId") or "",
            zone_id=data.get("zoneId") or "",
            credentials_ref=CredentialsRef(cred) if cred else None,
            sources=[ConfigSource.from_dict(s) for s in data.get("sources", [])],
            status=SyncStatusInfo.from_dict(data.get("status") or {}),
            deletion_requested=bool(data.get("deletionRequested", False)),
            finalizers=list(data.get("finalizers", [])),
            resource_version=int(data.get("resourceVersion", 0)),
            generation=int(data.get("generation", 0)),
        )


@dataclass
class DeclaredObject:
    """
    A declarative object as seen by the sync layer.

    Only the fields the sync layer reads or mirrors are modelled.
    """

    ref: OwnerRef
    external_id: Optional[str] = None
    status: dict[str, Any] = field(default_factory=dict)

    @property
    def is_ready(self) -> bool:
        return bool(self.external_id) and not is_placeholder(self.external_id)
