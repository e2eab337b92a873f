"""
Value Objects - Immutable identity types for the sync domain.

Includes the placeholder-identity rules: a provisional external id is the
reserved PENDING_PREFIX followed by a key derived from the registering
source, and no real identifier ever carries that prefix.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .enums import ResourceType


PENDING_PREFIX = "pending-"

MAX_NAME_LENGTH = 63

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]")


@dataclass(frozen=True)
class OwnerRef:
    """Identifies the declared object contributing a configuration source."""

    kind: str
    name: str
    namespace: str = ""

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> "OwnerRef":
        """Parse 'Kind/namespace/name' or 'Kind/name'."""
        parts = value.split("/")
        if len(parts) == 3:
            return cls(kind=parts[0], namespace=parts[1], name=parts[2])
        if len(parts) == 2:
            return cls(kind=parts[0], name=parts[1])
        raise ValueError(f"Invalid owner reference: {value!r}")

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "namespace": self.namespace, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "OwnerRef":
        return cls(
            kind=data["kind"],
            name=data["name"],
            namespace=data.get("namespace", ""),
        )


@dataclass(frozen=True)
class CredentialsRef:
    """Names the credentials object used to reach the external API."""

    name: str

    def __str__(self) -> str:
        return self.name


# -------------------------------------------------------------------------
# Placeholder identities
# -------------------------------------------------------------------------

def is_placeholder(external_id: Optional[str]) -> bool:
    """True for ids of resources that have not been created externally yet."""
    return bool(external_id) and len(external_id) > len(PENDING_PREFIX) and \
        external_id.startswith(PENDING_PREFIX)


def placeholder_for(owner: OwnerRef, natural_key: Optional[str] = None) -> str:
    """
    Derive the deterministic placeholder for a registering source.

    The same source (and natural key) always yields the same placeholder,
    which makes re-registration idempotent while the resource is pending.
    """
    key = owner.name
    if natural_key:
        key = f"{key}-{natural_key}"
    return PENDING_PREFIX + key


def sanitize_name(value: str) -> str:
    """Lowercase, replace invalid characters with dashes, trim, cap length."""
    name = _INVALID_NAME_CHARS.sub("-", value.lower()).strip("-")
    return name[:MAX_NAME_LENGTH]


def sync_state_name(resource_type: ResourceType, external_id: str) -> str:
    """Storage name of a SyncState: '<kebab-type>-<sanitized-id>'."""
    return f"{resource_type.kebab_name}-{sanitize_name(external_id)}"
