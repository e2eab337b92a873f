"""
Resource Configs - Typed configuration per resource kind.

Contributor payloads are opaque dicts on the SyncState; they become one of
these dataclasses at the extraction boundary and nowhere else. Each class
is tagged with its ResourceType, so the set of classes forms a tagged union
over the resource catalog.
"""

from dataclasses import MISSING, asdict, dataclass, field, fields
from typing import Any, ClassVar, Optional, Union, get_args, get_origin

from ..exceptions import ExtractionError
from .enums import ResourceType


def _matches_type(value: Any, expected: Any) -> bool:
    """Check a payload value against a field annotation."""
    origin = get_origin(expected)
    if origin is Union:
        return any(_matches_type(value, arg) for arg in get_args(expected))
    if origin is list:
        if not isinstance(value, list):
            return False
        args = get_args(expected)
        return not args or all(_matches_type(v, args[0]) for v in value)
    if origin is dict:
        return isinstance(value, dict)
    if expected is Any:
        return True
    if expected is type(None):
        return value is None
    if expected is int:
        # bool is an int subclass
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, expected)


def _type_name(expected: Any) -> str:
    if get_origin(expected) is None:
        return getattr(expected, "__name__", str(expected))
    return str(expected).replace("typing.", "")


@dataclass
class ResourceConfig:
    """Base class for typed resource configurations."""

    resource_type: ClassVar[ResourceType]

    # Name of the list field unioned across sources (ENTRIES policy only)
    entries_field: ClassVar[Optional[str]] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResourceConfig":
        """
        Build a config from a contributor payload.

        Raises:
            ExtractionError: On unknown fields, missing required fields,
                values of the wrong type, or values rejected by ``validate``.
        """
        if not isinstance(data, dict):
            raise ExtractionError(f"{cls.__name__} payload must be a mapping, got {type(data).__name__}")

        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ExtractionError(f"{cls.__name__}: unknown field(s) {', '.join(unknown)}")

        missing = [
            name for name, f in known.items()
            if f.default is MISSING and f.default_factory is MISSING and name not in data
        ]
        if missing:
            raise ExtractionError(f"{cls.__name__}: missing required field(s) {', '.join(missing)}")

        values = {key: cls._coerce(key, value) for key, value in data.items()}
        for key, value in values.items():
            expected = known[key].type
            if not _matches_type(value, expected):
                raise ExtractionError(
                    f"{cls.__name__}: {key} must be {_type_name(expected)}, got {type(value).__name__}"
                )

        try:
            config = cls(**values)
            config.validate()
        except (TypeError, ValueError) as e:
            raise ExtractionError(f"{cls.__name__}: {e}", cause=e) from e
        return config

    @classmethod
    def _coerce(cls, key: str, value: Any) -> Any:
        """Convert nested payload values into typed values."""
        return value

    def validate(self) -> None:
        """Reject semantically invalid values."""
        if not getattr(self, "name", None):
            raise ExtractionError(f"{type(self).__name__}: name must not be empty")

    def entries(self) -> list[Any]:
        if self.entries_field is None:
            return []
        return list(getattr(self, self.entries_field))

    def with_entries(self, entries: list[Any]) -> "ResourceConfig":
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values[self.entries_field] = entries
        return type(self)(**values)

    @staticmethod
    def entry_key(entry: Any) -> str:
        """Deduplication key of one entry."""
        return repr(entry)

    def to_params(self) -> dict[str, Any]:
        """Flat API parameters, omitting unset optional values."""
        return {k: v for k, v in asdict(self).items() if v is not None}


# =============================================================================
# Zone-scoped
# =============================================================================

DNS_RECORD_TYPES = ("A", "AAAA", "CNAME", "TXT", "MX", "NS", "SRV", "CAA")


@dataclass
class DNSRecordConfig(ResourceConfig):
    """A single DNS record."""

    resource_type: ClassVar[ResourceType] = ResourceType.DNS_RECORD

    name: str
    type: str
    content: str
    ttl: int = 1
    proxied: bool = False
    priority: Optional[int] = None
    comment: str = ""
    tags: list[str] = field(default_factory=list)

    def validate(self) -> None:
        super().validate()
        if self.type not in DNS_RECORD_TYPES:
            raise ExtractionError(f"DNSRecordConfig: unsupported record type {self.type!r}")
        if self.ttl != 1 and not 60 <= self.ttl <= 86400:
            raise ExtractionError(f"DNSRecordConfig: ttl must be 1 (auto) or 60-86400, got {self.ttl}")


# =============================================================================
# Account-scoped
# =============================================================================

GATEWAY_ACTIONS = (
    "allow", "block", "safesearch", "ytrestricted", "on", "off",
    "scan", "noscan", "isolate", "noisolate", "override", "l4_override",
    "egress", "audit_ssh", "resolve",
)


@dataclass
class GatewayRuleConfig(ResourceConfig):
    """A Zero Trust Gateway rule."""

    resource_type: ClassVar[ResourceType] = ResourceType.GATEWAY_RULE

    name: str
    action: str
    description: str = ""
    enabled: bool = True
    precedence: Optional[int] = None
    filters: list[str] = field(default_factory=list)
    traffic: str = ""
    identity: str = ""
    device_posture: str = ""

    def validate(self) -> None:
        super().validate()
        if self.action not in GATEWAY_ACTIONS:
            raise ExtractionError(f"GatewayRuleConfig: unsupported action {self.action!r}")


@dataclass(frozen=True)
class GatewayListItem:
    """One value in a Gateway list."""

    value: str
    description: str = ""


@dataclass
class GatewayListConfig(ResourceConfig):
    """
    A Gateway list.

    Several declared objects may contribute items to one list; items are
    unioned across contributors and deduplicated by value.
    """

    resource_type: ClassVar[ResourceType] = ResourceType.GATEWAY_LIST
    entries_field: ClassVar[Optional[str]] = "items"

    name: str
    type: str = "DOMAIN"
    description: str = ""
    items: list[GatewayListItem] = field(default_factory=list)

    @classmethod
    def _coerce(cls, key: str, value: Any) -> Any:
        if key != "items":
            return value
        if not isinstance(value, list):
            raise ExtractionError("GatewayListConfig: items must be a list")
        items = []
        for raw in value:
            if isinstance(raw, str):
                items.append(GatewayListItem(value=raw))
            elif isinstance(raw, dict) and isinstance(raw.get("value"), str):
                description = raw.get("description", "")
                if not isinstance(description, str):
                    raise ExtractionError(f"GatewayListConfig: invalid item description {description!r}")
                items.append(GatewayListItem(value=raw["value"], description=description))
            else:
                raise ExtractionError(f"GatewayListConfig: invalid item {raw!r}")
        return items

    @staticmethod
    def entry_key(entry: GatewayListItem) -> str:
        return entry.value

    def validate(self) -> None:
        super().validate()
        if self.type not in ("DOMAIN", "URL", "IP", "EMAIL", "SERIAL"):
            raise ExtractionError(f"GatewayListConfig: unsupported list type {self.type!r}")


@dataclass
class AccessGroupConfig(ResourceConfig):
    """An Access group with include/exclude/require rules."""

    resource_type: ClassVar[ResourceType] = ResourceType.ACCESS_GROUP

    name: str
    include: list[dict] = field(default_factory=list)
    exclude: list[dict] = field(default_factory=list)
    require: list[dict] = field(default_factory=list)
    is_default: bool = False

    def validate(self) -> None:
        super().validate()
        if not self.include:
            raise ExtractionError("AccessGroupConfig: at least one include rule is required")


@dataclass
class VirtualNetworkConfig(ResourceConfig):
    """A tunnel virtual network."""

    resource_type: ClassVar[ResourceType] = ResourceType.VIRTUAL_NETWORK

    name: str
    comment: str = ""
    is_default_network: bool = False


CONFIG_TYPES: dict[ResourceType, type[ResourceConfig]] = {
    cls.resource_type: cls
    for cls in (
        DNSRecordConfig,
        GatewayRuleConfig,
        GatewayListConfig,
        AccessGroupConfig,
        VirtualNetworkConfig,
    )
}


def config_type_for(resource_type: ResourceType) -> type[ResourceConfig]:
    try:
        return CONFIG_TYPES[resource_type]
    except KeyError:
        raise ExtractionError(f"No config type registered for {resource_type}") from None
