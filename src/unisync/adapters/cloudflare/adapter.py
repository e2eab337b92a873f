"""
Cloudflare Adapter - Implements ExternalApiPort for one Cloudflare resource kind.

Each resource kind lives under a zone or an account collection; the adapter
turns the engine's create/update/delete/get/find calls into requests against
that collection.
"""

import logging
from typing import Any, Optional

from ...core.domain import ResourceType, Scope
from ...core.exceptions import AmbiguousReferenceError, ConfigError
from ...core.ports.external_api import ExternalApiPort
from .client import CloudflareApiClient


# Collection path (below the zone or account) and the update verb per kind
ENDPOINTS: dict[ResourceType, tuple[str, str]] = {
    ResourceType.DNS_RECORD: ("dns_records", "PUT"),
    ResourceType.GATEWAY_RULE: ("gateway/rules", "PUT"),
    ResourceType.GATEWAY_LIST: ("gateway/lists", "PUT"),
    ResourceType.ACCESS_GROUP: ("access/groups", "PUT"),
    ResourceType.VIRTUAL_NETWORK: ("teamnet/virtual_networks", "PATCH"),
}


class CloudflareResourceAdapter(ExternalApiPort):
    """
    Cloudflare implementation of the ExternalApiPort.

    Bound to one resource type and its account or zone.
    """

    def __init__(
        self,
        client: CloudflareApiClient,
        resource_type: ResourceType,
        account_id: str = "",
        zone_id: str = "",
    ):
        """
        Initialize the adapter.

        Raises:
            ConfigError: If the scope id the resource type needs is missing.
        """
        if resource_type.scope is Scope.ZONE and not zone_id:
            raise ConfigError(f"{resource_type} requires a zone id")
        if resource_type.scope is Scope.ACCOUNT and not account_id:
            raise ConfigError(f"{resource_type} requires an account id")

        self._client = client
        self.resource_type = resource_type
        self.account_id = account_id
        self.zone_id = zone_id
        self.logger = logging.getLogger("CloudflareResourceAdapter")

        path, self._update_method = ENDPOINTS[resource_type]
        if resource_type.scope is Scope.ZONE:
            self.collection = f"zones/{zone_id}/{path}"
        else:
            self.collection = f"accounts/{account_id}/{path}"

    # -------------------------------------------------------------------------
    # ExternalApiPort Implementation
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return f"Cloudflare {self.resource_type}"

    def create(self, params: dict[str, Any]) -> dict[str, Any]:
        result = self._client.post(self.collection, json=params) or {}
        self.logger.info(f"Created {self.resource_type} {result.get('id')} ({params.get('name')})")
        return result

    def update(self, external_id: str, params: dict[str, Any]) -> dict[str, Any]:
        result = self._client.request(
            self._update_method,
            f"{self.collection}/{external_id}",
            json=params,
        ) or {}
        self.logger.info(f"Updated {self.resource_type} {external_id}")
        return result

    def delete(self, external_id: str) -> None:
        self._client.delete(f"{self.collection}/{external_id}")
        self.logger.info(f"Deleted {self.resource_type} {external_id}")

    def get(self, external_id: str) -> dict[str, Any]:
        return self._client.get(f"{self.collection}/{external_id}") or {}

    def find_by_name(self, name: str) -> Optional[dict[str, Any]]:
        """
        Find a resource by its display name.

        Every page of the collection is listed and filtered client-side
        because not every endpoint supports a name filter.
        """
        params = {"name": name} if self.resource_type is ResourceType.DNS_RECORD else None
        results = self._client.list_all(self.collection, params=params)
        matches = [r for r in results if r.get("name") == name]

        if len(matches) > 1:
            ids = ", ".join(str(m.get("id")) for m in matches)
            raise AmbiguousReferenceError(
                f"{len(matches)} {self.resource_type} resources are named {name!r}: {ids}"
            )
        return matches[0] if matches else None
