"""
Cloudflare API Factory - Build the API adapter for a SyncState.
"""

import logging
import threading
from typing import Optional

from ...core.domain import SyncState
from ...core.exceptions import ConfigError
from ...core.ports import ApiConfig, ExternalApiFactoryPort, ExternalApiPort
from .adapter import CloudflareResourceAdapter
from .client import CloudflareApiClient


class CloudflareApiFactory(ExternalApiFactoryPort):
    """
    Resolves a SyncState's credentials and scope into a CloudflareResourceAdapter.

    ``credentials`` maps credentials-ref names to API tokens; records without
    a credentials ref use the default token from ApiConfig. One client (and
    HTTP session) is kept per token.
    """

    def __init__(self, config: ApiConfig, credentials: Optional[dict[str, str]] = None):
        self.config = config
        self.credentials = dict(credentials or {})
        self._clients: dict[str, CloudflareApiClient] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger("CloudflareApiFactory")

    def for_state(self, sync_state: SyncState) -> ExternalApiPort:
        token = self._token_for(sync_state)
        return CloudflareResourceAdapter(
            client=self._client_for(token),
            resource_type=sync_state.resource_type,
            account_id=sync_state.account_id,
            zone_id=sync_state.zone_id,
        )

    def _token_for(self, sync_state: SyncState) -> str:
        ref = sync_state.credentials_ref
        if ref is not None:
            token = self.credentials.get(ref.name)
            if not token:
                raise ConfigError(f"Credentials {ref.name!r} for {sync_state.name} are not configured")
            return token
        if not self.config.api_token:
            raise ConfigError(f"No API token configured for {sync_state.name}")
        return self.config.api_token

    def _client_for(self, token: str) -> CloudflareApiClient:
        with self._lock:
            client = self._clients.get(token)
            if client is None:
                client = CloudflareApiClient(
                    api_token=token,
                    base_url=self.config.url,
                    timeout=self.config.timeout,
                    max_retries=self.config.max_retries,
                )
                self._clients[token] = client
            return client
