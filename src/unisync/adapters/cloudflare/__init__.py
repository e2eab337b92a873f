"""
Cloudflare Adapter - Implementation of ExternalApiPort for the Cloudflare API.

- CloudflareApiClient: HTTP client (requests session, envelope, error mapping)
- CloudflareResourceAdapter: One resource kind under an account or zone
- CloudflareApiFactory: Picks credentials and scope per SyncState
"""

from .adapter import ENDPOINTS, CloudflareResourceAdapter
from .client import CloudflareApiClient
from .factory import CloudflareApiFactory

__all__ = [
    "ENDPOINTS",
    "CloudflareApiClient",
    "CloudflareResourceAdapter",
    "CloudflareApiFactory",
]
