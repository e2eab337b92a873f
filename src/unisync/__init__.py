"""
unisync - Aggregate declared configuration fragments into shared external
resources and keep them in sync with the Cloudflare API.

Layout:
- core/: Domain model, ports and exceptions
- application/: SyncState store, sync engine, dispatcher, reference resolution
- adapters/: Cloudflare API, repositories, configuration
- cli/: Command line interface
"""

__version__ = "0.1.0"
