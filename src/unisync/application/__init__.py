"""
Application Layer - Use cases and orchestration.

This layer contains:
- sync/: SyncState store, reconciliation engine and its helpers
- refs/: Reference resolution
"""

from .refs import Reference, ReferenceResolver
from .sync import (
    ConfigExtractor,
    ConflictRetryer,
    ContentHasher,
    Debouncer,
    ReconcileDispatcher,
    ReconcileResult,
    StatusMirror,
    SyncEngine,
    SyncPlan,
    SyncStateStore,
)

__all__ = [
    "Reference",
    "ReferenceResolver",
    "ConfigExtractor",
    "ConflictRetryer",
    "ContentHasher",
    "Debouncer",
    "ReconcileDispatcher",
    "ReconcileResult",
    "StatusMirror",
    "SyncEngine",
    "SyncPlan",
    "SyncStateStore",
]
