"""
Sync Module - Aggregation and reconciliation of shared external resources.
"""

from .debounce import DEFAULT_DEBOUNCE_WINDOW, Debouncer
from .dispatcher import ReconcileDispatcher
from .engine import SYNC_FINALIZER, ReconcileResult, SyncEngine, SyncPlan
from .extraction import ConfigExtractor
from .hashing import ContentHasher, compute_config_hash
from .requeue import RequeuePolicy
from .retry import DEFAULT_CONFLICT_ATTEMPTS, ConflictRetryer, retry_on_conflict
from .status import StatusMirror
from .store import SyncStateStore

__all__ = [
    "DEFAULT_DEBOUNCE_WINDOW",
    "Debouncer",
    "ReconcileDispatcher",
    "SYNC_FINALIZER",
    "ReconcileResult",
    "SyncEngine",
    "SyncPlan",
    "ConfigExtractor",
    "ContentHasher",
    "compute_config_hash",
    "RequeuePolicy",
    "DEFAULT_CONFLICT_ATTEMPTS",
    "ConflictRetryer",
    "retry_on_conflict",
    "StatusMirror",
    "SyncStateStore",
]
