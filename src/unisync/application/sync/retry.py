"""
Conflict Retry - Read-modify-write under optimistic concurrency.

One combinator handles every persisted mutation: fetch the latest version,
apply a pure mutation, persist, and on a version conflict start over with a
fresh fetch. Conflicts are expected to be transient, so there is no backoff.
"""

import logging
from typing import Callable, Optional, TypeVar

from ...core.domain import SyncState
from ...core.ports import ConflictError, SyncStateNotFoundError, SyncStateRepositoryPort


T = TypeVar("T")

DEFAULT_CONFLICT_ATTEMPTS = 5

logger = logging.getLogger("ConflictRetryer")


def retry_on_conflict(
    fetch: Callable[[], T],
    mutate: Callable[[T], Optional[bool]],
    persist: Callable[[T], T],
    attempts: int = DEFAULT_CONFLICT_ATTEMPTS,
) -> T:
    """
    Run fetch -> mutate -> persist until it succeeds without a conflict.

    Args:
        fetch: Returns the latest version of the record
        mutate: Applies the change in place; returning False means
            "nothing to change" and skips the persist
        persist: Writes the record, raising ConflictError on a stale version
        attempts: Maximum number of full cycles

    Returns:
        The persisted record (or the fetched one if mutate declined)

    Raises:
        ConflictError: When every attempt conflicted
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    last_conflict: Optional[ConflictError] = None
    for attempt in range(1, attempts + 1):
        current = fetch()
        if mutate(current) is False:
            return current
        try:
            return persist(current)
        except ConflictError as e:
            last_conflict = e
            logger.debug(f"Conflict on attempt {attempt}/{attempts}: {e}")

    raise last_conflict


class ConflictRetryer:
    """
    retry_on_conflict bound to a SyncState repository.

    Usage:
        retryer = ConflictRetryer(repository)
        state = retryer.update("gateway-rule-pending-a", lambda s: s.add_finalizer(F))
    """

    def __init__(self, repository: SyncStateRepositoryPort, attempts: int = DEFAULT_CONFLICT_ATTEMPTS):
        self.repository = repository
        self.attempts = attempts

    def update(self, name: str, mutate: Callable[[SyncState], Optional[bool]]) -> SyncState:
        """
        Apply ``mutate`` to the latest copy of ``name`` and persist it.

        Raises:
            SyncStateNotFoundError: If the record disappears.
            ConflictError: When attempts are exhausted.
        """
        def fetch() -> SyncState:
            state = self.repository.get(name)
            if state is None:
                raise SyncStateNotFoundError(f"SyncState {name} not found", name=name)
            return state

        return retry_on_conflict(fetch, mutate, self.repository.update, self.attempts)
