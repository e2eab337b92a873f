"""
Reconcile Dispatcher - Keyed work queue feeding a worker pool.

Requests are level-triggered and keyed by SyncState name:

- a name is never processed by two workers at once;
- enqueueing a name that is already waiting is a no-op;
- enqueueing a name while it is being processed marks it dirty, and it runs
  once more after the current pass;
- different names run concurrently.

Delayed requeues (from ReconcileResult.requeue_after) use timers; only the
earliest pending timer per name is kept.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from ...core.ports import SyncStateRepositoryPort
from .engine import ReconcileResult


DEFAULT_WORKERS = 4

# Delay before retrying a reconcile that raised instead of returning a result
DEFAULT_FAILURE_DELAY = 10.0


class ReconcileDispatcher:
    """
    Delivers reconcile requests to a reconcile function.

    Usage:
        dispatcher = ReconcileDispatcher(engine.reconcile, workers=4)
        dispatcher.watch(repository)
        dispatcher.start()
    """

    def __init__(
        self,
        reconcile: Callable[[str], ReconcileResult],
        workers: int = DEFAULT_WORKERS,
        failure_delay: float = DEFAULT_FAILURE_DELAY,
    ):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self._reconcile = reconcile
        self.workers = workers
        self.failure_delay = failure_delay

        self._executor: Optional[ThreadPoolExecutor] = None
        self._stopped = False
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._queued: set[str] = set()
        self._active: set[str] = set()
        self._dirty: set[str] = set()
        self._timers: dict[str, tuple[float, threading.Timer]] = {}

        self.processed = 0
        self.logger = logging.getLogger("ReconcileDispatcher")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the workers and submit anything enqueued before start."""
        with self._lock:
            if self._executor is not None:
                return
            self._stopped = False
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers,
                thread_name_prefix="unisync-reconcile",
            )
            backlog = sorted(self._queued)
            for name in backlog:
                self._executor.submit(self._process, name)

        self.logger.info(f"Started with {self.workers} worker(s), {len(backlog)} queued")

    def stop(self, wait: bool = True) -> None:
        """Cancel timers and shut the pool down."""
        with self._lock:
            self._stopped = True
            timers = [timer for _, timer in self._timers.values()]
            self._timers.clear()
            executor = self._executor
            self._executor = None

        for timer in timers:
            timer.cancel()
        if executor is not None:
            executor.shutdown(wait=wait)

        with self._lock:
            self._queued.clear()
            self._dirty.clear()
            self._idle.notify_all()
        self.logger.info("Stopped")

    def watch(self, repository: SyncStateRepositoryPort) -> None:
        """Enqueue every SyncState the repository reports as changed."""
        repository.watch(self.enqueue)

    # -------------------------------------------------------------------------
    # Queueing
    # -------------------------------------------------------------------------

    def enqueue(self, name: str) -> None:
        """Request a reconcile of ``name`` as soon as possible."""
        with self._lock:
            if self._stopped:
                return
            if name in self._active:
                self._dirty.add(name)
                return
            if name in self._queued:
                return
            self._submit(name)

    def enqueue_after(self, name: str, delay: float) -> None:
        """Request a reconcile of ``name`` after ``delay`` seconds."""
        if delay <= 0:
            self.enqueue(name)
            return

        due = time.monotonic() + delay
        with self._lock:
            if self._stopped:
                return
            existing = self._timers.get(name)
            if existing is not None:
                if existing[0] <= due:
                    return
                existing[1].cancel()

            timer = threading.Timer(delay, self._fire, args=(name,))
            timer.daemon = True
            self._timers[name] = (due, timer)
            timer.start()

    def pending(self) -> int:
        """Names queued or being processed (timers not included)."""
        with self._lock:
            return len(self._queued | self._active)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until nothing is queued or being processed.

        Returns:
            False if the timeout expired first.
        """
        with self._idle:
            return self._idle.wait_for(
                lambda: not self._queued and not self._active,
                timeout=timeout,
            )

    # -------------------------------------------------------------------------
    # Workers
    # -------------------------------------------------------------------------

    def _fire(self, name: str) -> None:
        with self._lock:
            self._timers.pop(name, None)
        self.enqueue(name)

    def _process(self, name: str) -> None:
        with self._lock:
            if name not in self._queued:
                # Dropped by stop()
                return
            self._queued.discard(name)
            self._active.add(name)

        try:
            result = self._reconcile(name)
        except Exception as e:
            self.logger.error(f"Reconcile of {name} failed: {e}")
            result = ReconcileResult.after(self.failure_delay, "failed")

        with self._lock:
            self._active.discard(name)
            self.processed += 1
            rerun = name in self._dirty
            self._dirty.discard(name)
            # Immediate requeues are queued before the idle notification
            if not self._stopped and (rerun or (result.requeue and result.requeue_after <= 0)):
                self._submit(name)
            self._idle.notify_all()

        if not rerun and result.requeue and result.requeue_after > 0:
            self.enqueue_after(name, result.requeue_after)

    def _submit(self, name: str) -> None:
        # Caller holds self._lock
        self._queued.add(name)
        if self._executor is not None:
            self._executor.submit(self._process, name)
