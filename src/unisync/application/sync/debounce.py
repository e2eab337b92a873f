"""
Debouncer - Per-identity cooldown gate for bursty change storms.

Every registration marks its SyncState pending for a short window; each new
mark pushes the deadline out again. Reconcile calls that arrive while an
identity is pending return immediately and are redelivered once the window
has passed, so only the settled configuration reaches the external API.
"""

import logging
import threading
import time
from typing import Callable, Optional


DEFAULT_DEBOUNCE_WINDOW = 0.5


class Debouncer:
    """
    Identity -> deadline table with expiry.

    Thread-safe. The clock is injectable for tests and must be monotonic.
    """

    def __init__(
        self,
        window: float = DEFAULT_DEBOUNCE_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the debouncer.

        Args:
            window: Default cooldown in seconds
            clock: Monotonic time source
        """
        if window < 0:
            raise ValueError("Debounce window must not be negative")
        self.window = window
        self._clock = clock
        self._deadlines: dict[str, float] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger("Debouncer")

    def mark_pending(self, identity: str, window: Optional[float] = None) -> float:
        """
        Mark ``identity`` pending, resetting its deadline.

        Returns:
            The new deadline on the debouncer's clock.
        """
        delay = self.window if window is None else window
        with self._lock:
            deadline = self._clock() + delay
            self._deadlines[identity] = deadline
        self.logger.debug(f"Debouncing {identity} for {delay:.2f}s")
        return deadline

    def is_pending(self, identity: str) -> bool:
        """True while the identity's window is still open."""
        return self.remaining(identity) > 0

    def remaining(self, identity: str) -> float:
        """Seconds left in the identity's window (0 if none)."""
        with self._lock:
            deadline = self._deadlines.get(identity)
            if deadline is None:
                return 0.0
            left = deadline - self._clock()
            if left <= 0:
                del self._deadlines[identity]
                return 0.0
            return left

    def cancel(self, identity: str) -> bool:
        """Drop a pending window. Returns True if one was open."""
        with self._lock:
            deadline = self._deadlines.pop(identity, None)
        return deadline is not None and deadline > self._clock()

    def pending_count(self) -> int:
        """Number of identities with an open window."""
        with self._lock:
            now = self._clock()
            expired = [k for k, d in self._deadlines.items() if d <= now]
            for key in expired:
                del self._deadlines[key]
            return len(self._deadlines)

    def flush(self) -> None:
        """Close every window immediately (shutdown, tests)."""
        with self._lock:
            self._deadlines.clear()
