from __future__ import annotations
import threading
import time
from typing import Optional


class CancellationToken:
    """
    Thread-safe cancellation flag shared between the event loop and worker threads.

    A token trips when cancel() is called, when its own deadline passes, or when
    any parent token trips. Workers poll `cancelled`; nothing is interrupted for them.
    """

    def __init__(self, timeout: Optional[float] = None, parent: Optional["CancellationToken"] = None):
        self._event = threading.Event()
        self._parent = parent
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def expired(self) -> bool:
        """True when this token's own deadline has passed."""
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        if self._event.is_set() or self.expired:
            return True
        return self._parent is not None and self._parent.cancelled

    def remaining(self) -> Optional[float]:
        """Seconds left before the nearest deadline in the chain, or None if unbounded."""
        candidates = []
        if self._deadline is not None:
            candidates.append(max(0.0, self._deadline - time.monotonic()))
        if self._parent is not None:
            parent_remaining = self._parent.remaining()
            if parent_remaining is not None:
                candidates.append(parent_remaining)
        return min(candidates) if candidates else None

    def child(self, timeout: Optional[float] = None) -> "CancellationToken":
        return CancellationToken(timeout=timeout, parent=self)
