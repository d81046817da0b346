"""Cancellation token with an optional deadline.

One ``Deadline`` drives a whole collection run. Confirmation polls use
short-lived children created with ``child(timeout)``: a child expires on
its own schedule, never outlives its parent, and is cancelled together
with it.
"""

import threading
import time
from typing import List, Optional

from .exceptions import Cancelled


class Deadline:
    def __init__(self, timeout: Optional[float] = None, parent: Optional["Deadline"] = None):
        self._event = threading.Event()
        self._parent = parent
        self._children: List["Deadline"] = []
        self._lock = threading.Lock()

        expires_at = time.monotonic() + timeout if timeout is not None else None
        if parent is not None and parent.expires_at is not None:
            if expires_at is None or parent.expires_at < expires_at:
                expires_at = parent.expires_at
        self.expires_at = expires_at

        if parent is not None:
            parent._attach(self)

    def _attach(self, child: "Deadline"):
        with self._lock:
            self._children.append(child)
        if self.cancelled:
            child.cancel()

    def _detach(self, child: "Deadline"):
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    def child(self, timeout: float) -> "Deadline":
        return Deadline(timeout, parent=self)

    def close(self):
        """Drop a finished child from its parent."""
        if self._parent is not None:
            self._parent._detach(self)

    def __enter__(self) -> "Deadline":
        return self

    def __exit__(self, *exc_info):
        self.close()

    def cancel(self):
        self._event.set()
        with self._lock:
            children = list(self._children)
        for child in children:
            child.cancel()

    @property
    def bounded(self) -> bool:
        return self.expires_at is not None

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    @property
    def cancelled(self) -> bool:
        # a parent running out of time counts as cancellation for its children
        if self._event.is_set():
            return True
        if self._parent is None:
            return False
        return self._parent.cancelled or self._parent.expired

    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    def check(self):
        """Raise ``Cancelled`` once this token is cancelled or a parent has ended.

        A token running out of its own time is not cancellation; callers
        that care look at ``expired``.
        """
        if self.cancelled:
            raise Cancelled("operation cancelled")

    def timeout_for(self, default: float) -> float:
        """Network timeout for one call: ``default`` capped by the time left."""
        remaining = self.remaining()
        if remaining is None:
            return default
        return max(0.001, min(default, remaining))

    def sleep(self, seconds: float) -> bool:
        """Wait up to ``seconds``; return early (True) when cancelled."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        if seconds > 0:
            self._event.wait(seconds)
        return self.cancelled
