"""
Cancellation context for Janitarr.
A small cancellable scope with an optional deadline, passed to every
call that talks to a media server.
"""

import threading
import time
from typing import Optional


class CancelledError(Exception):
    """Raised when work is abandoned because its context was cancelled."""
    pass


class DeadlineExceeded(CancelledError):
    """Raised when a context's deadline passes before the work finishes."""
    pass


class Context:
    """
    Cancellable scope with an optional deadline.

    Children inherit cancellation from their parent, never the other way
    round. A child's deadline is never later than its parent's.

        ctx = Context.background()
        server_ctx = ctx.with_timeout(15)
        ...
        ctx.cancel()   # server_ctx.cancelled is now True as well
    """

    # Granularity for wait() so parent cancellation is noticed promptly
    POLL_INTERVAL = 0.05

    def __init__(self, parent: Optional['Context'] = None,
                 deadline: Optional[float] = None):
        self._parent = parent
        self._event = threading.Event()
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

    @classmethod
    def background(cls) -> 'Context':
        """Root context: never cancelled unless cancel() is called."""
        return cls()

    def with_timeout(self, seconds: float) -> 'Context':
        """Child context that expires after `seconds`."""
        return Context(parent=self, deadline=time.monotonic() + seconds)

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """True once cancelled explicitly, via a parent, or by deadline."""
        return self._explicitly_cancelled() or self.expired

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def _explicitly_cancelled(self) -> bool:
        ctx = self
        while ctx is not None:
            if ctx._event.is_set():
                return True
            ctx = ctx._parent
        return False

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None when there is none."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self):
        """Raise if the context is no longer live."""
        if self._explicitly_cancelled():
            raise CancelledError("operation cancelled")
        if self.expired:
            raise DeadlineExceeded("deadline exceeded")

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; return True if cancelled meanwhile."""
        end = time.monotonic() + seconds
        while True:
            if self.cancelled:
                return True
            left = end - time.monotonic()
            if left <= 0:
                return False
            self._event.wait(min(left, self.POLL_INTERVAL))
