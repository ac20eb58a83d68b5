"""Cooperative cancellation shared by long-running operations.

Workflow runs, extractor batches and object-index builds accept a
`CancelToken` and stop at their next checkpoint once it trips.
"""

import threading
from typing import Optional

from ..exceptions import CancelledError, FlowRagError


class CancelToken:
    """A one-way cancellation flag with an optional parent.

    A child token reports cancelled when either it or any ancestor was
    cancelled, so a run can derive its own token from a caller token and
    still cancel itself independently (for example on timeout).
    """

    def __init__(self, parent: Optional["CancelToken"] = None):
        self._event = threading.Event()
        self._parent: Optional["CancelToken"] = parent
        self._error: Optional[FlowRagError] = None
        self._lock = threading.Lock()

    def cancel(self, error: Optional[FlowRagError] = None):
        """Trip the token. The first `error` given wins and is what `raise_if_cancelled` raises."""
        with self._lock:
            if self._error is None:
                self._error = error or CancelledError("operation cancelled")
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.is_cancelled

    @property
    def error(self) -> Optional[FlowRagError]:
        if self._event.is_set():
            return self._error
        if self._parent is not None:
            return self._parent.error
        return None

    def raise_if_cancelled(self):
        if self.is_cancelled:
            raise self.error or CancelledError("operation cancelled")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to `timeout` seconds, returning early (True) once cancelled."""
        if self._parent is None:
            return self._event.wait(timeout)

        step = 0.05
        remaining = timeout
        while not self.is_cancelled:
            if remaining is not None:
                if remaining <= 0:
                    return False
                self._event.wait(min(step, remaining))
                remaining -= step
            else:
                self._event.wait(step)
        return True

    def child(self) -> "CancelToken":
        return CancelToken(parent=self)
