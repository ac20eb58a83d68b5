"""Per-run context handed to every workflow handler."""

import threading
import time
from typing import Any, Callable, List, Optional

from .events import Event
from .state_store import StateStore
from ..context import BaseContext, CancelToken


class Context(BaseContext):
    """Execution context of a single workflow run.

    Handlers use it to read and write shared state, inject extra events into
    the run queue and observe cancellation. `lock` is a re-entrant mutex
    handlers may take around compound state updates.

    Attributes:
        workflow_name: Name of the running workflow.
        run_id: Unique id of this run.
        state: The run's `StateStore`.
        cancel_token: Trips on cancellation or timeout.
        trace_state: Callback trace state of the run, if a callback manager is attached.
    """

    def __init__(
        self,
        workflow_name: str,
        run_id: str,
        cancel_token: CancelToken,
        send_fn: Callable[[Event], bool],
        timeout: Optional[float] = None,
        state: Optional[StateStore] = None,
        trace_state: Any = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.workflow_name: str = workflow_name
        self.run_id: str = run_id
        self.cancel_token: CancelToken = cancel_token
        self.state: StateStore = state if state is not None else StateStore()
        self.trace_state = trace_state
        self.timeout: Optional[float] = timeout
        self.start_time: float = time.time()
        self.lock = threading.RLock()
        self._send_fn = send_fn

    def send_event(self, event: Event) -> bool:
        """Queue `event` on the run; returns False once the run is finished."""
        return self._send_fn(event)

    def send_events(self, events: List[Event]):
        for event in events:
            self.send_event(event)

    def cancel(self, error=None):
        self.cancel_token.cancel(error)

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_token.is_cancelled

    @property
    def is_timed_out(self) -> bool:
        return self.timeout is not None and self.timeout > 0 and time.time() - self.start_time > self.timeout

    def get_value(self, key: str, default: Any = None) -> Any:
        return self.state.get(key, default)

    def set_value(self, key: str, value: Any):
        self.state.set(key, value)

    def delete_value(self, key: str):
        self.state.delete(key)
