"""Run-scoped trace state.

A `TraceState` owns one trace tree: the parent-to-children map, the frame
records and the count of open traces. The stack of open parents is kept in
a context variable keyed by the state id, so every thread or copied
`contextvars.Context` running on behalf of a run has its own view of the
stack while sharing the tree. Work submitted through
`contextvars.copy_context().run` inherits the submitter's stack.
"""

import threading
from contextvars import ContextVar
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from .schema import BASE_TRACE_EVENT, TraceFrame

_TRACE_STACKS: ContextVar[Optional[Dict[str, Tuple[str, ...]]]] = ContextVar("flowrag_trace_stacks", default=None)
ACTIVE_TRACE_STATE: ContextVar[Optional["TraceState"]] = ContextVar("flowrag_active_trace_state", default=None)


class TraceState:
    """Trace tree plus per-context stack for a single run."""

    def __init__(self, root_id: str = BASE_TRACE_EVENT):
        self.state_id: str = uuid4().hex
        self.root_id: str = root_id
        self.lock = threading.RLock()

        self.trace_id: Optional[str] = None
        self.trace_depth: int = 0
        self.auto_started: bool = False
        # frames belong to auto-started traces only; the next auto trace keeps them
        self.auto_tree: bool = False
        self.open_events: int = 0
        self.trace_map: Dict[str, List[str]] = {}
        self.frames: Dict[str, TraceFrame] = {}

    @property
    def stack(self) -> Tuple[str, ...]:
        stacks = _TRACE_STACKS.get() or {}
        return stacks.get(self.state_id, (self.root_id,))

    def set_stack(self, stack: Tuple[str, ...]):
        stacks = dict(_TRACE_STACKS.get() or {})
        stacks[self.state_id] = stack
        _TRACE_STACKS.set(stacks)

    def push(self, item: str):
        self.set_stack(self.stack + (item,))

    def pop(self, item: str):
        """Pop `item` and anything opened above it; unknown items leave the stack untouched."""
        stack = self.stack
        if item in stack[1:]:
            idx = len(stack) - 1 - stack[::-1].index(item)
            self.set_stack(stack[:idx])

    def top(self) -> str:
        return self.stack[-1]

    def reset(self, trace_id: str, keep_frames: bool = False):
        with self.lock:
            self.trace_id = trace_id
            if not keep_frames:
                self.trace_map = {}
                self.frames = {}
            self.open_events = 0
        self.set_stack((self.root_id,))

    def add_child(self, parent_id: str, child_id: str):
        with self.lock:
            self.trace_map.setdefault(parent_id, []).append(child_id)

    def snapshot_trace_map(self) -> Dict[str, List[str]]:
        with self.lock:
            return {k: list(v) for k, v in self.trace_map.items()}
