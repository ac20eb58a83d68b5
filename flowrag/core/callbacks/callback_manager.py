"""Callback manager: trace tree bookkeeping and fan-out to sinks.

Events are attached to the current top of the run's trace stack unless an
explicit parent is given. Non-leaf events push themselves onto the stack
while open; leaf kinds (by default chunking, llm and embedding) never do,
so they can not have children. When no trace is open, a default trace is
started automatically and closed again once its last open event ends.
Frames recorded under such default traces accumulate until an explicit
trace starts.
"""

import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar
from uuid import uuid4

from loguru import logger

from .base_handler import BaseCallbackHandler
from .schema import BASE_TRACE_EVENT, DEFAULT_TRACE_ID, LEAF_EVENTS, EventStats, TraceFrame
from .trace_state import ACTIVE_TRACE_STATE, TraceState
from ..enumeration import CBEventType, EventPayload
from ..utils import ReadWriteLock, format_duration

T = TypeVar("T")


class EventContext:
    """Handle of one open event, returned by `CallbackManager.event`.

    `on_end` is idempotent; the first call wins and records the duration.
    """

    def __init__(self, manager: "CallbackManager", event_type: CBEventType, event_id: str):
        self.manager = manager
        self.event_type: CBEventType = event_type
        self.event_id: str = event_id
        self.started: bool = False
        self.finished: bool = False
        self._time_start: float = 0.0

    def on_start(self, payload: Optional[Dict[str, Any]] = None, parent_id: str = "", **kwargs):
        if self.started:
            return
        self.started = True
        self._time_start = time.perf_counter()
        self.manager.on_event_start(self.event_type, payload, event_id=self.event_id, parent_id=parent_id, **kwargs)

    def on_end(self, payload: Optional[Dict[str, Any]] = None, **kwargs):
        if not self.started or self.finished:
            return
        self.finished = True
        payload = dict(payload or {})
        payload.setdefault(EventPayload.DURATION, format_duration(time.perf_counter() - self._time_start))
        self.manager.on_event_end(self.event_type, payload, event_id=self.event_id, **kwargs)


class CallbackManager:
    """Maintain a trace tree and broadcast event and trace notifications to sinks.

    The sink list is shared and guarded by a reader-writer lock. Trace state
    is run-scoped: the active `TraceState` is taken from a context variable
    (see `use_trace_state`) and falls back to a manager-wide default.

    Args:
        handlers: Initial sinks.
        leaf_event_types: Event kinds that never become parents. Defaults to
            chunking, llm and embedding.
        root_trace_id: Id every top-level frame hangs from.
        default_trace_id: Trace id used when an event starts outside any trace.
    """

    def __init__(
        self,
        handlers: Optional[List[BaseCallbackHandler]] = None,
        leaf_event_types: Optional[Iterable[CBEventType]] = None,
        root_trace_id: str = BASE_TRACE_EVENT,
        default_trace_id: str = DEFAULT_TRACE_ID,
    ):
        self._handlers: List[BaseCallbackHandler] = list(handlers or [])
        self._handlers_lock = ReadWriteLock()
        self.leaf_event_types: frozenset = (
            frozenset(leaf_event_types) if leaf_event_types is not None else LEAF_EVENTS
        )
        self.root_trace_id: str = root_trace_id
        self.default_trace_id: str = default_trace_id
        self._default_state = TraceState(root_id=root_trace_id)

    # ---------- sinks ----------

    @property
    def handlers(self) -> List[BaseCallbackHandler]:
        with self._handlers_lock.read_lock():
            return list(self._handlers)

    def add_handler(self, handler: BaseCallbackHandler):
        with self._handlers_lock.write_lock():
            if handler not in self._handlers:
                self._handlers.append(handler)

    def remove_handler(self, handler: BaseCallbackHandler):
        with self._handlers_lock.write_lock():
            if handler in self._handlers:
                self._handlers.remove(handler)

    def set_handlers(self, handlers: List[BaseCallbackHandler]):
        with self._handlers_lock.write_lock():
            self._handlers = list(handlers)

    # ---------- trace state ----------

    def new_trace_state(self) -> TraceState:
        return TraceState(root_id=self.root_trace_id)

    @property
    def trace_state(self) -> TraceState:
        return ACTIVE_TRACE_STATE.get() or self._default_state

    @contextmanager
    def use_trace_state(self, state: TraceState):
        """Make `state` the active trace state for the current context."""
        token = ACTIVE_TRACE_STATE.set(state)
        try:
            yield state
        finally:
            ACTIVE_TRACE_STATE.reset(token)

    def _resolve_parent(self, state: TraceState, parent_id: str) -> str:
        if not parent_id:
            return state.top()

        with state.lock:
            frame = state.frames.get(parent_id)
        if frame is not None and frame.event_type in self.leaf_event_types:
            logger.warning(
                f"parent_id={parent_id} is a leaf event={frame.event_type.value}, attach to {frame.parent_id}",
            )
            return frame.parent_id
        return parent_id

    # ---------- events ----------

    def on_event_start(
        self,
        event_type: CBEventType,
        payload: Optional[Dict[str, Any]] = None,
        event_id: Optional[str] = None,
        parent_id: Optional[str] = None,
        **kwargs: Any,
    ) -> str:
        """Record an event start, deliver it to non-ignoring sinks and return its id."""
        state = self.trace_state
        event_id = event_id or str(uuid4())

        with state.lock:
            self._start_trace(state, self.default_trace_id, auto=True)
            state.open_events += 1

        parent_id = self._resolve_parent(state, parent_id or "")
        state.add_child(parent_id, event_id)
        with state.lock:
            state.frames[event_id] = TraceFrame(
                id=event_id,
                parent_id=parent_id,
                event_type=event_type,
                payload=dict(payload or {}),
            )

        for handler in self.handlers:
            if event_type not in handler.event_starts_to_ignore:
                handler.on_event_start(event_type, payload, event_id=event_id, parent_id=parent_id, **kwargs)

        if event_type not in self.leaf_event_types:
            state.push(event_id)
        return event_id

    def on_event_end(
        self,
        event_type: CBEventType,
        payload: Optional[Dict[str, Any]] = None,
        event_id: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        """Seal the event frame and deliver the end to non-ignoring sinks."""
        state = self.trace_state
        event_id = event_id or state.top()

        with state.lock:
            frame = state.frames.get(event_id)
            if frame is not None and frame.end_ts is None:
                frame.end_ts = time.time()
                frame.payload.update(payload or {})
                state.open_events -= 1

        for handler in self.handlers:
            if event_type not in handler.event_ends_to_ignore:
                handler.on_event_end(event_type, payload, event_id=event_id, **kwargs)

        if event_type not in self.leaf_event_types:
            state.pop(event_id)

        self._close_auto_trace(state)

    @contextmanager
    def event(
        self,
        event_type: CBEventType,
        payload: Optional[Dict[str, Any]] = None,
        event_id: Optional[str] = None,
        parent_id: Optional[str] = None,
    ):
        """Scoped event: start on enter, end on every exit path.

        On an exception the end payload carries it under `exception` and the
        exception propagates.
        """
        event = EventContext(self, event_type, event_id=event_id or str(uuid4()))
        event.on_start(payload, parent_id=parent_id or "")
        try:
            yield event
        except Exception as e:
            event.on_end({EventPayload.EXCEPTION: e})
            raise
        finally:
            event.on_end()

    def with_event(
        self,
        event_type: CBEventType,
        payload: Optional[Dict[str, Any]],
        fn: Callable[..., T],
        *args,
        **kwargs,
    ) -> T:
        """Run `fn(*args, **kwargs)` inside a scoped event; its result becomes the `response` end payload."""
        with self.event(event_type, payload) as event:
            result = fn(*args, **kwargs)
            event.on_end({EventPayload.RESPONSE: result})
            return result

    # ---------- traces ----------

    def _start_trace(self, state: TraceState, trace_id: str, auto: bool):
        """Open a trace on `state`.

        An auto trace only opens when none is open. Consecutive auto traces
        share one tree, so frames recorded outside explicit traces stay
        inspectable until the next explicit trace starts.
        """
        with state.lock:
            if auto and state.trace_depth > 0:
                return
            first = state.trace_depth == 0
            state.trace_depth += 1
            if first:
                state.reset(trace_id, keep_frames=auto and state.auto_tree)
                state.auto_started = auto
                state.auto_tree = auto
                for handler in self.handlers:
                    handler.start_trace(trace_id)

        if not first:
            state.add_child(state.top(), trace_id)
            state.push(trace_id)

    def _close_auto_trace(self, state: TraceState):
        with state.lock:
            if state.auto_started and state.open_events <= 0 and state.trace_depth == 1:
                self.end_trace(state.trace_id)

    def start_trace(self, trace_id: Optional[str] = None) -> None:
        """Open a trace. The outermost one resets the tree and notifies sinks; nested ones push their id."""
        self._start_trace(self.trace_state, trace_id or self.default_trace_id, auto=False)

    def end_trace(self, trace_id: Optional[str] = None, trace_map: Optional[Dict[str, List[str]]] = None) -> None:
        """Close a trace. Sinks receive `end_trace` with the trace map when the outermost one closes."""
        state = self.trace_state
        with state.lock:
            if state.trace_depth == 0:
                logger.warning(f"end_trace trace_id={trace_id} called without an open trace")
                return
            state.trace_depth -= 1
            last = state.trace_depth == 0

        if not last:
            if trace_id:
                state.pop(trace_id)
            return

        trace_id = trace_id or state.trace_id
        final_map = trace_map if trace_map is not None else state.snapshot_trace_map()
        for handler in self.handlers:
            handler.end_trace(trace_id, final_map)

        with state.lock:
            state.auto_started = False
        state.set_stack((state.root_id,))

    @contextmanager
    def as_trace(self, trace_id: Optional[str] = None):
        """Scoped trace. An exception inside emits an `exception` event before the trace closes."""
        self.start_trace(trace_id)
        try:
            yield self
        except Exception as e:
            exception_id = self.on_event_start(CBEventType.EXCEPTION, {EventPayload.EXCEPTION: e})
            self.on_event_end(CBEventType.EXCEPTION, {EventPayload.EXCEPTION: e}, event_id=exception_id)
            raise
        finally:
            self.end_trace(trace_id)

    def with_trace(self, trace_id: Optional[str], fn: Callable[..., T], *args, **kwargs) -> T:
        with self.as_trace(trace_id):
            return fn(*args, **kwargs)

    # ---------- inspection ----------

    def get_trace_map(self) -> Dict[str, List[str]]:
        return self.trace_state.snapshot_trace_map()

    def get_frames(self) -> Dict[str, TraceFrame]:
        state = self.trace_state
        with state.lock:
            return {k: v.model_copy() for k, v in state.frames.items()}

    def get_event_stats(self, event_type: Optional[CBEventType] = None) -> Dict[CBEventType, EventStats]:
        """Timing aggregates per event type over sealed frames of the active trace."""
        durations: Dict[CBEventType, List[float]] = {}
        for frame in self.get_frames().values():
            if event_type is not None and frame.event_type != event_type:
                continue
            if frame.duration is not None:
                durations.setdefault(frame.event_type, []).append(frame.duration)

        return {
            event_type: EventStats(
                total_secs=sum(values),
                average_secs=sum(values) / len(values),
                total_count=len(values),
            )
            for event_type, values in durations.items()
        }
