"""Callback sink that keeps every delivered event for later inspection."""

import threading
from typing import Any, Dict, List, Optional

from .base_handler import BaseCallbackHandler
from .schema import CBEvent
from ..enumeration import CBEventType


class EventCollectorHandler(BaseCallbackHandler):
    """Record start and end events in delivery order, plus finished trace maps."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._lock = threading.Lock()
        self.start_events: List[CBEvent] = []
        self.end_events: List[CBEvent] = []
        self.parent_ids: Dict[str, str] = {}
        self.traces: List[Dict[str, Any]] = []

    def on_event_start(
        self,
        event_type: CBEventType,
        payload: Optional[Dict[str, Any]] = None,
        event_id: str = "",
        parent_id: str = "",
        **kwargs: Any,
    ) -> str:
        with self._lock:
            self.start_events.append(CBEvent(event_type=event_type, payload=payload, id_=event_id))
            self.parent_ids[event_id] = parent_id
        return event_id

    def on_event_end(
        self,
        event_type: CBEventType,
        payload: Optional[Dict[str, Any]] = None,
        event_id: str = "",
        **kwargs: Any,
    ) -> None:
        with self._lock:
            self.end_events.append(CBEvent(event_type=event_type, payload=payload, id_=event_id))

    def start_trace(self, trace_id: Optional[str] = None) -> None:
        pass

    def end_trace(self, trace_id: Optional[str] = None, trace_map: Optional[Dict[str, List[str]]] = None) -> None:
        with self._lock:
            self.traces.append({"trace_id": trace_id, "trace_map": trace_map or {}})

    def get_events_by_type(self, event_type: CBEventType) -> List[CBEvent]:
        with self._lock:
            return [e for e in self.start_events if e.event_type == event_type]

    def clear(self):
        with self._lock:
            self.start_events = []
            self.end_events = []
            self.parent_ids = {}
            self.traces = []
