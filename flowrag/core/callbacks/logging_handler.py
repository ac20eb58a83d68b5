"""Callback sink that writes events to loguru."""

import time
from typing import Any, Dict, List, Optional

from loguru import logger

from .base_handler import BaseCallbackHandler
from ..enumeration import CBEventType
from ..utils import format_duration


class LoggingHandler(BaseCallbackHandler):
    """Log event and trace boundaries.

    Non-verbose mode logs one DEBUG line per boundary. Verbose mode logs at
    INFO and includes payload keys and, at trace end, the trace map.
    """

    def __init__(self, verbose: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.verbose: bool = verbose
        self._start_times: Dict[str, float] = {}

    @property
    def level(self) -> str:
        return "INFO" if self.verbose else "DEBUG"

    def on_event_start(
        self,
        event_type: CBEventType,
        payload: Optional[Dict[str, Any]] = None,
        event_id: str = "",
        parent_id: str = "",
        **kwargs: Any,
    ) -> str:
        self._start_times[event_id] = time.perf_counter()
        if self.verbose:
            logger.log(self.level, f"event={event_type.value} start id={event_id} parent={parent_id}")
            for key, value in (payload or {}).items():
                logger.log(self.level, f"  {getattr(key, 'value', key)}: {value}")
        else:
            logger.log(self.level, f"event={event_type.value} started")
        return event_id

    def on_event_end(
        self,
        event_type: CBEventType,
        payload: Optional[Dict[str, Any]] = None,
        event_id: str = "",
        **kwargs: Any,
    ) -> None:
        start = self._start_times.pop(event_id, None)
        duration = format_duration(time.perf_counter() - start) if start is not None else format_duration(0)
        if self.verbose:
            logger.log(self.level, f"event={event_type.value} end id={event_id} duration={duration}")
            for key, value in (payload or {}).items():
                logger.log(self.level, f"  {getattr(key, 'value', key)}: {value}")
        else:
            logger.log(self.level, f"event={event_type.value} completed duration={duration}")

    def start_trace(self, trace_id: Optional[str] = None) -> None:
        logger.log(self.level, f"trace={trace_id} start")

    def end_trace(self, trace_id: Optional[str] = None, trace_map: Optional[Dict[str, List[str]]] = None) -> None:
        logger.log(self.level, f"trace={trace_id} end")
        if self.verbose and trace_map:
            for parent, children in trace_map.items():
                logger.log(self.level, f"  {parent} -> {children}")
