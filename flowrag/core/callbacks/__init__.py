"""Callback tracing: manager, run-scoped trace state and sinks."""

from .base_handler import BaseCallbackHandler
from .callback_manager import CallbackManager, EventContext
from .event_collector_handler import EventCollectorHandler
from .logging_handler import LoggingHandler
from .schema import BASE_TRACE_EVENT, DEFAULT_TRACE_ID, LEAF_EVENTS, CBEvent, EventStats, TraceFrame
from .token_counting_handler import TokenCountingHandler
from .trace_state import ACTIVE_TRACE_STATE, TraceState

__all__ = [
    "BaseCallbackHandler",
    "CallbackManager",
    "EventContext",
    "EventCollectorHandler",
    "LoggingHandler",
    "TokenCountingHandler",
    "BASE_TRACE_EVENT",
    "DEFAULT_TRACE_ID",
    "LEAF_EVENTS",
    "CBEvent",
    "EventStats",
    "TraceFrame",
    "ACTIVE_TRACE_STATE",
    "TraceState",
]
