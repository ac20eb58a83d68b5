"""Base class for callback sinks."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..enumeration import CBEventType


class BaseCallbackHandler(ABC):
    """A sink receiving event and trace notifications from a `CallbackManager`.

    Sinks declare per-kind ignore sets. Ignored events are not delivered to
    this sink but still take part in the trace tree.
    """

    def __init__(
        self,
        event_starts_to_ignore: Optional[List[CBEventType]] = None,
        event_ends_to_ignore: Optional[List[CBEventType]] = None,
    ):
        self.event_starts_to_ignore: frozenset = frozenset(event_starts_to_ignore or [])
        self.event_ends_to_ignore: frozenset = frozenset(event_ends_to_ignore or [])

    @abstractmethod
    def on_event_start(
        self,
        event_type: CBEventType,
        payload: Optional[Dict[str, Any]] = None,
        event_id: str = "",
        parent_id: str = "",
        **kwargs: Any,
    ) -> str:
        """Called when an event starts; returns the event id."""

    @abstractmethod
    def on_event_end(
        self,
        event_type: CBEventType,
        payload: Optional[Dict[str, Any]] = None,
        event_id: str = "",
        **kwargs: Any,
    ) -> None:
        """Called when an event ends."""

    @abstractmethod
    def start_trace(self, trace_id: Optional[str] = None) -> None:
        """Called when the outermost trace starts."""

    @abstractmethod
    def end_trace(self, trace_id: Optional[str] = None, trace_map: Optional[Dict[str, List[str]]] = None) -> None:
        """Called when the outermost trace ends, with the parent-to-children map."""
