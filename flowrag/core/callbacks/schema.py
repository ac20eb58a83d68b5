"""Records produced by the callback manager."""

import time
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from ..enumeration import CBEventType

BASE_TRACE_EVENT = "root"
DEFAULT_TRACE_ID = "llama-index"
TIMESTAMP_FORMAT = "%m/%d/%Y, %H:%M:%S.%f"

LEAF_EVENTS = frozenset({CBEventType.CHUNKING, CBEventType.LLM, CBEventType.EMBEDDING})


class CBEvent(BaseModel):
    """A start or end notification as delivered to sinks."""

    event_type: CBEventType = Field(...)
    payload: Optional[Dict[str, Any]] = Field(default=None)
    time: str = Field(default_factory=lambda: datetime.now().strftime(TIMESTAMP_FORMAT))
    id_: str = Field(default_factory=lambda: str(uuid4()))


class EventStats(BaseModel):
    """Aggregate timings for one event type."""

    total_secs: float = Field(default=0.0)
    average_secs: float = Field(default=0.0)
    total_count: int = Field(default=0)


class TraceFrame(BaseModel):
    """One node of the trace tree: an event from start to end."""

    id: str = Field(...)
    parent_id: str = Field(...)
    event_type: CBEventType = Field(...)
    payload: Dict[str, Any] = Field(default_factory=dict)
    start_ts: float = Field(default_factory=time.time)
    end_ts: Optional[float] = Field(default=None)

    @property
    def is_sealed(self) -> bool:
        return self.end_ts is not None

    @property
    def duration(self) -> Optional[float]:
        if self.end_ts is None:
            return None
        return self.end_ts - self.start_ts
