"""Workflow events and typed event factories.

An `Event` is a type tag plus a payload. An `EventFactory` binds a tag to a
payload model so handlers can build and read events without inspecting
`data` by hand:

    ```python
    QueryEvent = custom_event_factory("query", QueryData)
    event = QueryEvent.with_data(query="hi")
    data, ok = QueryEvent.extract(event)
    ```
"""

from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import TypeMismatchError

T = TypeVar("T")

START_EVENT_TYPE = "workflow.start"
STOP_EVENT_TYPE = "workflow.stop"
ERROR_EVENT_TYPE = "workflow.error"
INPUT_REQUIRED_EVENT_TYPE = "workflow.input_required"
HUMAN_RESPONSE_EVENT_TYPE = "workflow.human_response"


class Event(BaseModel):
    """A dispatched message.

    `parent_event_id` is the id of the event whose handler emitted this one;
    it is filled in by the dispatcher and left empty for start and injected
    events. `sequence_id` is stamped when the event is queued on a run and
    grows strictly in queue order within that run.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    event_type: str = Field(...)
    data: Any = Field(default=None)
    event_id: str = Field(default_factory=lambda: uuid4().hex)
    parent_event_id: Optional[str] = Field(default=None)
    sequence_id: Optional[int] = Field(default=None)

    def __repr__(self) -> str:
        return f"Event(event_type={self.event_type!r}, event_id={self.event_id!r}, sequence_id={self.sequence_id})"


class StartEventData(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    input: Any = Field(default=None)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class StopEventData(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    result: Any = Field(default=None)
    reason: str = Field(default="")


class ErrorEventData(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    error: BaseException = Field(...)
    step: str = Field(default="")
    event: Optional[Event] = Field(default=None)


class InputRequiredEventData(BaseModel):
    prompt: str = Field(default="")
    prefix: str = Field(default="")


class HumanResponseEventData(BaseModel):
    response: str = Field(default="")


class EventFactory(Generic[T]):
    """Build and recognise events of one type tag.

    Args:
        event_type: Tag carried by every event the factory builds.
        payload_cls: Optional payload class. When given, `with_data(**kwargs)`
            builds the payload and `extract` only accepts instances of it.
        debug_label: Short name used in logs.
    """

    def __init__(self, event_type: str, payload_cls: Optional[Type[T]] = None, debug_label: str = ""):
        self.event_type: str = event_type
        self.payload_cls: Optional[Type[T]] = payload_cls
        self.debug_label: str = debug_label or event_type

    def with_data(self, data: Optional[T] = None, **kwargs) -> Event:
        if data is None and self.payload_cls is not None:
            data = self.payload_cls(**kwargs)
        return Event(event_type=self.event_type, data=data)

    def include(self, event: Optional[Event]) -> bool:
        return event is not None and event.event_type == self.event_type

    def extract(self, event: Optional[Event]) -> Tuple[Optional[T], bool]:
        """Return `(payload, True)` when `event` belongs to this factory, else `(None, False)`."""
        if not self.include(event):
            return None, False
        if self.payload_cls is not None and not isinstance(event.data, self.payload_cls):
            return None, False
        return event.data, True

    def __repr__(self) -> str:
        return f"EventFactory({self.debug_label})"


StartEvent: EventFactory[StartEventData] = EventFactory(START_EVENT_TYPE, StartEventData, "start")
StopEvent: EventFactory[StopEventData] = EventFactory(STOP_EVENT_TYPE, StopEventData, "stop")
ErrorEvent: EventFactory[ErrorEventData] = EventFactory(ERROR_EVENT_TYPE, ErrorEventData, "error")
InputRequiredEvent: EventFactory[InputRequiredEventData] = EventFactory(
    INPUT_REQUIRED_EVENT_TYPE,
    InputRequiredEventData,
    "input_required",
)
HumanResponseEvent: EventFactory[HumanResponseEventData] = EventFactory(
    HUMAN_RESPONSE_EVENT_TYPE,
    HumanResponseEventData,
    "human_response",
)


def custom_event_factory(name: str, payload_cls: Optional[Type[T]] = None) -> EventFactory[T]:
    return EventFactory(f"custom.{name}", payload_cls, name)


def new_event(event_type: str, data: Any = None) -> Event:
    return Event(event_type=event_type, data=data)


def new_start_event(input: Any = None, metadata: Optional[Dict[str, Any]] = None) -> Event:  # noqa: A002
    return StartEvent.with_data(input=input, metadata=metadata or {})


def new_stop_event(result: Any = None, reason: str = "") -> Event:
    return StopEvent.with_data(result=result, reason=reason)


def new_error_event(error: BaseException, step: str = "", event: Optional[Event] = None) -> Event:
    return ErrorEvent.with_data(error=error, step=step, event=event)


def new_input_required_event(prompt: str, prefix: str = "") -> Event:
    return InputRequiredEvent.with_data(prompt=prompt, prefix=prefix)


def new_human_response_event(response: str) -> Event:
    return HumanResponseEvent.with_data(response=response)


def as_event_list(result: Any) -> List[Event]:
    """Normalise a handler's return value (None, one event or a sequence of events) to a list."""
    if result is None:
        return []
    if isinstance(result, Event):
        return [result]
    if isinstance(result, (list, tuple)):
        events = list(result)
        for event in events:
            if not isinstance(event, Event):
                raise TypeMismatchError(f"handler returned {type(event).__name__}, expected Event")
        return events
    raise TypeMismatchError(f"handler returned {type(result).__name__}, expected Event or list of Event")
