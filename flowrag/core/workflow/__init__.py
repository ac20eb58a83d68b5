"""Event-driven workflow engine.

Handlers are registered against event type tags; a run dispatches events to
them on a worker pool until a stop event is dequeued.
"""

from .context import Context
from .events import (
    ERROR_EVENT_TYPE,
    HUMAN_RESPONSE_EVENT_TYPE,
    INPUT_REQUIRED_EVENT_TYPE,
    START_EVENT_TYPE,
    STOP_EVENT_TYPE,
    ErrorEvent,
    ErrorEventData,
    Event,
    EventFactory,
    HumanResponseEvent,
    HumanResponseEventData,
    InputRequiredEvent,
    InputRequiredEventData,
    StartEvent,
    StartEventData,
    StopEvent,
    StopEventData,
    as_event_list,
    custom_event_factory,
    new_error_event,
    new_event,
    new_human_response_event,
    new_input_required_event,
    new_start_event,
    new_stop_event,
)
from .middleware import (
    apply_middleware,
    chain_handlers,
    conditional_handler,
    fallback_middleware,
    filter_events,
    logging_middleware,
    map_events,
    pipeline,
    recovery_middleware,
    timing_middleware,
)
from .retry_policy import (
    RetryPolicy,
    StepConfig,
    build_step_config,
    with_exponential_backoff,
    with_num_workers,
    with_retries,
    with_retry_policy,
    with_step_name,
    with_suppressed_errors,
)
from .state_store import StateStore
from .workflow import Step, Workflow, WorkflowBuilder, WorkflowHandler, WorkflowResult, WorkflowStream

__all__ = [
    "Context",
    "ERROR_EVENT_TYPE",
    "HUMAN_RESPONSE_EVENT_TYPE",
    "INPUT_REQUIRED_EVENT_TYPE",
    "START_EVENT_TYPE",
    "STOP_EVENT_TYPE",
    "ErrorEvent",
    "ErrorEventData",
    "Event",
    "EventFactory",
    "HumanResponseEvent",
    "HumanResponseEventData",
    "InputRequiredEvent",
    "InputRequiredEventData",
    "StartEvent",
    "StartEventData",
    "StopEvent",
    "StopEventData",
    "as_event_list",
    "custom_event_factory",
    "new_error_event",
    "new_event",
    "new_human_response_event",
    "new_input_required_event",
    "new_start_event",
    "new_stop_event",
    "apply_middleware",
    "chain_handlers",
    "conditional_handler",
    "fallback_middleware",
    "filter_events",
    "logging_middleware",
    "map_events",
    "pipeline",
    "recovery_middleware",
    "timing_middleware",
    "RetryPolicy",
    "StepConfig",
    "build_step_config",
    "with_exponential_backoff",
    "with_num_workers",
    "with_retries",
    "with_retry_policy",
    "with_step_name",
    "with_suppressed_errors",
    "StateStore",
    "Step",
    "Workflow",
    "WorkflowBuilder",
    "WorkflowHandler",
    "WorkflowResult",
    "WorkflowStream",
]
