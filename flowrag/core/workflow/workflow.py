"""Event-driven workflow engine.

A `Workflow` maps event type tags to handlers (steps). A run seeds a queue
with a start event; a dispatcher dequeues events and submits every matching
step to a worker pool. Steps registered for the same event run in parallel
and their output events are queued in the order the steps finish. The first
stop event dequeued ends the run; events emitted after that are dropped.

    ```python
    wf = Workflow(name="rag")
    wf.handle([START_EVENT_TYPE], retrieve)
    wf.handle([RetrievedEvent.event_type], answer, with_retries(2))
    result = wf.run("what is flowrag?")
    result.result
    ```
"""

import contextvars
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .context import Context
from .events import (
    ErrorEvent,
    Event,
    EventFactory,
    HumanResponseEvent,
    InputRequiredEvent,
    StartEvent,
    StartEventData,
    StopEvent,
    as_event_list,
    new_error_event,
    new_start_event,
)
from .retry_policy import RetryPolicy, StepConfig, StepOption, build_step_config
from .state_store import StateStore
from ..context import CancelToken
from ..enumeration import CBEventType, EventPayload
from ..exceptions import (
    CancelledError,
    ConfigInvalidError,
    FlowRagError,
    HandlerFailedError,
    WorkflowTimeoutError,
)
from ..schema import WorkflowConfig
from ..utils import Timer, format_duration

Handler = Callable[[Context, Event], Any]

_UNSET = object()
_END = object()


class Step:
    """A registered handler with the event types it accepts and its options."""

    def __init__(self, event_types: List[str], handler: Handler, config: StepConfig):
        self.event_types: List[str] = list(event_types)
        self.handler: Handler = handler
        self.config: StepConfig = config
        self.name: str = config.name or getattr(handler, "__name__", "") or "step"

    def __repr__(self) -> str:
        return f"Step(name={self.name!r}, event_types={self.event_types})"


class WorkflowResult(BaseModel):
    """Outcome of a run. `result` is the payload of the stop event, if one was reached."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_id: str = Field(default="")
    final_event: Optional[Event] = Field(default=None)
    result: Any = Field(default=None)
    state: StateStore = Field(default_factory=StateStore)
    error: Optional[BaseException] = Field(default=None)
    duration: float = Field(default=0.0)
    events_processed: int = Field(default=0)

    @property
    def iso_duration(self) -> str:
        return format_duration(self.duration)

    @property
    def is_success(self) -> bool:
        return self.error is None


def _event_types_of(event_types: Iterable[Union[str, EventFactory]]) -> List[str]:
    result = []
    for event_type in event_types:
        result.append(event_type.event_type if isinstance(event_type, EventFactory) else str(event_type))
    return result


class Workflow:
    """Directed dispatch graph of steps.

    Args:
        name: Name used in logs and traces.
        timeout: Wall-clock limit of a run in seconds; `None` or 0 disables it.
        num_workers: Worker pool size per run, defaults to the number of CPUs.
        retry_policy: Default retry policy for steps that do not set one.
        callback_manager: Optional `CallbackManager`; each step invocation emits
            a `workflow_step` event inside a per-run trace.
        verbose: Log dispatch at INFO instead of DEBUG.
        poll_interval: How often an idle dispatcher re-checks cancellation and timeout.
    """

    def __init__(
        self,
        name: str = "workflow",
        timeout: Optional[float] = 60.0,
        num_workers: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
        callback_manager=None,
        verbose: bool = False,
        poll_interval: float = 0.05,
    ):
        if num_workers is not None and num_workers < 1:
            raise ConfigInvalidError(f"workflow={name} num_workers={num_workers} must be >= 1")
        self.name: str = name
        self.timeout: Optional[float] = timeout
        self.num_workers: int = num_workers or WorkflowConfig().num_workers
        self.retry_policy: Optional[RetryPolicy] = retry_policy
        self.callback_manager = callback_manager
        self.verbose: bool = verbose
        self.poll_interval: float = poll_interval

        self._steps: List[Step] = []
        self._handlers: Dict[str, List[Step]] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: WorkflowConfig, name: str = "workflow", callback_manager=None) -> "Workflow":
        retry_policy = RetryPolicy.from_config(config.retry_policy) if config.retry_policy else None
        return cls(
            name=name,
            timeout=config.timeout,
            num_workers=config.num_workers,
            retry_policy=retry_policy,
            callback_manager=callback_manager,
            verbose=config.verbose,
        )

    def _log(self, message: str):
        logger.log("INFO" if self.verbose else "DEBUG", message)

    # ---------- registration ----------

    def handle(
        self,
        event_types: Iterable[Union[str, EventFactory]],
        handler: Handler,
        *options: StepOption,
        config: Optional[StepConfig] = None,
    ) -> "Workflow":
        """Register `handler` for every tag in `event_types`.

        Several handlers may share a tag; each matching event is delivered to
        all of them.
        """
        types = _event_types_of(event_types)
        if not types:
            raise ConfigInvalidError(f"workflow={self.name} handle() needs at least one event type")
        step = Step(types, handler, build_step_config(*options, config=config))

        with self._lock:
            self._steps.append(step)
            for event_type in types:
                self._handlers.setdefault(event_type, []).append(step)
        return self

    def handle_typed(
        self,
        factory: EventFactory,
        handler: Callable[[Context, Any], Any],
        *options: StepOption,
        config: Optional[StepConfig] = None,
    ) -> "Workflow":
        """Register a handler receiving the typed payload of `factory` events."""

        def _typed(ctx: Context, event: Event):
            data, ok = factory.extract(event)
            if not ok:
                return None
            return handler(ctx, data)

        _typed.__name__ = getattr(handler, "__name__", factory.debug_label)
        return self.handle([factory.event_type], _typed, *options, config=config)

    def get_steps(self) -> List[Step]:
        with self._lock:
            return list(self._steps)

    def get_handlers_for_event(self, event_type: str) -> List[Step]:
        with self._lock:
            return list(self._handlers.get(event_type, []))

    # ---------- running ----------

    def start(
        self,
        start: Any = None,
        timeout: Any = _UNSET,
        cancel_token: Optional[CancelToken] = None,
        stream: bool = False,
    ) -> "WorkflowHandler":
        """Create a run handle. The run begins on `run_in_background()`, `result()` or stream iteration."""
        start_event = start if isinstance(start, Event) else new_start_event(start)
        run_timeout = self.timeout if timeout is _UNSET else timeout
        return WorkflowHandler(self, start_event, run_timeout, cancel_token, stream)

    def run(self, start: Any = None, timeout: Any = _UNSET, cancel_token: Optional[CancelToken] = None) -> WorkflowResult:
        """Run to completion.

        Args:
            start: A start `Event`, or the input wrapped into a `workflow.start` event.
            timeout: Overrides the workflow timeout for this run.
            cancel_token: Caller token; tripping it cancels the run.

        Returns:
            The `WorkflowResult` of a run ended by a stop event (or by draining its queue).

        Raises:
            CancelledError: The run was cancelled.
            WorkflowTimeoutError: The run exceeded its timeout.
            HandlerFailedError: An error event reached the dispatcher with no handler for it.
            Each error carries the partial result in `partial_result`.
        """
        return self.start(start, timeout=timeout, cancel_token=cancel_token).result()

    def run_stream(
        self,
        start: Any = None,
        timeout: Any = _UNSET,
        cancel_token: Optional[CancelToken] = None,
    ) -> "WorkflowStream":
        """Lazily stream every dispatched event; the run starts on first iteration."""
        return self.start(start, timeout=timeout, cancel_token=cancel_token, stream=True).stream()


class WorkflowHandler:
    """One run of a workflow.

    The dispatcher runs on its own thread. Callers may inject events (for
    example a human response to an input-required event) with `send_event`,
    cancel the run, and wait for its result.
    """

    def __init__(
        self,
        workflow: Workflow,
        start_event: Event,
        timeout: Optional[float],
        cancel_token: Optional[CancelToken],
        stream: bool,
    ):
        self.workflow: Workflow = workflow
        self.start_event: Event = start_event
        self.timeout: Optional[float] = timeout
        self.run_id: str = uuid4().hex
        self.cancel_token: CancelToken = cancel_token.child() if cancel_token is not None else CancelToken()

        self._queue: "queue.Queue[Event]" = queue.Queue()
        self._stream_queue: Optional[queue.Queue] = queue.Queue() if stream else None
        self._stop_on: Set[str] = set()
        self._lock = threading.Lock()
        self._in_flight: int = 0
        self._finished: bool = False
        self._awaiting_input: bool = False
        self._done = threading.Event()
        self._started: bool = False
        self._result: Optional[WorkflowResult] = None
        self._sequence: int = 0

        callback_manager = workflow.callback_manager
        trace_state = callback_manager.new_trace_state() if callback_manager is not None else None
        self.ctx: Context = Context(
            workflow_name=workflow.name,
            run_id=self.run_id,
            cancel_token=self.cancel_token,
            send_fn=self.send_event,
            timeout=timeout,
            trace_state=trace_state,
        )
        self._semaphores: Dict[int, threading.BoundedSemaphore] = {
            id(step): threading.BoundedSemaphore(step.config.num_workers) for step in workflow.get_steps()
        }
        self._enqueue(start_event)

    def _enqueue(self, event: Event):
        # caller holds _lock, except during construction
        self._sequence += 1
        event.sequence_id = self._sequence
        self._queue.put(event)

    # ---------- caller api ----------

    def run_in_background(self) -> "WorkflowHandler":
        with self._lock:
            if self._started:
                return self
            self._started = True
        ctx = contextvars.copy_context()
        thread = threading.Thread(
            target=ctx.run,
            args=(self._run,),
            name=f"{self.workflow.name}-{self.run_id[:8]}",
            daemon=True,
        )
        thread.start()
        return self

    def send_event(self, event: Event) -> bool:
        """Queue `event` on this run; returns False when the run has finished."""
        with self._lock:
            if self._finished:
                return False
            if HumanResponseEvent.include(event):
                self._awaiting_input = False
            self._enqueue(event)
        return True

    def cancel(self):
        self.cancel_token.cancel(CancelledError(f"workflow={self.workflow.name} run_id={self.run_id} cancelled"))

    def is_done(self) -> bool:
        return self._done.is_set()

    @property
    def state(self) -> StateStore:
        return self.ctx.state

    def result(self) -> WorkflowResult:
        """Start the run if needed and block until it ends; raises the run error if any."""
        self.run_in_background()
        self._done.wait()
        if self._result.error is not None:
            raise self._result.error
        return self._result

    def wait(self, timeout: Optional[float] = None) -> Optional[WorkflowResult]:
        """Wait up to `timeout` seconds and return the result without raising, or None if still running."""
        self.run_in_background()
        if not self._done.wait(timeout):
            return None
        return self._result

    def stream(self) -> "WorkflowStream":
        if self._stream_queue is None:
            raise ConfigInvalidError(f"workflow={self.workflow.name} run was not started with stream=True")
        return WorkflowStream(self, self._stream_queue)

    # ---------- dispatcher ----------

    def _run(self):
        result: Optional[WorkflowResult] = None
        try:
            result = self._traced_dispatch()
        except Exception as e:
            logger.exception(f"workflow={self.workflow.name} run_id={self.run_id} dispatcher failed")
            result = self._failed_result(e)
        finally:
            if result is None:
                result = self._failed_result(CancelledError(f"workflow={self.workflow.name} dispatcher interrupted"))
            self._publish(result)

    def _traced_dispatch(self) -> WorkflowResult:
        callback_manager = self.workflow.callback_manager
        if callback_manager is None:
            return self._dispatch()

        with callback_manager.use_trace_state(self.ctx.trace_state):
            callback_manager.start_trace(f"workflow.{self.workflow.name}")
            try:
                return self._dispatch()
            finally:
                callback_manager.end_trace(f"workflow.{self.workflow.name}")

    def _failed_result(self, e: BaseException) -> WorkflowResult:
        if isinstance(e, FlowRagError):
            error = e
        else:
            error = HandlerFailedError(f"workflow={self.workflow.name} dispatcher failed", cause=e)
        with self._lock:
            self._finished = True
        self.cancel_token.cancel(error)

        result = WorkflowResult(run_id=self.run_id, state=self.ctx.state, error=error)
        error.partial_result = result
        self._emit(new_error_event(error, step="", event=None))
        return result

    def _publish(self, result: WorkflowResult):
        self._result = result
        self._done.set()
        self._emit(_END)

    def _dispatch(self) -> WorkflowResult:
        name = self.workflow.name
        start_time = time.time()
        deadline = start_time + self.timeout if self.timeout else None
        final_event: Optional[Event] = None
        error: Optional[FlowRagError] = None
        processed = 0

        executor = ThreadPoolExecutor(max_workers=self.workflow.num_workers, thread_name_prefix=f"{name}-worker")
        logger.info(f"workflow={name} run_id={self.run_id} start")
        try:
            with Timer(f"workflow.{name}"):
                while True:
                    if self.cancel_token.is_cancelled:
                        error = self.cancel_token.error or CancelledError(f"workflow={name} cancelled")
                        break
                    if deadline is not None and time.time() > deadline:
                        error = WorkflowTimeoutError(f"workflow={name} timed out after {self.timeout}s")
                        self.cancel_token.cancel(error)
                        break

                    try:
                        event = self._queue.get(timeout=self.workflow.poll_interval)
                    except queue.Empty:
                        if self.cancel_token.is_cancelled or (deadline is not None and time.time() > deadline):
                            continue
                        if self._drained():
                            logger.warning(f"workflow={name} run_id={self.run_id} queue drained without a stop event")
                            break
                        continue

                    processed += 1
                    self._emit(event)
                    self.workflow._log(f"workflow={name} dequeue event={event.event_type} id={event.event_id}")

                    if StopEvent.include(event):
                        final_event = event
                        break

                    steps = self.workflow.get_handlers_for_event(event.event_type)
                    if ErrorEvent.include(event) and not steps:
                        final_event = event
                        error = self._run_error_of(event)
                        break

                    if event.event_type in self._stop_on:
                        final_event = event
                        break

                    if InputRequiredEvent.include(event):
                        with self._lock:
                            self._awaiting_input = True
                    elif HumanResponseEvent.include(event):
                        with self._lock:
                            self._awaiting_input = False

                    if not steps:
                        self.workflow._log(f"workflow={name} no handler for event={event.event_type}")
                        continue

                    for step in steps:
                        with self._lock:
                            self._in_flight += 1
                        step_ctx = contextvars.copy_context()
                        executor.submit(step_ctx.run, self._invoke, step, event)

                if error is None and final_event is None and self.cancel_token.is_cancelled:
                    error = self.cancel_token.error or CancelledError(f"workflow={name} cancelled")
        finally:
            with self._lock:
                self._finished = True
            if error is not None:
                self.cancel_token.cancel(error)
            executor.shutdown(wait=False, cancel_futures=True)

        result = WorkflowResult(
            run_id=self.run_id,
            final_event=final_event,
            result=self._result_of(final_event),
            state=self.ctx.state,
            error=error,
            duration=time.time() - start_time,
            events_processed=processed,
        )
        if error is not None:
            error.partial_result = result
            logger.warning(f"workflow={name} run_id={self.run_id} failed: {error}")
            if final_event is None or not ErrorEvent.include(final_event):
                self._emit(new_error_event(error, step="", event=None))
        else:
            logger.info(f"workflow={name} run_id={self.run_id} done events={processed} "
                        f"duration={result.iso_duration}")

        return result

    def _drained(self) -> bool:
        with self._lock:
            if self._in_flight == 0 and self._queue.empty() and not self._awaiting_input:
                self._finished = True
                return True
        return False

    def _emit(self, item):
        if self._stream_queue is not None:
            self._stream_queue.put(item)

    @staticmethod
    def _result_of(final_event: Optional[Event]) -> Any:
        if final_event is None:
            return None
        data, ok = StopEvent.extract(final_event)
        if ok:
            return data.result
        return final_event.data

    @staticmethod
    def _run_error_of(event: Event) -> FlowRagError:
        data, ok = ErrorEvent.extract(event)
        if not ok:
            return HandlerFailedError(f"error event={event.event_id} carries no error data", event=event)
        if isinstance(data.error, FlowRagError):
            return data.error
        return HandlerFailedError(f"step={data.step} failed", cause=data.error, step=data.step, event=data.event)

    # ---------- workers ----------

    def _invoke(self, step: Step, event: Event):
        events: List[Event] = []
        try:
            events = self._call_step(step, event)
        except Exception as e:
            events = self._failure_events(step, event, e)
        finally:
            self._complete(event, events)

    def _failure_events(self, step: Step, event: Event, error: Exception) -> List[Event]:
        if self.cancel_token.is_cancelled:
            logger.info(f"workflow={self.workflow.name} step={step.name} stopped by cancellation: {error}")
            return []

        logger.exception(f"workflow={self.workflow.name} step={step.name} event={event.event_type} failed")
        if step.config.suppress_errors:
            return []

        if not isinstance(error, HandlerFailedError):
            error = HandlerFailedError(f"step={step.name} failed", cause=error, step=step.name, event=event)
        return [new_error_event(error, step=step.name, event=event)]

    def _complete(self, source: Event, events: List[Event]):
        with self._lock:
            self._in_flight -= 1
            if self._finished:
                if events:
                    self.workflow._log(f"workflow={self.workflow.name} discard {len(events)} events after finish")
                return
            for event in events:
                if event.parent_event_id is None:
                    event.parent_event_id = source.event_id
                self._enqueue(event)

    def _acquire(self, step: Step) -> threading.BoundedSemaphore:
        semaphore = self._semaphores.get(id(step))
        if semaphore is None:
            with self._lock:
                semaphore = self._semaphores.setdefault(id(step), threading.BoundedSemaphore(step.config.num_workers))
        while not semaphore.acquire(timeout=self.workflow.poll_interval):
            self.cancel_token.raise_if_cancelled()
        return semaphore

    def _call_step(self, step: Step, event: Event) -> List[Event]:
        policy = step.config.retry_policy or self.workflow.retry_policy
        attempts = policy.max_retries + 1 if policy is not None else 1
        delay = policy.initial_delay if policy is not None else 0.0

        semaphore = self._acquire(step)
        try:
            for attempt in range(attempts):
                self.cancel_token.raise_if_cancelled()
                try:
                    return self._call_once(step, event)
                except Exception as e:
                    if policy is None or attempt == attempts - 1 or not policy.should_retry(e):
                        raise
                    logger.warning(f"workflow={self.workflow.name} step={step.name} attempt={attempt + 1} "
                                   f"max_retries={policy.max_retries} failed, retry in {delay}s: {e}")
                    if self.cancel_token.wait(delay):
                        self.cancel_token.raise_if_cancelled()
                    delay = policy.next_delay(delay)
        finally:
            semaphore.release()
        return []

    def _call_once(self, step: Step, event: Event) -> List[Event]:
        callback_manager = self.workflow.callback_manager
        if callback_manager is None:
            return as_event_list(step.handler(self.ctx, event))

        payload = {
            EventPayload.ADDITIONAL_KWARGS: {
                "step": step.name,
                "event_type": event.event_type,
                "event_id": event.event_id,
            },
        }
        with callback_manager.event(CBEventType.WORKFLOW_STEP, payload) as cb_event:
            events = as_event_list(step.handler(self.ctx, event))
            cb_event.on_end({EventPayload.RESPONSE: [e.event_type for e in events]})
            return events


class WorkflowStream:
    """Lazy, non-restartable iterator over the events of one run.

    Events arrive in dispatch order. The sequence ends after the stop event,
    or after an error event when the run failed. Closing the stream early
    cancels the run.
    """

    def __init__(self, handler: WorkflowHandler, events: queue.Queue):
        self.handler: WorkflowHandler = handler
        self._events: queue.Queue = events
        self._closed: bool = False

    def until(self, *event_types: Union[str, EventFactory]) -> "WorkflowStream":
        """End the run successfully once an event of one of `event_types` is dispatched."""
        self.handler._stop_on.update(_event_types_of(event_types))
        return self

    def __iter__(self):
        return self

    def __next__(self) -> Event:
        if self._closed:
            raise StopIteration
        self.handler.run_in_background()
        item = self._events.get()
        if item is _END:
            self._closed = True
            raise StopIteration
        return item

    def to_list(self) -> List[Event]:
        return list(self)

    def close(self):
        if not self._closed:
            self._closed = True
            if not self.handler.is_done():
                self.handler.cancel()

    def send_event(self, event: Event) -> bool:
        return self.handler.send_event(event)

    @property
    def error(self) -> Optional[BaseException]:
        result = self.result
        return result.error if result is not None else None

    @property
    def result(self) -> Optional[WorkflowResult]:
        return self.handler.wait(0) if self.handler.is_done() else None

    def __enter__(self) -> "WorkflowStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class WorkflowBuilder:
    """Fluent construction of a `Workflow`."""

    def __init__(self, **workflow_kwargs):
        self.workflow = Workflow(**workflow_kwargs)

    def on(
        self,
        event_types: Iterable[Union[str, EventFactory]],
        handler: Handler,
        *options: StepOption,
        config: Optional[StepConfig] = None,
    ) -> "WorkflowBuilder":
        self.workflow.handle(event_types, handler, *options, config=config)
        return self

    def on_event(self, event_type: Union[str, EventFactory], handler: Handler, *options: StepOption, **kwargs):
        return self.on([event_type], handler, *options, **kwargs)

    def on_typed(self, factory: EventFactory, handler: Callable[[Context, Any], Any], *options: StepOption, **kwargs):
        self.workflow.handle_typed(factory, handler, *options, **kwargs)
        return self

    def on_start(self, handler: Callable[[Context, StartEventData], Any], *options: StepOption, **kwargs):
        """`handler` receives the `StartEventData` payload of the start event."""
        return self.on_typed(StartEvent, handler, *options, **kwargs)

    def build(self) -> Workflow:
        return self.workflow
