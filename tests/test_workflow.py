import threading
import time

import pytest
from pydantic import BaseModel

from flowrag.core.callbacks import CallbackManager, EventCollectorHandler
from flowrag.core.context import CancelToken
from flowrag.core.enumeration import CBEventType, ErrorKind
from flowrag.core.exceptions import (
    CancelledError,
    HandlerFailedError,
    LLMFailedError,
    WorkflowTimeoutError,
    error_kind_of,
)
from flowrag.core.schema import RetryPolicyConfig, WorkflowConfig
from flowrag.core.workflow import (
    ERROR_EVENT_TYPE,
    HUMAN_RESPONSE_EVENT_TYPE,
    START_EVENT_TYPE,
    ErrorEvent,
    InputRequiredEvent,
    StopEvent,
    Workflow,
    WorkflowBuilder,
    custom_event_factory,
    new_human_response_event,
    new_input_required_event,
    new_stop_event,
    with_exponential_backoff,
    with_step_name,
    with_suppressed_errors,
)

EventA = custom_event_factory("a")
EventB = custom_event_factory("b")
EventC = custom_event_factory("c")


class Progress(BaseModel):
    step: int = 0


ProgressEvent = custom_event_factory("progress", Progress)


class CallCounter:
    def __init__(self):
        self.count = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self.count += 1
            return self.count


def test_start_to_stop():
    wf = Workflow(name="echo", timeout=5)
    wf.handle([START_EVENT_TYPE], lambda ctx, event: new_stop_event(event.data.input.upper()))

    result = wf.run("hi")

    assert result.result == "HI"
    assert result.is_success
    assert result.events_processed == 2
    assert result.iso_duration.startswith("PT")


def test_fan_out_yields_exactly_one_stop():
    wf = Workflow(name="fan-out", timeout=5, num_workers=4)
    wf.handle([START_EVENT_TYPE], lambda ctx, e: EventA.with_data())
    wf.handle([EventA], lambda ctx, e: [EventB.with_data(), EventC.with_data()])
    wf.handle([EventB], lambda ctx, e: new_stop_event("B"))
    wf.handle([EventC], lambda ctx, e: new_stop_event("C"))

    stream = wf.run_stream()
    events = stream.to_list()

    assert sum(1 for e in events if StopEvent.include(e)) == 1
    assert StopEvent.include(events[-1])
    assert stream.result.result in ("B", "C")
    assert stream.error is None

    seen = set()
    for event in events:
        if event.event_type != START_EVENT_TYPE:
            assert event.parent_event_id in seen
        seen.add(event.event_id)


def test_handler_retried_until_success():
    calls = CallCounter()

    def flaky(ctx, event):
        if calls.increment() <= 2:
            raise LLMFailedError("temporary")
        return new_stop_event("ok")

    wf = Workflow(name="retry", timeout=5)
    wf.handle([START_EVENT_TYPE], flaky, with_exponential_backoff(3, initial_delay=0.01))

    assert wf.run().result == "ok"
    assert calls.count == 3


def test_always_failing_handler_runs_max_retries_plus_one_times():
    calls = CallCounter()

    def broken(ctx, event):
        calls.increment()
        raise LLMFailedError("down")

    wf = Workflow(name="broken", timeout=5)
    wf.handle([START_EVENT_TYPE], broken, with_exponential_backoff(2, initial_delay=0.01), with_step_name("call_llm"))

    with pytest.raises(HandlerFailedError) as exc_info:
        wf.run()

    assert calls.count == 3
    assert exc_info.value.step == "call_llm"
    assert error_kind_of(exc_info.value) == ErrorKind.LLM_FAILED
    assert exc_info.value.partial_result is not None
    assert exc_info.value.partial_result.error is exc_info.value


def test_error_event_can_be_handled():
    def on_error(ctx, event):
        data, ok = ErrorEvent.extract(event)
        assert ok
        return new_stop_event(f"recovered from {data.step}")

    wf = Workflow(name="recover", timeout=5)
    wf.handle([START_EVENT_TYPE], lambda ctx, e: 1 / 0, with_step_name("divide"))
    wf.handle([ERROR_EVENT_TYPE], on_error)

    assert wf.run().result == "recovered from divide"


def test_error_stream_ends_with_error_event():
    wf = Workflow(name="fails", timeout=5)
    wf.handle([START_EVENT_TYPE], lambda ctx, e: 1 / 0)

    stream = wf.run_stream()
    events = stream.to_list()

    assert ErrorEvent.include(events[-1])
    assert isinstance(stream.error, HandlerFailedError)


def test_suppressed_errors_drain_the_run():
    wf = Workflow(name="quiet", timeout=5)
    wf.handle([START_EVENT_TYPE], lambda ctx, e: 1 / 0, with_suppressed_errors())

    result = wf.run()

    assert result.result is None
    assert result.error is None


def test_idle_run_ends_without_stop():
    wf = Workflow(name="idle", timeout=5)
    wf.handle([START_EVENT_TYPE], lambda ctx, e: ctx.state.set("seen", True))

    result = wf.run()

    assert result.result is None
    assert result.state.get_bool("seen") is True


def test_timeout_cancels_run():
    def slow(ctx, event):
        ctx.cancel_token.wait(5)

    wf = Workflow(name="slow", timeout=0.2)
    wf.handle([START_EVENT_TYPE], slow)

    started = time.time()
    with pytest.raises(WorkflowTimeoutError):
        wf.run()
    assert time.time() - started < 3


def test_caller_cancellation():
    token = CancelToken()

    def slow(ctx, event):
        ctx.cancel_token.wait(5)

    wf = Workflow(name="cancel", timeout=10)
    wf.handle([START_EVENT_TYPE], slow)

    timer = threading.Timer(0.1, token.cancel)
    timer.start()
    with pytest.raises(CancelledError):
        wf.run(cancel_token=token)
    timer.join()


def test_human_in_the_loop():
    wf = Workflow(name="ask", timeout=5)
    wf.handle([START_EVENT_TYPE], lambda ctx, e: new_input_required_event("name?"))
    wf.handle([HUMAN_RESPONSE_EVENT_TYPE], lambda ctx, e: new_stop_event(f"hello {e.data.response}"))

    handler = wf.start(stream=True)
    stream = handler.stream()
    for event in stream:
        data, ok = InputRequiredEvent.extract(event)
        if ok:
            assert data.prompt == "name?"
            stream.send_event(new_human_response_event("bob"))

    assert handler.result().result == "hello bob"


def test_stream_until_custom_event():
    def start(ctx, event):
        return [ProgressEvent.with_data(step=1)]

    def progress(ctx, event):
        data, _ = ProgressEvent.extract(event)
        return ProgressEvent.with_data(step=data.step + 1)

    wf = Workflow(name="progress", timeout=5)
    wf.handle([START_EVENT_TYPE], start)
    wf.handle([ProgressEvent], progress)

    stream = wf.run_stream().until(ProgressEvent)
    events = stream.to_list()

    assert ProgressEvent.include(events[-1])
    assert stream.error is None


def test_closing_stream_cancels_run():
    wf = Workflow(name="endless", timeout=10)
    wf.handle([START_EVENT_TYPE], lambda ctx, e: EventA.with_data())
    wf.handle([EventA], lambda ctx, e: EventA.with_data())

    handler = wf.start(stream=True)
    with handler.stream() as stream:
        next(stream)
        next(stream)

    result = handler.wait(5)
    assert isinstance(result.error, CancelledError)


def test_builder_on_start_receives_payload():
    wf = (
        WorkflowBuilder(name="built", timeout=5)
        .on_start(lambda ctx, data: new_stop_event(data.input * 2))
        .build()
    )

    assert wf.run(21).result == 42


def test_parallel_handlers_share_state():
    def writer(name):
        def _write(ctx, event):
            ctx.set_value(name, True)
            return EventB.with_data()

        return _write

    def finish(ctx, event):
        if ctx.state.get("left") and ctx.state.get("right"):
            return new_stop_event(sorted(ctx.state.keys()))
        return None

    wf = Workflow(name="join", timeout=5, num_workers=2)
    wf.handle([START_EVENT_TYPE], writer("left"))
    wf.handle([START_EVENT_TYPE], writer("right"))
    wf.handle([EventB], finish)

    assert wf.run().result == ["left", "right"]


def test_steps_emit_callback_events():
    collector = EventCollectorHandler()
    wf = Workflow(name="traced", timeout=5, callback_manager=CallbackManager([collector]))
    wf.handle([START_EVENT_TYPE], lambda ctx, e: new_stop_event("done"))

    wf.run()

    assert len(collector.get_events_by_type(CBEventType.WORKFLOW_STEP)) == 1
    assert collector.traces[-1]["trace_id"] == "workflow.traced"


def test_from_config():
    config = WorkflowConfig(num_workers=2, timeout=3, retry_policy=RetryPolicyConfig(max_retries=1))

    wf = Workflow.from_config(config, name="configured")

    assert wf.num_workers == 2
    assert wf.timeout == 3
    assert wf.retry_policy.max_retries == 1


def test_handle_cancel_while_handler_blocks():
    def blocking(ctx, event):
        ctx.cancel_token.wait(5)

    wf = Workflow(name="blocked", timeout=10)
    wf.handle([START_EVENT_TYPE], blocking)

    handler = wf.start()
    handler.run_in_background()
    time.sleep(0.1)
    handler.cancel()

    result = handler.wait(5)
    assert result is not None
    assert isinstance(result.error, CancelledError)


class FailingTraceSink(EventCollectorHandler):
    def start_trace(self, trace_id=None):
        raise RuntimeError("sink unavailable")


def test_dispatcher_failure_resolves_run():
    wf = Workflow(name="broken-sink", timeout=1, callback_manager=CallbackManager([FailingTraceSink()]))
    wf.handle([START_EVENT_TYPE], lambda ctx, e: new_stop_event("done"))

    handler = wf.start(stream=True)
    events = handler.stream().to_list()
    result = handler.wait(5)

    assert result is not None
    assert isinstance(result.error, HandlerFailedError)
    assert isinstance(result.error.cause, RuntimeError)
    assert ErrorEvent.include(events[-1])
    with pytest.raises(HandlerFailedError):
        handler.result()


def test_sequence_ids_increase_in_stream_order():
    wf = Workflow(name="sequenced", timeout=5)
    wf.handle([START_EVENT_TYPE], lambda ctx, e: [EventA.with_data(), EventB.with_data()])
    wf.handle([EventA], lambda ctx, e: EventC.with_data())
    wf.handle([EventC], lambda ctx, e: new_stop_event("done"))

    events = wf.run_stream().to_list()
    sequence_ids = [e.sequence_id for e in events]

    assert events[0].event_type == START_EVENT_TYPE
    assert all(isinstance(s, int) for s in sequence_ids)
    assert sequence_ids == sorted(sequence_ids)
    assert len(set(sequence_ids)) == len(sequence_ids)


def test_fan_in_follows_completion_order():
    def slow(ctx, event):
        time.sleep(0.3)
        return EventA.with_data()

    def fast(ctx, event):
        return EventB.with_data()

    wf = Workflow(name="fan-in", timeout=5, num_workers=2)
    wf.handle([START_EVENT_TYPE], slow)
    wf.handle([START_EVENT_TYPE], fast)
    wf.handle([EventA], lambda ctx, e: new_stop_event("done"))

    event_types = [e.event_type for e in wf.run_stream()]

    assert event_types.index(EventB.event_type) < event_types.index(EventA.event_type)
