import pytest

from flowrag.core.context import CancelToken
from flowrag.core.exceptions import (
    CancelledError,
    NotFoundError,
    PanicError,
    TypeMismatchError,
    WorkflowTimeoutError,
)
from flowrag.core.workflow import (
    Context,
    RetryPolicy,
    StateStore,
    apply_middleware,
    as_event_list,
    build_step_config,
    chain_handlers,
    conditional_handler,
    custom_event_factory,
    fallback_middleware,
    filter_events,
    map_events,
    new_event,
    new_start_event,
    pipeline,
    recovery_middleware,
    timing_middleware,
    with_num_workers,
    with_retries,
    with_step_name,
    with_suppressed_errors,
)

Ping = custom_event_factory("ping")
Pong = custom_event_factory("pong")


@pytest.fixture
def ctx():
    return Context(workflow_name="unit", run_id="run-1", cancel_token=CancelToken(), send_fn=lambda event: True)


def test_state_store_typed_getters():
    store = StateStore({"count": "42", "ratio": 3, "flag": "yes", "off": 0, "name": 7})

    assert store.get_int("count") == 42
    assert store.get_float("ratio") == 3.0
    assert store.get_bool("flag") is True
    assert store.get_bool("off") is False
    assert store.get_str("name") == "7"
    assert store.get_int("missing", 5) == 5


def test_state_store_errors():
    store = StateStore({"flag": True, "text": "abc"})

    with pytest.raises(NotFoundError):
        store.get_str("missing")
    with pytest.raises(TypeMismatchError):
        store.get_int("flag")
    with pytest.raises(TypeMismatchError):
        store.get_float("text")


def test_state_store_clone_is_independent():
    store = StateStore({"a": 1})
    clone = store.clone()
    clone.set("b", 2)

    assert "b" not in store
    assert len(clone) == 2


def test_retry_policy_delays_are_capped():
    policy = RetryPolicy(max_retries=4, initial_delay=0.1, max_delay=0.3, multiplier=2.0)

    assert policy.delays() == pytest.approx([0.1, 0.2, 0.3, 0.3])


def test_retry_policy_never_retries_cancellation():
    policy = RetryPolicy(retry_on=lambda e: isinstance(e, ValueError))

    assert policy.should_retry(ValueError("x"))
    assert not policy.should_retry(KeyError("x"))
    assert not policy.should_retry(CancelledError("stop"))
    assert not policy.should_retry(WorkflowTimeoutError("late"))


def test_step_options():
    config = build_step_config(with_step_name("s"), with_num_workers(3), with_retries(2), with_suppressed_errors())

    assert config.name == "s"
    assert config.num_workers == 3
    assert config.retry_policy.max_retries == 2
    assert config.suppress_errors


def test_as_event_list():
    event = Ping.with_data()

    assert as_event_list(None) == []
    assert as_event_list(event) == [event]
    assert as_event_list((event, event)) == [event, event]
    with pytest.raises(TypeMismatchError):
        as_event_list("not an event")
    with pytest.raises(TypeMismatchError):
        as_event_list([event, 1])


def test_event_factory_extract():
    start = new_start_event("q", metadata={"k": "v"})

    assert Ping.event_type == "custom.ping"
    assert Ping.extract(start) == (None, False)
    assert new_event("custom.ping").event_type == Ping.event_type


def test_recovery_middleware_wraps_unexpected_errors(ctx):
    handler = apply_middleware(lambda c, e: {}["missing"], recovery_middleware())

    with pytest.raises(PanicError) as exc_info:
        handler(ctx, Ping.with_data())
    assert isinstance(exc_info.value.cause, KeyError)


def test_recovery_middleware_keeps_library_errors(ctx):
    def raise_not_found(c, e):
        raise NotFoundError("gone")

    handler = apply_middleware(raise_not_found, recovery_middleware())

    with pytest.raises(NotFoundError):
        handler(ctx, Ping.with_data())


def test_fallback_middleware(ctx):
    def fail(c, e):
        raise RuntimeError("primary down")

    handler = apply_middleware(fail, fallback_middleware(lambda c, e: Pong.with_data()))

    assert Pong.include(handler(ctx, Ping.with_data()))


def test_timing_middleware_records_duration(ctx):
    handler = apply_middleware(lambda c, e: None, timing_middleware("noop"))
    handler(ctx, Ping.with_data())

    assert ctx.state.get_str("_timing_noop").startswith("PT")


def test_filter_and_map_events(ctx):
    emit_both = lambda c, e: [Ping.with_data(), Pong.with_data()]  # noqa: E731

    only_pongs = apply_middleware(emit_both, filter_events(Pong.include))
    renamed = apply_middleware(emit_both, map_events(lambda e: new_event("custom.renamed")))

    assert [e.event_type for e in only_pongs(ctx, Ping.with_data())] == ["custom.pong"]
    assert [e.event_type for e in renamed(ctx, Ping.with_data())] == ["custom.renamed"] * 2


def test_conditional_handler(ctx):
    handler = conditional_handler(
        lambda c, e: c.get_value("ready", False),
        lambda c, e: Pong.with_data(),
        lambda c, e: Ping.with_data(),
    )

    assert Ping.include(handler(ctx, Ping.with_data()))
    ctx.set_value("ready", True)
    assert Pong.include(handler(ctx, Ping.with_data()))
    assert conditional_handler(lambda c, e: False, lambda c, e: None)(ctx, Ping.with_data()) == []


def test_chain_and_pipeline(ctx):
    to_pong = lambda c, e: Pong.with_data()  # noqa: E731
    duplicate = lambda c, e: [new_event(e.event_type), new_event(e.event_type)]  # noqa: E731

    chained = chain_handlers(to_pong, duplicate)(ctx, Ping.with_data())
    piped = pipeline(to_pong, duplicate)(ctx, Ping.with_data())

    assert [e.event_type for e in chained] == ["custom.pong", "custom.ping", "custom.ping"]
    assert [e.event_type for e in piped] == ["custom.pong", "custom.pong"]
