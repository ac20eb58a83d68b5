"""Handler middlewares and combinators.

A middleware takes a handler and returns a wrapped handler. `apply_middleware`
wraps right-to-left, so the first middleware listed is the outermost one:

    ```python
    handler = apply_middleware(answer, recovery_middleware(), timing_middleware("answer"))
    ```
"""

import time
from typing import Any, Callable, List

from loguru import logger

from .context import Context
from .events import Event, as_event_list
from ..exceptions import FlowRagError, PanicError
from ..utils import format_duration

Handler = Callable[[Context, Event], Any]
Middleware = Callable[[Handler], Handler]


def apply_middleware(handler: Handler, *middlewares: Middleware) -> Handler:
    for middleware in reversed(middlewares):
        handler = middleware(handler)
    return handler


def logging_middleware(name: str) -> Middleware:
    def _middleware(handler: Handler) -> Handler:
        def _wrapped(ctx: Context, event: Event):
            logger.info(f"step={name} event={event.event_type} start")
            try:
                events = as_event_list(handler(ctx, event))
            except Exception as e:
                logger.error(f"step={name} event={event.event_type} failed: {e}")
                raise
            logger.info(f"step={name} event={event.event_type} done events_emitted={len(events)}")
            return events

        return _wrapped

    return _middleware


def timing_middleware(name: str) -> Middleware:
    """Store the step duration as an ISO-8601 string under `_timing_<name>` in the run state."""

    def _middleware(handler: Handler) -> Handler:
        def _wrapped(ctx: Context, event: Event):
            start = time.perf_counter()
            try:
                return handler(ctx, event)
            finally:
                duration = format_duration(time.perf_counter() - start)
                logger.debug(f"step={name} duration={duration}")
                ctx.state.set(f"_timing_{name}", duration)

        return _wrapped

    return _middleware


def recovery_middleware() -> Middleware:
    """Turn unexpected exceptions into `PanicError`; library errors pass through unchanged."""

    def _middleware(handler: Handler) -> Handler:
        def _wrapped(ctx: Context, event: Event):
            try:
                return handler(ctx, event)
            except FlowRagError:
                raise
            except Exception as e:
                raise PanicError(f"panic recovered: {e}", cause=e, value=e) from e

        return _wrapped

    return _middleware


def fallback_middleware(secondary: Handler) -> Middleware:
    """On failure, answer the event with `secondary` instead."""

    def _middleware(handler: Handler) -> Handler:
        def _wrapped(ctx: Context, event: Event):
            try:
                return handler(ctx, event)
            except Exception as e:
                logger.warning(f"event={event.event_type} handler failed, use fallback: {e}")
                return secondary(ctx, event)

        return _wrapped

    return _middleware


def filter_events(predicate: Callable[[Event], bool]) -> Middleware:
    """Keep only the emitted events matching `predicate`."""

    def _middleware(handler: Handler) -> Handler:
        def _wrapped(ctx: Context, event: Event):
            return [e for e in as_event_list(handler(ctx, event)) if predicate(e)]

        return _wrapped

    return _middleware


def map_events(mapper: Callable[[Event], Event]) -> Middleware:
    def _middleware(handler: Handler) -> Handler:
        def _wrapped(ctx: Context, event: Event):
            return [mapper(e) for e in as_event_list(handler(ctx, event))]

        return _wrapped

    return _middleware


def conditional_handler(
    condition: Callable[[Context, Event], bool],
    handler: Handler,
    else_handler: Handler = None,
) -> Handler:
    def _wrapped(ctx: Context, event: Event):
        if condition(ctx, event):
            return handler(ctx, event)
        if else_handler is not None:
            return else_handler(ctx, event)
        return []

    return _wrapped


def chain_handlers(*handlers: Handler) -> Handler:
    """Call every handler on the same event and concatenate what they emit."""

    def _wrapped(ctx: Context, event: Event):
        events: List[Event] = []
        for handler in handlers:
            events.extend(as_event_list(handler(ctx, event)))
        return events

    return _wrapped


def pipeline(*handlers: Handler) -> Handler:
    """Feed each handler the events emitted by the previous one; the last handler's output is returned."""

    def _wrapped(ctx: Context, event: Event):
        current: List[Event] = [event]
        for handler in handlers:
            next_events: List[Event] = []
            for e in current:
                next_events.extend(as_event_list(handler(ctx, e)))
            current = next_events
        return current

    return _wrapped
