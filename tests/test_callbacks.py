import threading
import time

import pytest

from flowrag.core.callbacks import (
    DEFAULT_TRACE_ID,
    CallbackManager,
    EventCollectorHandler,
    TokenCountingHandler,
)
from flowrag.core.embedding_model import MockEmbeddingModel
from flowrag.core.enumeration import CBEventType, EventPayload
from flowrag.core.llm import MockLLM


@pytest.fixture
def collector():
    return EventCollectorHandler()


@pytest.fixture
def manager(collector):
    return CallbackManager([collector])


def test_nested_events_build_trace_map(manager, collector):
    with manager.as_trace("query-trace"):
        with manager.event(CBEventType.QUERY) as query:
            with manager.event(CBEventType.RETRIEVE) as retrieve:
                pass
            with manager.event(CBEventType.LLM) as llm:
                pass

    trace = collector.traces[-1]
    assert trace["trace_id"] == "query-trace"
    assert trace["trace_map"]["root"] == [query.event_id]
    assert trace["trace_map"][query.event_id] == [retrieve.event_id, llm.event_id]


def test_leaf_events_never_become_parents(manager, collector):
    with manager.event(CBEventType.LLM) as llm:
        with manager.event(CBEventType.EMBEDDING) as embedding:
            pass

    assert collector.parent_ids[llm.event_id] == "root"
    assert collector.parent_ids[embedding.event_id] == "root"
    assert collector.traces[-1]["trace_id"] == DEFAULT_TRACE_ID


def test_configurable_leaf_events(collector):
    manager = CallbackManager([collector], leaf_event_types=[CBEventType.RETRIEVE])

    with manager.event(CBEventType.RETRIEVE):
        with manager.event(CBEventType.LLM) as llm:
            pass

    assert collector.parent_ids[llm.event_id] == "root"


def test_event_end_carries_exception_and_reraises(manager, collector):
    with pytest.raises(ValueError):
        with manager.event(CBEventType.QUERY):
            raise ValueError("boom")

    assert len(collector.end_events) == 1
    payload = collector.end_events[0].payload
    assert isinstance(payload[EventPayload.EXCEPTION], ValueError)


def test_end_payload_records_iso_duration(manager, collector):
    with manager.event(CBEventType.QUERY):
        pass

    duration = collector.end_events[0].payload[EventPayload.DURATION]
    assert duration.startswith("PT") and duration.endswith("S")


def test_with_event_returns_result(manager, collector):
    assert manager.with_event(CBEventType.SYNTHESIZE, {}, lambda x: x * 2, 21) == 42
    assert collector.end_events[-1].payload[EventPayload.RESPONSE] == 42


def test_with_trace_emits_exception_event(manager, collector):
    def _fail():
        raise RuntimeError("bad")

    with pytest.raises(RuntimeError):
        manager.with_trace("t", _fail)

    assert len(collector.get_events_by_type(CBEventType.EXCEPTION)) == 1
    assert collector.traces[-1]["trace_id"] == "t"


def test_removed_handler_receives_nothing(manager, collector):
    manager.remove_handler(collector)

    with manager.event(CBEventType.QUERY):
        pass

    assert collector.start_events == []
    assert manager.handlers == []


def test_sink_ignore_lists():
    collector = EventCollectorHandler(event_starts_to_ignore=[CBEventType.QUERY])
    manager = CallbackManager([collector])

    with manager.event(CBEventType.QUERY):
        pass

    assert collector.start_events == []
    assert len(collector.end_events) == 1


def test_event_stats(manager):
    for _ in range(3):
        with manager.event(CBEventType.RETRIEVE):
            pass

    stats = manager.get_event_stats(CBEventType.RETRIEVE)
    assert stats[CBEventType.RETRIEVE].total_count == 3
    assert stats[CBEventType.RETRIEVE].total_secs >= 0


def test_trace_state_is_run_scoped(collector):
    manager = CallbackManager([collector])
    parents = {}

    def _run(name):
        with manager.use_trace_state(manager.new_trace_state()):
            with manager.as_trace(name):
                with manager.event(CBEventType.QUERY) as query:
                    with manager.event(CBEventType.RETRIEVE) as retrieve:
                        parents[name] = (query.event_id, collector.parent_ids.get(retrieve.event_id))

    threads = [threading.Thread(target=_run, args=(f"run-{i}",)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(parents) == 4
    for query_id, retrieve_parent in parents.values():
        assert retrieve_parent == query_id


def test_token_counting_handler(whitespace_tokenizer):
    counter = TokenCountingHandler(tokenizer=whitespace_tokenizer)
    manager = CallbackManager([counter])

    llm = MockLLM(responses=["one two"], callback_manager=manager)
    llm.complete("a b c")
    MockEmbeddingModel(callback_manager=manager).embed_texts(["x y", "z"])

    assert counter.prompt_tokens == 3
    assert counter.completion_tokens == 2
    assert counter.total_llm_tokens == 5
    assert counter.total_embedding_tokens == 3

    counter.reset_counts()
    assert counter.total_llm_tokens == 0


def test_frames_accumulate_across_default_traces(manager, collector):
    ids = []
    for _ in range(3):
        with manager.event(CBEventType.RETRIEVE) as event:
            ids.append(event.event_id)

    assert set(manager.get_frames()) == set(ids)
    assert manager.get_trace_map()["root"] == ids
    assert len(collector.traces) == 3

    with manager.as_trace("explicit"):
        with manager.event(CBEventType.QUERY) as query:
            pass

    assert set(manager.get_frames()) == {query.event_id}


def test_concurrent_events_open_one_default_trace(manager, collector):
    barrier = threading.Barrier(8)
    release = threading.Event()

    def _worker():
        barrier.wait()
        with manager.event(CBEventType.RETRIEVE):
            release.wait(5)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    while manager.trace_state.open_events < 8:
        time.sleep(0.01)
    assert manager.trace_state.trace_depth == 1

    release.set()
    for thread in threads:
        thread.join()

    assert manager.trace_state.trace_depth == 0
    assert collector.traces[-1]["trace_id"] == DEFAULT_TRACE_ID
    assert len(manager.get_frames()) == 8
