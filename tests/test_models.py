import pytest

from flowrag.core.callbacks import CallbackManager, EventCollectorHandler
from flowrag.core.embedding_model import MockEmbeddingModel
from flowrag.core.enumeration import CBEventType, EventPayload, Role
from flowrag.core.exceptions import EmbedFailedError, LLMFailedError
from flowrag.core.schema import Message
from flowrag.core.token import BaseToken, CharToken, WhitespaceToken


def test_llm_retries_then_succeeds(mock_llm):
    llm = mock_llm(responses=["ok"], fail_times=2, max_retries=3)

    assert llm.complete("question") == "ok"
    assert llm.call_count == 3


def test_llm_attempts_are_bounded(mock_llm):
    llm = mock_llm(fail_times=10, max_retries=2)

    with pytest.raises(LLMFailedError) as exc_info:
        llm.chat([Message(role=Role.USER, content="hi")])

    assert llm.call_count == 2
    assert isinstance(exc_info.value.cause, RuntimeError)


def test_llm_echo_and_stream(mock_llm):
    llm = mock_llm()

    reply = llm.chat([Message(role=Role.SYSTEM, content="be brief"), Message(role=Role.USER, content="echo me")])

    assert reply.role == Role.ASSISTANT
    assert reply.content == "echo me"
    assert "".join(llm.stream_complete("streamed")) == "streamed"


def test_llm_emits_callback_event(mock_llm):
    collector = EventCollectorHandler()
    llm = mock_llm(responses=["answer"], callback_manager=CallbackManager([collector]))

    llm.complete("prompt text")

    events = collector.get_events_by_type(CBEventType.LLM)
    assert len(events) == 1
    assert events[0].payload[EventPayload.FORMATTED_PROMPT] == "prompt text"
    assert collector.end_events[-1].payload[EventPayload.COMPLETION] == "answer"


def test_llm_stream_emits_callback_event(mock_llm):
    collector = EventCollectorHandler()
    llm = mock_llm(responses=["streamed answer"], callback_manager=CallbackManager([collector]))

    assert "".join(llm.stream_complete("prompt text")) == "streamed answer"

    events = collector.get_events_by_type(CBEventType.LLM)
    assert len(events) == 1
    assert events[0].payload[EventPayload.FORMATTED_PROMPT] == "prompt text"
    assert collector.end_events[-1].payload[EventPayload.COMPLETION] == "streamed answer"


def test_embedding_batches_preserve_order():
    model = MockEmbeddingModel(dimensions=8, max_batch_size=2)
    texts = ["a", "b", "c", "d", "e"]

    embeddings = model.embed_texts(texts)

    assert len(embeddings) == 5
    assert model.calls == [["a", "b"], ["c", "d"], ["e"]]
    assert embeddings[0] == model.embed_text("a")
    assert model.embed_texts([]) == []


def test_embedding_failure():
    model = MockEmbeddingModel(dimensions=8, fail_texts={"bad"}, max_retries=2)

    with pytest.raises(EmbedFailedError):
        model.embed_texts(["good", "bad"])
    assert len(model.calls) == 2


def test_explicit_vectors_win():
    model = MockEmbeddingModel(dimensions=2, vectors={"x": [0.5, 0.5]})

    assert model.embed_query("x") == [0.5, 0.5]


@pytest.mark.parametrize(
    "counter, text, expected",
    [
        (BaseToken(), "", 0),
        (BaseToken(), "abcde", 2),
        (WhitespaceToken(), "one  two\nthree", 3),
        (CharToken(), "abc", 3),
    ],
)
def test_token_counters(counter, text, expected):
    assert counter(text) == expected


def test_token_count_over_messages():
    messages = [Message(content="a b"), Message(content="c")]

    assert WhitespaceToken().token_count(messages) == 3
