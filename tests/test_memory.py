import threading

import pytest

from flowrag.core.enumeration import Role
from flowrag.core.exceptions import ConfigInvalidError, LLMFailedError
from flowrag.core.memory import ChatMemoryBuffer, ChatSummaryMemoryBuffer, SimpleMemory, count_message_tokens
from flowrag.core.schema import Message


def user(content: str) -> Message:
    return Message(role=Role.USER, content=content)


def assistant(content: str) -> Message:
    return Message(role=Role.ASSISTANT, content=content)


def contents(messages):
    return [m.content for m in messages]


def test_token_window_keeps_newest_suffix(whitespace_tokenizer):
    memory = ChatMemoryBuffer(token_limit=10, tokenizer=whitespace_tokenizer)
    memory.put(user("hello there friend"))
    memory.put(assistant("hi"))
    memory.put(user("how are you today"))

    assert contents(memory.get()) == ["hello there friend", "hi", "how are you today"]

    memory.put(assistant("i am doing great thanks"))

    window = memory.get()
    assert contents(window) == ["how are you today", "i am doing great thanks"]
    assert count_message_tokens(whitespace_tokenizer, window) == 9
    assert len(memory.get_all()) == 4


@pytest.mark.parametrize("token_limit", [1, 3, 5, 8, 13, 40])
def test_window_is_a_suffix_within_limit(whitespace_tokenizer, token_limit):
    history = [
        user("a b c"),
        assistant("d e"),
        user("f"),
        assistant("g h i j"),
        user("k l"),
        assistant("m"),
    ]
    memory = ChatMemoryBuffer(token_limit=token_limit, tokenizer=whitespace_tokenizer, chat_history=history)

    window = memory.get()

    assert count_message_tokens(whitespace_tokenizer, window) <= token_limit
    if window:
        assert window == history[-len(window):]
        assert window[0].role == Role.USER


def test_window_never_starts_with_assistant(whitespace_tokenizer):
    memory = ChatMemoryBuffer(token_limit=5, tokenizer=whitespace_tokenizer)
    memory.put_messages([user("a b c d e f"), assistant("x y"), user("z")])

    assert contents(memory.get()) == ["z"]


def test_initial_token_count(whitespace_tokenizer):
    memory = ChatMemoryBuffer(token_limit=5, tokenizer=whitespace_tokenizer)
    memory.put_messages([user("a b"), assistant("c d")])

    assert contents(memory.get(initial_token_count=1)) == ["a b", "c d"]
    assert memory.get(initial_token_count=3) == []
    with pytest.raises(ConfigInvalidError):
        memory.get(initial_token_count=6)


def test_from_defaults_uses_llm_context_window(mock_llm):
    memory = ChatMemoryBuffer.from_defaults(llm=mock_llm(context_window=1000))

    assert memory.token_limit == 750


def test_invalid_token_limit():
    with pytest.raises(ConfigInvalidError):
        ChatMemoryBuffer(token_limit=0)


def test_summary_buffer_summarizes_overflow(whitespace_tokenizer, mock_llm):
    llm = mock_llm(responses=["summary text"])
    memory = ChatSummaryMemoryBuffer(llm=llm, token_limit=5, tokenizer=whitespace_tokenizer)
    memory.put_messages([user("one two three"), assistant("four five"), user("six seven eight")])

    window = memory.get()

    assert [m.role for m in window] == [Role.SYSTEM, Role.USER]
    assert contents(window) == ["summary text", "six seven eight"]
    assert memory.get_all() == window
    assert "user: one two three" in llm.prompts[0]
    assert "assistant: four five" in llm.prompts[0]


def test_summary_buffer_without_llm_drops_overflow(whitespace_tokenizer):
    memory = ChatSummaryMemoryBuffer(token_limit=5, tokenizer=whitespace_tokenizer)
    memory.put_messages([user("one two three"), assistant("four five"), user("six seven eight")])

    assert contents(memory.get()) == ["six seven eight"]
    assert len(memory) == 3


def test_summary_buffer_fits_without_llm_call(whitespace_tokenizer, mock_llm):
    llm = mock_llm(responses=["unused"])
    memory = ChatSummaryMemoryBuffer(llm=llm, token_limit=50, tokenizer=whitespace_tokenizer)
    memory.put_messages([user("one two"), assistant("three")])

    assert contents(memory.get()) == ["one two", "three"]
    assert llm.call_count == 0


def test_summary_failure_is_llm_failed(whitespace_tokenizer, mock_llm):
    llm = mock_llm(fail_times=5)
    memory = ChatSummaryMemoryBuffer(llm=llm, token_limit=3, tokenizer=whitespace_tokenizer)
    memory.put_messages([user("one two three"), user("four five six")])

    with pytest.raises(LLMFailedError):
        memory.get()


def test_simple_memory_concurrent_puts():
    memory = SimpleMemory()

    def writer(prefix: str):
        for i in range(50):
            memory.put(user(f"{prefix}-{i}"))

    threads = [threading.Thread(target=writer, args=(str(n),)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(memory.get()) == 200
    memory.reset()
    assert memory.get() == []
