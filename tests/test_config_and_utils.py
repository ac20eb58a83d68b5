import sys

import pytest
from loguru import logger

from flowrag.config import ConfigParser, init_service
from flowrag.core.context import BaseContext, C, CancelToken, Registry
from flowrag.core.enumeration import ErrorKind
from flowrag.core.exceptions import (
    CancelledError,
    ConfigInvalidError,
    DimMismatchError,
    HandlerFailedError,
    LLMFailedError,
    NotFoundError,
    error_kind_of,
)
from flowrag.core.llm import MockLLM
from flowrag.core.token import WhitespaceToken
from flowrag.core.utils import (
    Timer,
    timer,
    camel_to_snake,
    cosine_similarity,
    format_duration,
    normalize,
    top_k_similar,
)


@pytest.fixture
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr, level="INFO")


def test_default_config_with_overrides():
    parser = ConfigParser()
    config = parser.parse_args("workflow.timeout=5", "memory.token_limit=128")

    assert config.workflow.timeout == 5
    assert config.memory.token_limit == 128
    assert config.node_parser.chunk_size == 1024
    assert config.llm["mock"].backend == "mock"
    assert config.workflow.retry_policy.max_retries == 3

    updated = parser.update_config(memory__token_limit=100, language="zh")
    assert updated.memory.token_limit == 100
    assert updated.language == "zh"
    assert updated.workflow.timeout == 5


def test_missing_config_file():
    with pytest.raises(ConfigInvalidError):
        ConfigParser().parse_args("config=does_not_exist")


def test_invalid_override():
    with pytest.raises(ConfigInvalidError):
        ConfigParser().parse_args("workflow.timeout=-1")


def test_dot_notation_values():
    parser = ConfigParser()

    assert parser.parse_dot_notation(["a.b=1", "a.c=true", "d=[1, 2]", "e=none", "f=text", "ignored"]) == {
        "a": {"b": 1, "c": True},
        "d": [1, 2],
        "e": None,
        "f": "text",
    }


def test_init_service_builds_named_backends(restore_logger):
    config = init_service("workflow.timeout=7", logger__level="WARNING")

    assert config.workflow.timeout == 7
    assert config.logger.level == "WARNING"
    llm = C.build_llm("mock")
    assert isinstance(llm, MockLLM)
    assert C.build_llm("mock") is llm
    assert isinstance(C.build_token_counter("whitespace"), WhitespaceToken)
    with pytest.raises(NotFoundError):
        C.build_llm("absent")


def test_unknown_registry_name():
    with pytest.raises(NotFoundError):
        C.get_llm_class("no_such_backend")


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "PT0S"), (2.5, "PT2.5S"), (62.5, "PT1M2.5S"), (3600, "PT1H"), (3725, "PT1H2M5S")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_timer_records_iso_duration():
    with Timer("unit") as t:
        pass

    assert t.iso_duration.startswith("PT")


def test_vector_helpers():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    assert normalize([3.0, 4.0]) == pytest.approx([0.6, 0.8])
    assert top_k_similar([1.0, 0.0], [[0.0, 1.0], [1.0, 0.0], [1.0, 0.0]], k=2) == ([1, 2], [1.0, 1.0])
    with pytest.raises(DimMismatchError):
        cosine_similarity([1.0], [1.0, 2.0])


def test_camel_to_snake():
    assert camel_to_snake("NodeRecencyPostprocessor") == "node_recency_postprocessor"


def test_base_context_attribute_and_item_access():
    ctx = BaseContext(language="en")
    ctx["top_k"] = 3
    assert ctx.language == "en"
    assert ctx.top_k == 3
    assert "top_k" in ctx
    assert ctx.get("missing", 7) == 7
    assert sorted(ctx.keys()) == ["language", "top_k"]
    with pytest.raises(AttributeError):
        _ = ctx.missing
    with pytest.raises(KeyError):
        _ = ctx["missing"]


def test_registry_defaults_to_class_name():
    registry = Registry()

    @registry.register()
    class Plain:
        pass

    @registry.register("named")
    class Other:
        pass

    assert registry["Plain"] is Plain
    assert registry["named"] is Other


def test_error_kinds():
    wrapped = HandlerFailedError("step failed", cause=LLMFailedError("down"), step="answer")

    assert error_kind_of(wrapped) == ErrorKind.LLM_FAILED
    assert error_kind_of(HandlerFailedError("plain")) == ErrorKind.HANDLER_FAILED
    assert error_kind_of(ValueError("x")) is None
    assert str(LLMFailedError("down")).startswith("[")
    assert wrapped.__cause__ is wrapped.cause


def test_cancel_token_propagates_to_children():
    parent = CancelToken()
    child = parent.child()

    assert not child.is_cancelled
    parent.cancel()
    assert child.is_cancelled
    assert child.wait(1)
    with pytest.raises(CancelledError):
        child.raise_if_cancelled()


def test_cancel_token_first_error_wins():
    token = CancelToken()
    token.cancel(ConfigInvalidError("first"))
    token.cancel(CancelledError("second"))

    with pytest.raises(ConfigInvalidError):
        token.raise_if_cancelled()


def test_timer_decorator_keeps_function_metadata():
    @timer("unit.add")
    def add(a, b):
        return a + b

    assert add(2, 3) == 5
    assert add.__name__ == "add"
