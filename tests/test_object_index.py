from dataclasses import dataclass

import pytest

from flowrag.core.context import CancelToken
from flowrag.core.embedding_model import MockEmbeddingModel
from flowrag.core.exceptions import CancelledError, EmbedFailedError, NotFoundError
from flowrag.core.obj_index import ObjectIndex, ObjectNodeMapping, ToolNodeMapping
from flowrag.core.tool import FunctionTool


@dataclass
class Item:
    id: str
    description: str


@pytest.fixture
def items():
    return [Item("a", "apple"), Item("b", "banana"), Item("c", "car")]


def test_retrieve_by_description(one_hot_embed_model, items):
    index = ObjectIndex.from_objects(items, embed_model=one_hot_embed_model)

    assert index.retrieve("apple", k=1) == [items[0]]
    assert [i.id for i in index.retrieve("apple", k=3)] == ["a", "b", "c"]
    assert [i.id for i in index.retrieve("banana", k=3)] == ["b", "a", "c"]


def test_scores_are_ordered_and_ties_break_by_id(one_hot_embed_model, items):
    index = ObjectIndex.from_objects(items, embed_model=one_hot_embed_model)

    scored = index.retriever.retrieve_with_scores("car", k=3)

    assert [(obj.id, score) for obj, score in scored] == [("c", 1.0), ("a", 0.0), ("b", 0.0)]


def test_mapping_round_trip(one_hot_embed_model, items):
    index = ObjectIndex.from_objects(items, embed_model=one_hot_embed_model)

    node = index.mapping.to_node(items[1])

    assert node.node_id == "b"
    assert node.text == "banana"
    assert index.mapping.from_node(node) is items[1]


def test_get_all_remove(one_hot_embed_model, items):
    index = ObjectIndex.from_objects(items, embed_model=one_hot_embed_model)

    assert index.get("c") is items[2]
    assert index.all() == items

    index.remove("a")
    assert len(index) == 2
    assert index.retrieve("apple", k=1)[0].id != "a"
    with pytest.raises(NotFoundError):
        index.get("a")


def test_add_is_atomic_on_embedding_failure():
    index = ObjectIndex(embed_model=MockEmbeddingModel(fail_texts={"broken"}))
    index.add(Item("ok", "fine"))

    with pytest.raises(EmbedFailedError) as exc_info:
        index.add(Item("x", "good"), Item("y", "broken"))

    assert exc_info.value.node_id == "y"
    assert [i.id for i in index.all()] == ["ok"]


def test_add_embeds_only_new_objects(items):
    embed_model = MockEmbeddingModel()
    index = ObjectIndex.from_objects(items[:2], embed_model=embed_model)
    calls_before = len(embed_model.calls)

    index.add(items[2])

    assert embed_model.calls[calls_before:] == [["car"]]


def test_add_honours_cancellation(one_hot_embed_model, items):
    token = CancelToken()
    token.cancel()
    index = ObjectIndex(embed_model=one_hot_embed_model)

    with pytest.raises(CancelledError):
        index.add(*items, cancel_token=token)
    assert len(index) == 0


def test_as_retriever_shares_table(one_hot_embed_model, items):
    index = ObjectIndex.from_objects(items, embed_model=one_hot_embed_model, top_k=1)
    retriever = index.as_retriever(top_k=2)

    index.add(Item("d", "date"))

    assert len(index.retrieve("apple")) == 1
    assert [i.id for i in retriever.retrieve_objects("date")] == ["d", "a"]


def test_object_without_id_or_description_gets_stable_generated_id():
    mapping = ObjectNodeMapping()
    obj = {"name": "thing"}

    node_a = mapping.to_node(obj)
    node_b = mapping.to_node(obj)

    assert node_a.node_id == node_b.node_id
    assert node_a.text == '{"name": "thing"}'


def add(a: int, b: int) -> int:
    """Add two integers."""
    return a + b


def weather(city: str) -> str:
    """Look up the weather forecast for a city."""
    return f"sunny in {city}"


def test_function_tool_call_and_schema():
    tool = FunctionTool.from_defaults(add)

    assert tool.name == "add"
    assert tool.description == "Add two integers."
    assert tool.metadata.parameters["required"] == ["a", "b"]
    assert tool.metadata.parameters["properties"]["a"] == {"type": "integer"}

    output = tool.call({"a": 1, "b": 2})
    assert output.content == "3"
    assert output.raw_output == 3
    assert FunctionTool.from_defaults(weather)({"input": "paris"}).content == "sunny in paris"


def test_tool_index_retrieves_by_name_and_description():
    tools = [FunctionTool.from_defaults(add), FunctionTool.from_defaults(weather)]
    index = ObjectIndex(embed_model=MockEmbeddingModel(), mapping=ToolNodeMapping())
    index.add(*tools)

    node = index.mapping.get_node("weather")
    assert node.text == "weather: Look up the weather forecast for a city."
    assert node.metadata["name"] == "weather"
    assert index.retrieve(node.text, k=1) == [tools[1]]


def test_empty_custom_mapping_is_kept():
    mapping = ToolNodeMapping()

    index = ObjectIndex(embed_model=MockEmbeddingModel(), mapping=mapping)

    assert index.mapping is mapping
    assert index.retriever.mapping is mapping
