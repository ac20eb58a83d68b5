import pytest

from flowrag.core.enumeration import FilterCondition, FilterOperator, MetadataMode, NodeRelationship, NodeType
from flowrag.core.exceptions import InvalidKindError, TypeMismatchError
from flowrag.core.schema import (
    Document,
    ImageNode,
    MetadataFilter,
    MetadataFilters,
    NodeWithScore,
    QueryBundle,
    RelatedNodeInfo,
    TextNode,
)


def test_metadata_modes_differ_only_in_excluded_lines():
    node = TextNode(
        text="body",
        metadata={"a": "1", "b": "2", "c": 3},
        excluded_llm_metadata_keys=["b"],
        excluded_embed_metadata_keys=["c"],
    )

    all_lines = set(node.get_content(MetadataMode.ALL).splitlines())
    llm_lines = set(node.get_content(MetadataMode.LLM).splitlines())
    embed_lines = set(node.get_content(MetadataMode.EMBED).splitlines())

    assert all_lines - llm_lines == {"b: 2"}
    assert all_lines - embed_lines == {"c: 3"}
    assert node.get_content(MetadataMode.NONE) == "body"


def test_hash_is_stable_and_tracks_content():
    node = TextNode(text="hello", metadata={"k": "v"})
    original = node.hash

    node.set_content(node.text)
    assert node.hash == original

    node.set_metadata("k", "w")
    assert node.hash != original

    node.set_metadata("k", "v")
    assert node.hash == original


def test_relationship_shapes_are_enforced():
    node = TextNode(text="x")
    info = RelatedNodeInfo(node_id="p")

    with pytest.raises(TypeMismatchError):
        node.set_relationship(NodeRelationship.CHILD, info)
    with pytest.raises(TypeMismatchError):
        node.set_relationship(NodeRelationship.SOURCE, [info])

    node.set_relationship(NodeRelationship.CHILD, [info])
    assert node.child_nodes == [info]


def test_node_kinds():
    assert Document(text="d").node_type == NodeType.DOCUMENT
    assert ImageNode(image="aGk=").get_image() == "aGk="
    with pytest.raises(InvalidKindError):
        TextNode(text="t").get_image()


def test_node_with_score_passthroughs():
    node = TextNode(text="t", metadata={"k": 1})
    scored = NodeWithScore(node=node)

    assert scored.node_id == node.node_id
    assert scored.metadata == {"k": 1}
    assert scored.get_score() == 0.0
    with pytest.raises(ValueError):
        scored.get_score(raise_error=True)


def test_metadata_filters():
    filters = MetadataFilters(
        filters=[
            MetadataFilter(key="year", value=2020, operator=FilterOperator.GTE),
            MetadataFilter(key="lang", value=["en", "de"], operator=FilterOperator.IN),
        ],
    )
    assert filters.matches({"year": 2021, "lang": "en"})
    assert not filters.matches({"year": 2019, "lang": "en"})

    filters.condition = FilterCondition.OR
    assert filters.matches({"year": 2019, "lang": "de"})


def test_query_bundle_embedding_strs():
    assert QueryBundle(query_str="q").embedding_strs == ["q"]
    assert QueryBundle(query_str="q", custom_embedding_strs=["a", "b"]).embedding_strs == ["a", "b"]
