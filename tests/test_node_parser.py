import pytest

from flowrag.core.callbacks import CallbackManager, EventCollectorHandler
from flowrag.core.enumeration import CBEventType, MetadataMode
from flowrag.core.exceptions import ConfigInvalidError, MetadataTooLargeError
from flowrag.core.node_parser import (
    MarkdownNodeParser,
    MetadataAwareNodeParser,
    SentenceNodeParser,
    SentenceSplitter,
    SentenceWindowNodeParser,
    SimpleNodeParser,
    TokenTextSplitter,
)
from flowrag.core.postprocessor import MetadataReplacementPostprocessor
from flowrag.core.schema import Document, NodeParserConfig, NodeWithScore

LONG_TEXT = (
    "Flowrag parses documents into nodes. Each node keeps a link to its source. "
    "Adjacent nodes are linked both ways. Metadata from the document is copied into every node. "
    "Chunks never exceed the configured size. Overlap repeats the tail of the previous chunk."
)


def test_sentence_parser_overlap_and_relationships():
    doc = Document(text="One. Two. Three.")
    parser = SentenceNodeParser(chunk_size=10, chunk_overlap=2)

    nodes = parser.get_nodes_from_documents([doc])

    assert [n.text for n in nodes] == ["One. Two.", "wo. Three."]
    assert nodes[0].next_node.node_id == nodes[1].node_id
    assert nodes[1].prev_node.node_id == nodes[0].node_id
    assert nodes[0].prev_node is None
    assert nodes[1].next_node is None
    assert all(n.source_node.node_id == doc.node_id for n in nodes)
    assert (nodes[0].start_char_idx, nodes[0].end_char_idx) == (0, 9)
    assert (nodes[1].start_char_idx, nodes[1].end_char_idx) == (6, 16)


@pytest.mark.parametrize("include_prev_next_rel", [True, False])
def test_sibling_links_follow_flag(include_prev_next_rel):
    docs = [Document(text=LONG_TEXT), Document(text=LONG_TEXT[::-1])]
    parser = SentenceNodeParser(chunk_size=60, chunk_overlap=10, include_prev_next_rel=include_prev_next_rel)

    nodes = parser.get_nodes_from_documents(docs)

    for doc in docs:
        siblings = [n for n in nodes if n.ref_doc_id == doc.node_id]
        assert len(siblings) > 1
        for prev, nxt in zip(siblings, siblings[1:]):
            if include_prev_next_rel:
                assert prev.next_node.node_id == nxt.node_id
                assert nxt.prev_node.node_id == prev.node_id
            else:
                assert prev.next_node is None
                assert nxt.prev_node is None


def test_chunks_fit_size_and_carry_metadata():
    doc = Document(text=LONG_TEXT, metadata={"author": "ann"})
    parser = SentenceNodeParser(chunk_size=60, chunk_overlap=10)

    nodes = parser.get_nodes_from_documents([doc])

    assert all(len(n.text) <= 60 for n in nodes)
    assert [n.metadata["chunk_index"] for n in nodes] == list(range(len(nodes)))
    assert all(n.metadata["chunk_count"] == len(nodes) for n in nodes)
    assert all(n.metadata["author"] == "ann" for n in nodes)
    assert all(n.metadata["source_doc_id"] == doc.node_id for n in nodes)

    starts = [n.start_char_idx for n in nodes]
    assert starts == sorted(starts)


def test_overlap_equal_to_chunk_size_is_rejected():
    with pytest.raises(ConfigInvalidError):
        SentenceSplitter(chunk_size=10, chunk_overlap=10)
    with pytest.raises(ConfigInvalidError):
        SentenceNodeParser(chunk_size=10, chunk_overlap=12)
    with pytest.raises(ConfigInvalidError):
        SentenceSplitter(chunk_size=0, chunk_overlap=0)


def test_empty_text_gives_no_chunks():
    splitter = SentenceSplitter(chunk_size=10, chunk_overlap=2)
    assert splitter.split_text("") == []
    assert SentenceNodeParser().get_nodes_from_documents([]) == []


def test_metadata_aware_parser_rejects_oversized_metadata():
    doc = Document(text="short text", metadata={"k": "x" * 50})
    parser = MetadataAwareNodeParser(chunk_size=20, chunk_overlap=0)

    with pytest.raises(MetadataTooLargeError):
        parser.get_nodes_from_documents([doc])


def test_metadata_aware_parser_reserves_room_for_metadata():
    doc = Document(text=LONG_TEXT, metadata={"title": "parsing"})
    plain = SentenceNodeParser(chunk_size=80, chunk_overlap=0).get_nodes_from_documents([doc])
    aware = MetadataAwareNodeParser(chunk_size=80, chunk_overlap=0).get_nodes_from_documents([doc])

    assert len(aware) >= len(plain)
    assert all(len(n.text) <= 80 - len("title: parsing") for n in aware)


def test_positional_metadata_follows_include_metadata():
    doc = Document(text=LONG_TEXT, metadata={"title": "parsing"})

    bare = SentenceNodeParser(chunk_size=80, chunk_overlap=0, include_metadata=False).get_nodes_from_documents([doc])
    assert all(n.metadata == {} for n in bare)

    aware = MetadataAwareNodeParser(chunk_size=80, chunk_overlap=0).get_nodes_from_documents([doc])
    for node in aware:
        assert "chunk_index" in node.metadata
        assert node.get_metadata_str(MetadataMode.EMBED) == "title: parsing"
        assert node.get_metadata_str(MetadataMode.LLM) == "title: parsing"


def test_simple_parser_one_node_per_document():
    docs = [Document(text="first"), Document(text="second")]
    nodes = SimpleNodeParser().get_nodes_from_documents(docs)

    assert [n.text for n in nodes] == ["first", "second"]
    assert [n.ref_doc_id for n in nodes] == [d.node_id for d in docs]


def test_parser_from_config():
    config = NodeParserConfig(chunk_size=40, chunk_overlap=5, include_prev_next_rel=False)
    parser = SentenceNodeParser.from_config(config)

    assert parser.splitter.chunk_size == 40
    assert parser.include_prev_next_rel is False


def test_parser_emits_parsing_and_chunking_events():
    collector = EventCollectorHandler()
    manager = CallbackManager([collector])
    parser = SentenceNodeParser(chunk_size=60, chunk_overlap=10, callback_manager=manager)

    parser.get_nodes_from_documents([Document(text=LONG_TEXT), Document(text="tiny")])

    assert len(collector.get_events_by_type(CBEventType.NODE_PARSING)) == 1
    chunking = collector.get_events_by_type(CBEventType.CHUNKING)
    assert len(chunking) == 2
    parsing_id = collector.get_events_by_type(CBEventType.NODE_PARSING)[0].id_
    assert all(collector.parent_ids[e.id_] == parsing_id for e in chunking)


def test_token_splitter_overlaps_whole_words(whitespace_tokenizer):
    splitter = TokenTextSplitter(chunk_size=3, chunk_overlap=1, tokenizer=whitespace_tokenizer)

    assert splitter.split_text("a b c d e") == ["a b c", "c d e"]


def test_sentence_window_parser():
    doc = Document(text="One is first. Two follows! Three is here? Four ends it.", metadata={"title": "count"})
    parser = SentenceWindowNodeParser(window_size=1)

    nodes = parser.get_nodes_from_documents([doc])

    assert [n.text for n in nodes] == ["One is first.", "Two follows!", "Three is here?", "Four ends it."]
    assert nodes[0].metadata["window"] == "One is first. Two follows!"
    assert nodes[1].metadata["window"] == "One is first. Two follows! Three is here?"
    assert nodes[3].metadata["window"] == "Three is here? Four ends it."
    assert all(n.metadata["original_text"] == n.text for n in nodes)
    assert nodes[1].get_metadata_str(MetadataMode.EMBED) == "title: count"

    replaced = MetadataReplacementPostprocessor(target_metadata_key="window").postprocess_nodes(
        [NodeWithScore(node=nodes[1], score=0.9)],
    )
    assert replaced[0].text == "One is first. Two follows! Three is here?"


def test_sentence_window_size_must_be_non_negative():
    with pytest.raises(ConfigInvalidError):
        SentenceWindowNodeParser(window_size=-1)


MARKDOWN = """Intro line before any header.

# Guide

Read this first.

## Install

```bash
# not a header
pip install flowrag
```

## Usage

Call the parser.

# Reference
"""


def test_markdown_parser_sections_and_header_paths():
    doc = Document(text=MARKDOWN, metadata={"source": "readme"})

    nodes = MarkdownNodeParser().get_nodes_from_documents([doc])

    assert [n.text.split("\n", 1)[0] for n in nodes] == [
        "Intro line before any header.",
        "# Guide",
        "## Install",
        "## Usage",
        "# Reference",
    ]
    assert "# not a header\npip install flowrag" in nodes[2].text
    assert [n.metadata["header_path"] for n in nodes] == [
        "/",
        "/Guide/",
        "/Guide/Install/",
        "/Guide/Usage/",
        "/Reference/",
    ]
    assert nodes[2].get_metadata_str(MetadataMode.EMBED) == "source: readme"
    assert nodes[1].next_node.node_id == nodes[2].node_id
