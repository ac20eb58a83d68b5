import time
from typing import Any, Dict, List, Optional, Sequence

import pytest

from flowrag.core.callbacks import CallbackManager, EventCollectorHandler
from flowrag.core.context import C, CancelToken
from flowrag.core.enumeration import CBEventType
from flowrag.core.exceptions import CancelledError, ConfigInvalidError, LLMFailedError, LLMRequiredError
from flowrag.core.extractor import (
    DOCUMENT_TITLE_KEY,
    EXCERPT_KEYWORDS_KEY,
    NEXT_SECTION_SUMMARY_KEY,
    PREV_SECTION_SUMMARY_KEY,
    QUESTIONS_KEY,
    SECTION_SUMMARY_KEY,
    BaseExtractor,
    ExtractorChain,
    KeywordExtractor,
    QuestionsAnsweredExtractor,
    SummaryExtractor,
    TitleExtractor,
    parse_keywords,
    parse_questions,
)
from flowrag.core.schema import BaseNode, ImageNode, TextNode


class SlowLengthExtractor(BaseExtractor):
    """Later nodes finish first, so completion order is the reverse of input order."""

    def extract(self, nodes: Sequence[BaseNode], cancel_token: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        def _job(item):
            index, node = item
            time.sleep((len(nodes) - index) * 0.01)
            return {"length": len(node.text)}

        return self.run_jobs(_job, list(enumerate(nodes)), cancel_token=cancel_token)


def make_nodes(*texts: str) -> List[TextNode]:
    return [TextNode(text=text) for text in texts]


def test_metadata_follows_input_order():
    nodes = make_nodes("a", "bb", "ccc", "dddd", "eeeee", "ffffff")
    extractor = SlowLengthExtractor(num_workers=6)

    result = extractor.process_nodes(nodes)

    assert [n.metadata["length"] for n in result] == [1, 2, 3, 4, 5, 6]
    assert result[0] is nodes[0]


def test_keyword_extractor(mock_llm):
    llm = mock_llm(response_fn=lambda prompt: "alpha, beta, , gamma")
    nodes = make_nodes("first chunk", "second chunk")

    KeywordExtractor(llm=llm, keywords=3).process_nodes(nodes)

    assert all(n.metadata[EXCERPT_KEYWORDS_KEY] == "alpha, beta, gamma" for n in nodes)
    assert "Give 3 unique keywords" in llm.prompts[0]


def test_first_failure_fails_batch_without_partial_metadata(mock_llm):
    def _respond(prompt):
        if "bad" in prompt:
            raise RuntimeError("provider down")
        return "ok"

    nodes = make_nodes("good one", "bad one", "good two")

    with pytest.raises(LLMFailedError):
        KeywordExtractor(llm=mock_llm(response_fn=_respond)).process_nodes(nodes)

    assert all(EXCERPT_KEYWORDS_KEY not in n.metadata for n in nodes)


def test_copy_mode_leaves_input_untouched(mock_llm):
    nodes = make_nodes("text")
    extractor = KeywordExtractor(llm=mock_llm(response_fn=lambda p: "k"), in_place=False)

    result = extractor.process_nodes(nodes)

    assert EXCERPT_KEYWORDS_KEY not in nodes[0].metadata
    assert result[0].metadata[EXCERPT_KEYWORDS_KEY] == "k"
    assert result[0] is not nodes[0]
    assert result[0].node_id == nodes[0].node_id


def test_cancelled_token_stops_batch(mock_llm):
    llm = mock_llm(response_fn=lambda p: "k")
    token = CancelToken()
    token.cancel()

    with pytest.raises(CancelledError):
        KeywordExtractor(llm=llm).process_nodes(make_nodes("a", "b"), cancel_token=token)
    assert llm.call_count == 0


@pytest.mark.parametrize("extractor_cls", [KeywordExtractor, TitleExtractor, SummaryExtractor, QuestionsAnsweredExtractor])
def test_empty_input_and_missing_llm(extractor_cls):
    extractor = extractor_cls()

    assert extractor.extract([]) == []
    assert extractor.process_nodes([]) == []
    with pytest.raises(LLMRequiredError):
        extractor.extract(make_nodes("text"))


def test_non_text_nodes_are_skipped(mock_llm):
    llm = mock_llm(response_fn=lambda p: "k")
    nodes = [TextNode(text="t"), ImageNode(image="aGk=")]

    metadata = KeywordExtractor(llm=llm).extract(nodes)

    assert metadata == [{EXCERPT_KEYWORDS_KEY: "k"}, {}]
    assert llm.call_count == 1


def test_title_extractor_groups_by_document(mock_llm):
    def _respond(prompt):
        if "comprehensive title" in prompt:
            return "Title " + ("A" if "cand-a" in prompt else "B")
        return "cand-a" if "alpha" in prompt else "cand-b"

    nodes = [
        TextNode(text="alpha one", metadata={"ref_doc_id": "doc-a"}),
        TextNode(text="beta one", metadata={"ref_doc_id": "doc-b"}),
        TextNode(text="alpha two", metadata={"ref_doc_id": "doc-a"}),
    ]

    TitleExtractor(llm=mock_llm(response_fn=_respond), nodes=2).process_nodes(nodes)

    assert [n.metadata[DOCUMENT_TITLE_KEY] for n in nodes] == ["Title A", "Title B", "Title A"]


def test_summary_extractor_neighbours(mock_llm):
    nodes = make_nodes("n0", "n1", "n2")
    llm = mock_llm(response_fn=lambda p: "sum-" + next(t for t in ("n0", "n1", "n2") if t in p))

    SummaryExtractor(llm=llm, summaries=["self", "prev", "next"]).process_nodes(nodes)

    assert nodes[0].metadata[SECTION_SUMMARY_KEY] == "sum-n0"
    assert PREV_SECTION_SUMMARY_KEY not in nodes[0].metadata
    assert nodes[1].metadata[PREV_SECTION_SUMMARY_KEY] == "sum-n0"
    assert nodes[1].metadata[NEXT_SECTION_SUMMARY_KEY] == "sum-n2"
    assert NEXT_SECTION_SUMMARY_KEY not in nodes[2].metadata


def test_summary_extractor_rejects_unknown_kind():
    with pytest.raises(ConfigInvalidError):
        SummaryExtractor(summaries=["self", "sideways"])


def test_questions_extractor(mock_llm):
    llm = mock_llm(response_fn=lambda p: "1. What is X?\n2) Why Y?\n\n- How Z?")
    nodes = make_nodes("context")

    QuestionsAnsweredExtractor(llm=llm, questions=3).process_nodes(nodes)

    assert nodes[0].metadata[QUESTIONS_KEY] == "What is X?\nWhy Y?\nHow Z?"


def test_parsers():
    assert parse_keywords(" a ,b,, c ") == ["a", "b", "c"]
    assert parse_questions("1. What is X?\n- Why Y?\n\n") == ["What is X?", "Why Y?"]


def test_chain_later_extractors_see_earlier_metadata(mock_llm):
    def _respond(prompt):
        if "unique keywords" in prompt:
            return "kw"
        return "saw keywords" if "excerpt_keywords: kw" in prompt else "no keywords"

    llm = mock_llm(response_fn=_respond)
    chain = ExtractorChain().add(KeywordExtractor(llm=llm)).add(SummaryExtractor(llm=llm))
    nodes = make_nodes("body")

    chain.process_nodes(nodes)

    assert nodes[0].metadata[EXCERPT_KEYWORDS_KEY] == "kw"
    assert nodes[0].metadata[SECTION_SUMMARY_KEY] == "saw keywords"


def test_rewrite_template_and_callback_event(mock_llm):
    collector = EventCollectorHandler()
    extractor = KeywordExtractor(
        llm=mock_llm(response_fn=lambda p: "k"),
        rewrite_template=True,
        node_text_template="{metadata_str} | {content}",
        callback_manager=CallbackManager([collector]),
    )
    nodes = make_nodes("body")

    extractor.process_nodes(nodes)

    assert nodes[0].text_template == "{metadata_str} | {content}"
    assert len(collector.get_events_by_type(CBEventType.EXTRACTION)) == 1


def test_extractors_are_registered():
    assert C.get_extractor_class("keyword") is KeywordExtractor
    assert C.get_extractor_class("title") is TitleExtractor
