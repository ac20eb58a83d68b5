"""Trim node text to the sentences closest to the query embedding."""

from typing import List, Optional

from loguru import logger

from .base_postprocessor import BasePostprocessor
from ..context import C
from ..schema import NodeWithScore, QueryBundle
from ..utils import cosine_similarity

_SENTENCE_ENDS = ".!?"


def split_sentences(text: str) -> List[str]:
    """Split at `.`, `!` or `?` followed by whitespace and an uppercase letter (or the end), and at blank lines."""
    sentences: List[str] = []
    current: List[str] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        current.append(ch)
        if ch in _SENTENCE_ENDS:
            if i + 1 >= n:
                sentences.append("".join(current))
                current = []
            elif text[i + 1].isspace():
                j = i + 1
                while j < n and text[j].isspace():
                    j += 1
                if j >= n or text[j].isupper():
                    sentences.append("".join(current))
                    current = []
        elif ch == "\n" and i + 1 < n and text[i + 1] == "\n":
            sentences.append("".join(current))
            current = []
            i += 1
        i += 1

    if current:
        sentences.append("".join(current))
    return sentences


@C.register_postprocessor("sentence_optimizer")
class SentenceOptimizerPostprocessor(BasePostprocessor):
    """Shrink each node to the sentences most similar to the query.

    Sentences scoring at least `threshold` are ranked by cosine similarity to
    the query embedding; the best `top_k` are kept in their original order,
    each widened by `context_window` neighbours on both sides. Changed nodes
    are copies carrying `original_text` and `optimized=True` in metadata.
    """

    def __init__(
        self,
        embed_model=None,
        top_k: int = 5,
        threshold: float = 0.0,
        context_window: int = 0,
        preserve_paragraphs: bool = False,
        name: str = "",
    ):
        super().__init__(name=name)
        self.embed_model = embed_model
        self.top_k: int = top_k
        self.threshold: float = threshold
        self.context_window: int = context_window
        self.preserve_paragraphs: bool = preserve_paragraphs

    def optimize_text(self, text: str, query_embedding: List[float]) -> str:
        sentences = [s.strip() for s in split_sentences(text)]
        candidates = [(i, s) for i, s in enumerate(sentences) if s]
        if not candidates:
            return text

        embeddings = self.embed_model.embed_texts([s for _, s in candidates])
        scored = []
        for (i, sentence), embedding in zip(candidates, embeddings):
            score = cosine_similarity(query_embedding, embedding)
            if score >= self.threshold:
                scored.append((score, i))
        if not scored:
            return text

        scored.sort(key=lambda x: (-x[0], x[1]))
        selected = {i for _, i in scored[: self.top_k]}
        if self.context_window > 0:
            selected = {
                j
                for i in selected
                for j in range(i - self.context_window, i + self.context_window + 1)
                if 0 <= j < len(sentences)
            }

        parts = [sentences[i] for i in sorted(selected) if sentences[i]]
        return ("\n\n" if self.preserve_paragraphs else " ").join(parts)

    def _postprocess_nodes(self, nodes: List[NodeWithScore], query_bundle: Optional[QueryBundle]) -> List[NodeWithScore]:
        if self.embed_model is None or query_bundle is None or not query_bundle.query_str:
            return nodes

        query_embedding = query_bundle.embedding or self.embed_model.embed_query(query_bundle.query_str)
        result: List[NodeWithScore] = []
        for node in nodes:
            optimized = self.optimize_text(node.text, query_embedding)
            if optimized == node.text:
                result.append(node)
                continue

            new_node = node.node.model_copy(deep=True)
            new_node.set_content(optimized)
            new_node.update_metadata({"original_text": node.text, "optimized": True})
            result.append(NodeWithScore(node=new_node, score=node.score))
        logger.debug(f"sentence optimizer nodes={len(nodes)} query={query_bundle.query_str!r}")
        return result
