"""Rerank nodes by asking an LLM which ones answer the query.

Nodes are shown to the LLM in batches of numbered documents. The answer is
read as `Doc: <n>, Relevance: <1-10>` lines; the chosen nodes are rescored
with `relevance / 10` and everything else in the batch is dropped.
"""

import re
from pathlib import Path
from typing import List, Optional, Tuple

from loguru import logger

from .base_postprocessor import BasePostprocessor
from ..context import C, PromptHandler
from ..exceptions import ConfigInvalidError, LLMFailedError, LLMRequiredError
from ..schema import NodeWithScore, QueryBundle

DEFAULT_RELEVANCE = 5.0
MAX_RELEVANCE = 10.0

_CHOICE_PATTERNS = [
    re.compile(r"Doc(?:ument)?[:\s]*(\d+)[,\s]*Relevance[:\s]*(\d+(?:\.\d+)?)", re.IGNORECASE),
    re.compile(r"(\d+)[:\s]*Relevance[:\s]*(\d+(?:\.\d+)?)", re.IGNORECASE),
    re.compile(r"Doc(?:ument)?[:\s]*(\d+)", re.IGNORECASE),
]


def parse_choice_select_answer(answer: str, num_choices: int) -> List[Tuple[int, float]]:
    """Return `(zero-based index, relevance)` pairs in answer order.

    Out-of-range and repeated document numbers are skipped. A line naming a
    document without a relevance gets `DEFAULT_RELEVANCE`.

    Example:
        ```python
        parse_choice_select_answer("Doc: 2, Relevance: 9\\nDoc: 1", 3)  # [(1, 9.0), (0, 5.0)]
        ```
    """
    choices: List[Tuple[int, float]] = []
    seen = set()
    for line in answer.splitlines():
        line = line.strip()
        if not line:
            continue

        for pattern in _CHOICE_PATTERNS:
            match = pattern.search(line)
            if match is None:
                continue
            doc_num = int(match.group(1))
            relevance = float(match.group(2)) if match.lastindex and match.lastindex > 1 else DEFAULT_RELEVANCE
            if 1 <= doc_num <= num_choices and doc_num not in seen:
                seen.add(doc_num)
                choices.append((doc_num - 1, relevance))
            break
    return choices


@C.register_postprocessor("llm_rerank")
class LLMRerankPostprocessor(BasePostprocessor):
    """Keep the `top_n` nodes the LLM rates most relevant to the query.

    Args:
        llm: LLM collaborator; required once nodes and a query are given.
        top_n: Number of nodes returned.
        choice_batch_size: Nodes shown to the LLM per call.
        max_content_chars: Node text is cut to this many characters in the prompt.
        choice_select_prompt: Overrides the `choice_select_prompt` template.
    """

    prompt_file_path: Path = Path(__file__).parent / "postprocessor_prompt.yaml"

    def __init__(
        self,
        llm=None,
        top_n: int = 10,
        choice_batch_size: int = 10,
        max_content_chars: int = 500,
        choice_select_prompt: str = "",
        language: str = "",
        name: str = "",
    ):
        if top_n < 1:
            raise ConfigInvalidError(f"top_n={top_n} must be >= 1")
        if choice_batch_size < 1:
            raise ConfigInvalidError(f"choice_batch_size={choice_batch_size} must be >= 1")
        super().__init__(name=name)
        self.llm = llm
        self.top_n: int = top_n
        self.choice_batch_size: int = choice_batch_size
        self.max_content_chars: int = max_content_chars
        self.prompt = PromptHandler(language=language).load_prompt_by_file(self.prompt_file_path)
        if choice_select_prompt:
            self.prompt["choice_select_prompt"] = choice_select_prompt

    def format_batch(self, batch: List[NodeWithScore]) -> str:
        parts = []
        for i, node in enumerate(batch, start=1):
            content = node.get_content()
            if len(content) > self.max_content_chars:
                content = content[: self.max_content_chars] + "..."
            parts.append(f"Document {i}:\n{content}\n\n")
        return "".join(parts)

    def _complete(self, prompt: str) -> str:
        try:
            return self.llm.complete(prompt)
        except LLMFailedError:
            raise
        except Exception as e:
            raise LLMFailedError(f"postprocessor={self.name} llm call failed", cause=e) from e

    def _rerank_batch(self, batch: List[NodeWithScore], query_str: str) -> List[NodeWithScore]:
        prompt = self.prompt.prompt_format(
            "choice_select_prompt",
            context_str=self.format_batch(batch),
            query_str=query_str,
        )
        answer = self._complete(prompt)
        choices = parse_choice_select_answer(answer, len(batch))
        if not choices:
            logger.warning(f"postprocessor={self.name} could not parse answer={answer!r}, batch kept as is")
            return batch

        return [
            NodeWithScore(node=batch[index].node, score=min(max(relevance, 0.0), MAX_RELEVANCE) / MAX_RELEVANCE)
            for index, relevance in choices
        ]

    def _postprocess_nodes(self, nodes: List[NodeWithScore], query_bundle: Optional[QueryBundle]) -> List[NodeWithScore]:
        if query_bundle is None or not query_bundle.query_str:
            return nodes
        if self.llm is None:
            raise LLMRequiredError(f"postprocessor={self.name} requires an llm")

        reranked: List[NodeWithScore] = []
        for start in range(0, len(nodes), self.choice_batch_size):
            batch = nodes[start: start + self.choice_batch_size]
            reranked.extend(self._rerank_batch(batch, query_bundle.query_str))

        reranked.sort(key=lambda x: x.get_score(), reverse=True)
        return reranked[: self.top_n]
