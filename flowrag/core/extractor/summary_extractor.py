"""LLM summaries of each node and, optionally, its neighbours."""

from typing import Any, Dict, List, Optional, Sequence

from .base_extractor import LLMExtractor
from ..context import C, CancelToken
from ..exceptions import ConfigInvalidError
from ..schema import BaseNode

SECTION_SUMMARY_KEY = "section_summary"
PREV_SECTION_SUMMARY_KEY = "prev_section_summary"
NEXT_SECTION_SUMMARY_KEY = "next_section_summary"

_SUMMARY_TYPES = {"self", "prev", "next"}


@C.register_extractor("summary")
class SummaryExtractor(LLMExtractor):
    """Summarize every node, optionally copying neighbour summaries.

    Args:
        summaries: Subset of {"self", "prev", "next"}. "prev" writes the summary
            of the preceding node in the batch, "next" the following one.
    """

    def __init__(self, llm=None, summaries: Optional[List[str]] = None, prompt_template: str = "", **kwargs):
        super().__init__(llm=llm, **kwargs)
        self.summaries: List[str] = list(summaries) if summaries is not None else ["self"]
        unknown = set(self.summaries) - _SUMMARY_TYPES
        if unknown or not self.summaries:
            raise ConfigInvalidError(f"SummaryExtractor summaries={self.summaries} must be a non-empty subset of "
                                     f"{sorted(_SUMMARY_TYPES)}")
        if prompt_template:
            self.prompt["summary_prompt"] = prompt_template

    def _summarize(self, node: BaseNode) -> str:
        if not self.should_process(node):
            return ""
        return self.complete(self.prompt_format("summary_prompt", context_str=self.get_node_content(node)))

    def extract(self, nodes: Sequence[BaseNode], cancel_token: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        if not nodes:
            return []
        self.check_llm()

        summaries = self.run_jobs(self._summarize, nodes, cancel_token=cancel_token, desc="summaries")

        result: List[Dict[str, Any]] = []
        for i, node in enumerate(nodes):
            metadata: Dict[str, Any] = {}
            if self.should_process(node):
                if "self" in self.summaries:
                    metadata[SECTION_SUMMARY_KEY] = summaries[i]
                if "prev" in self.summaries and i > 0:
                    metadata[PREV_SECTION_SUMMARY_KEY] = summaries[i - 1]
                if "next" in self.summaries and i < len(nodes) - 1:
                    metadata[NEXT_SECTION_SUMMARY_KEY] = summaries[i + 1]
            result.append(metadata)
        return result
