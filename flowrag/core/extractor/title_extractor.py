"""Document titles inferred by the LLM from the first nodes of each document."""

from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from .base_extractor import LLMExtractor
from ..context import C, CancelToken
from ..exceptions import ConfigInvalidError
from ..schema import BaseNode

DOCUMENT_TITLE_KEY = "document_title"


@C.register_extractor("title")
class TitleExtractor(LLMExtractor):
    """Give every node the title of the document it belongs to.

    Nodes are grouped by `ref_doc_id` metadata, then by their SOURCE
    relationship, then by their own id. The first `nodes` nodes of each group
    yield one title candidate each; the candidates are then combined into one
    final title written to every node of the group.
    """

    def __init__(self, llm=None, nodes: int = 5, node_template: str = "", combine_template: str = "", **kwargs):
        super().__init__(llm=llm, **kwargs)
        if nodes < 1:
            raise ConfigInvalidError(f"TitleExtractor nodes={nodes} must be >= 1")
        self.nodes: int = nodes
        if node_template:
            self.prompt["title_node_prompt"] = node_template
        if combine_template:
            self.prompt["title_combine_prompt"] = combine_template

    @staticmethod
    def group_key(node: BaseNode) -> str:
        ref_doc_id = node.metadata.get("ref_doc_id")
        if ref_doc_id:
            return str(ref_doc_id)
        return node.ref_doc_id or node.node_id

    def _group(self, nodes: Sequence[BaseNode]) -> Dict[str, List[BaseNode]]:
        groups: Dict[str, List[BaseNode]] = {}
        for node in nodes:
            if not self.should_process(node):
                continue
            groups.setdefault(self.group_key(node), []).append(node)
        return groups

    def extract(self, nodes: Sequence[BaseNode], cancel_token: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        if not nodes:
            return []
        self.check_llm()

        groups = self._group(nodes)
        candidate_nodes = [(key, node) for key, group in groups.items() for node in group[: self.nodes]]
        candidates = self.run_jobs(
            lambda item: self.complete(
                self.prompt_format("title_node_prompt", context_str=self.get_node_content(item[1])),
            ),
            candidate_nodes,
            cancel_token=cancel_token,
            desc="title candidates",
        )

        candidates_by_group: Dict[str, List[str]] = {}
        for (key, _), candidate in zip(candidate_nodes, candidates):
            candidates_by_group.setdefault(key, []).append(candidate)

        keys = list(candidates_by_group.keys())
        titles = self.run_jobs(
            lambda key: self.complete(
                self.prompt_format("title_combine_prompt", context_str=", ".join(candidates_by_group[key])),
            ),
            keys,
            cancel_token=cancel_token,
            desc="title combine",
        )
        title_by_group = dict(zip(keys, titles))
        logger.info(f"extractor={self.name} groups={len(title_by_group)} nodes={len(nodes)}")

        result: List[Dict[str, Any]] = []
        for node in nodes:
            if not self.should_process(node):
                result.append({})
                continue
            result.append({DOCUMENT_TITLE_KEY: title_by_group[self.group_key(node)]})
        return result
