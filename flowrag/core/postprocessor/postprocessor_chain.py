"""Compose postprocessors into one."""

from typing import List, Optional

from loguru import logger

from .base_postprocessor import BasePostprocessor
from ..schema import NodeWithScore, QueryBundle


class PostprocessorChain(BasePostprocessor):
    """Apply postprocessors in order, each on the previous one's output."""

    def __init__(self, postprocessors: Optional[List[BasePostprocessor]] = None, name: str = ""):
        super().__init__(name=name)
        self.postprocessors: List[BasePostprocessor] = list(postprocessors or [])

    def add(self, postprocessor: BasePostprocessor) -> "PostprocessorChain":
        self.postprocessors.append(postprocessor)
        return self

    def _postprocess_nodes(self, nodes: List[NodeWithScore], query_bundle: Optional[QueryBundle]) -> List[NodeWithScore]:
        for postprocessor in self.postprocessors:
            size = len(nodes)
            nodes = postprocessor.postprocess_nodes(nodes, query_bundle)
            logger.debug(f"postprocessor={postprocessor.name} nodes {size} -> {len(nodes)}")
        return nodes
