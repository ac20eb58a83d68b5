"""Score cutoff filtering."""

from typing import List, Optional

from .base_postprocessor import BasePostprocessor
from ..context import C
from ..schema import NodeWithScore, QueryBundle


@C.register_postprocessor("similarity")
class SimilarityPostprocessor(BasePostprocessor):
    """Drop nodes scoring below `similarity_cutoff`. Unscored and zero-scored nodes are dropped too."""

    def __init__(self, similarity_cutoff: float = 0.0, name: str = ""):
        super().__init__(name=name)
        self.similarity_cutoff: float = similarity_cutoff

    def _postprocess_nodes(self, nodes: List[NodeWithScore], query_bundle: Optional[QueryBundle]) -> List[NodeWithScore]:
        return [node for node in nodes if node.score and node.score >= self.similarity_cutoff]
