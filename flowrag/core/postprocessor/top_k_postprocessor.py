"""Truncate a node list to its first entries."""

from typing import List, Optional

from .base_postprocessor import BasePostprocessor
from ..context import C
from ..exceptions import ConfigInvalidError
from ..schema import NodeWithScore, QueryBundle


@C.register_postprocessor("top_k")
class TopKPostprocessor(BasePostprocessor):
    """Keep the first `top_k` nodes in their current order."""

    def __init__(self, top_k: int = 5, name: str = ""):
        if top_k < 0:
            raise ConfigInvalidError(f"top_k={top_k} must be >= 0")
        super().__init__(name=name)
        self.top_k: int = top_k

    def _postprocess_nodes(self, nodes: List[NodeWithScore], query_bundle: Optional[QueryBundle]) -> List[NodeWithScore]:
        return nodes[: self.top_k]
