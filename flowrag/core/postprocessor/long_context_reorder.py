"""Reorder ranked nodes so the strongest sit at both ends of the context."""

from typing import List, Optional

from .base_postprocessor import BasePostprocessor
from ..context import C
from ..schema import NodeWithScore, QueryBundle


@C.register_postprocessor("long_context_reorder")
class LongContextReorder(BasePostprocessor):
    """Move the weakest nodes to the middle of the context.

    Models attend best to the start and end of a long context. After sorting
    by score (ties by node id), ranks go to positions 0, n-1, 1, n-2, ...:

        scores [0.95, 0.88, 0.82, 0.75, 0.68] -> [0.95, 0.82, 0.68, 0.75, 0.88]
    """

    def _postprocess_nodes(self, nodes: List[NodeWithScore], query_bundle: Optional[QueryBundle]) -> List[NodeWithScore]:
        ranked = sorted(nodes, key=lambda x: (-x.get_score(), x.node_id))
        reordered: List[Optional[NodeWithScore]] = [None] * len(ranked)
        left, right = 0, len(ranked) - 1
        for i, node in enumerate(ranked):
            if i % 2 == 0:
                reordered[left] = node
                left += 1
            else:
                reordered[right] = node
                right -= 1
        return reordered
