"""Swap node text for a metadata value, e.g. a sentence window."""

from typing import List, Optional

from .base_postprocessor import BasePostprocessor
from ..context import C
from ..schema import NodeWithScore, QueryBundle


@C.register_postprocessor("metadata_replacement")
class MetadataReplacementPostprocessor(BasePostprocessor):
    """Replace node text with the string stored under `target_metadata_key`.

    Nodes lacking the key, or holding a non-string value, are returned as is.
    Replaced nodes are copies; the input nodes are left untouched.
    """

    def __init__(self, target_metadata_key: str, name: str = ""):
        super().__init__(name=name)
        self.target_metadata_key: str = target_metadata_key

    def _replace(self, node: NodeWithScore) -> NodeWithScore:
        value = node.metadata.get(self.target_metadata_key)
        if not isinstance(value, str):
            return node
        new_node = node.node.model_copy(deep=True)
        new_node.set_content(value)
        return NodeWithScore(node=new_node, score=node.score)

    def _postprocess_nodes(self, nodes: List[NodeWithScore], query_bundle: Optional[QueryBundle]) -> List[NodeWithScore]:
        return [self._replace(node) for node in nodes]
