"""Keyword include / exclude filtering of nodes."""

from typing import List, Optional

from .base_postprocessor import BasePostprocessor
from ..context import C
from ..enumeration import MetadataMode
from ..schema import NodeWithScore, QueryBundle


@C.register_postprocessor("keyword")
class KeywordPostprocessor(BasePostprocessor):
    """Keep nodes containing every required keyword and none of the excluded ones."""

    def __init__(
        self,
        required_keywords: Optional[List[str]] = None,
        exclude_keywords: Optional[List[str]] = None,
        case_sensitive: bool = False,
        name: str = "",
    ):
        super().__init__(name=name)
        self.required_keywords: List[str] = list(required_keywords or [])
        self.exclude_keywords: List[str] = list(exclude_keywords or [])
        self.case_sensitive: bool = case_sensitive

    def _norm(self, text: str) -> str:
        return text if self.case_sensitive else text.lower()

    def _keep(self, content: str) -> bool:
        content = self._norm(content)
        if any(self._norm(keyword) not in content for keyword in self.required_keywords):
            return False
        return not any(self._norm(keyword) in content for keyword in self.exclude_keywords)

    def _postprocess_nodes(self, nodes: List[NodeWithScore], query_bundle: Optional[QueryBundle]) -> List[NodeWithScore]:
        return [node for node in nodes if self._keep(node.get_content(MetadataMode.NONE))]
