"""Postprocessors transform retrieved `NodeWithScore` lists under a query."""

from abc import ABC, abstractmethod
from typing import List, Optional, Union

from ..context import C
from ..schema import NodeWithScore, QueryBundle


def as_query_bundle(query: Union[str, QueryBundle, None]) -> Optional[QueryBundle]:
    if query is None or isinstance(query, QueryBundle):
        return query
    return QueryBundle(query_str=query)


class BasePostprocessor(ABC):

    def __init__(self, name: str = ""):
        self.name: str = name or self.__class__.__name__

    @abstractmethod
    def _postprocess_nodes(self, nodes: List[NodeWithScore], query_bundle: Optional[QueryBundle]) -> List[NodeWithScore]:
        """Transform a non-empty node list."""

    def postprocess_nodes(
        self,
        nodes: List[NodeWithScore],
        query_bundle: Union[str, QueryBundle, None] = None,
    ) -> List[NodeWithScore]:
        """Transform `nodes`; an empty list passes through unchanged."""
        if not nodes:
            return nodes
        return self._postprocess_nodes(list(nodes), as_query_bundle(query_bundle))

    def __call__(self, nodes: List[NodeWithScore], query_bundle: Union[str, QueryBundle, None] = None):
        return self.postprocess_nodes(nodes, query_bundle)


@C.register_postprocessor("identity")
class IdentityPostprocessor(BasePostprocessor):

    def _postprocess_nodes(self, nodes: List[NodeWithScore], query_bundle: Optional[QueryBundle]) -> List[NodeWithScore]:
        return nodes
