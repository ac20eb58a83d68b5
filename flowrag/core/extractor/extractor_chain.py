"""Apply several extractors to the same nodes in order."""

from typing import Any, Dict, List, Optional, Sequence

from .base_extractor import BaseExtractor
from ..context import CancelToken
from ..schema import BaseNode


class ExtractorChain(BaseExtractor):
    """Run extractors one after another.

    Each extractor sees the metadata written by the ones before it and may
    override it.
    """

    def __init__(self, extractors: Optional[List[BaseExtractor]] = None, **kwargs):
        super().__init__(**kwargs)
        self.extractors: List[BaseExtractor] = list(extractors or [])

    def add(self, extractor: BaseExtractor) -> "ExtractorChain":
        self.extractors.append(extractor)
        return self

    def extract(self, nodes: Sequence[BaseNode], cancel_token: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        if not nodes:
            return []

        working = [node.model_copy(deep=True) for node in nodes]
        merged: List[Dict[str, Any]] = [{} for _ in nodes]
        for extractor in self.extractors:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            metadata_list = extractor.extract(working, cancel_token)
            for node, acc, metadata in zip(working, merged, metadata_list):
                node.update_metadata(metadata)
                acc.update(metadata)
        return merged
