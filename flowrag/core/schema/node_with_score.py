"""Retrieval-side schema: scored nodes, query bundles and metadata filters."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .node import BaseNode
from ..enumeration import FilterCondition, FilterOperator, MetadataMode


class NodeWithScore(BaseModel):
    """A retrieved node and its similarity score (cosine, higher is closer)."""

    node: BaseNode = Field(...)
    score: Optional[float] = Field(default=None)

    @property
    def node_id(self) -> str:
        return self.node.node_id

    @property
    def text(self) -> str:
        return self.node.text

    @property
    def metadata(self) -> Dict[str, Any]:
        return self.node.metadata

    def get_score(self, raise_error: bool = False) -> float:
        if self.score is None:
            if raise_error:
                raise ValueError(f"node_id={self.node_id} has no score")
            return 0.0
        return self.score

    def get_content(self, metadata_mode: MetadataMode = MetadataMode.NONE) -> str:
        return self.node.get_content(metadata_mode)


class MetadataFilter(BaseModel):
    """Single `metadata[key] <operator> value` predicate."""

    key: str = Field(...)
    value: Any = Field(default=None)
    operator: FilterOperator = Field(default=FilterOperator.EQ)

    def matches(self, metadata: Dict[str, Any]) -> bool:
        if self.key not in metadata:
            return self.operator == FilterOperator.NIN
        actual = metadata[self.key]

        try:
            if self.operator == FilterOperator.EQ:
                return actual == self.value
            if self.operator == FilterOperator.NE:
                return actual != self.value
            if self.operator == FilterOperator.GT:
                return actual > self.value
            if self.operator == FilterOperator.LT:
                return actual < self.value
            if self.operator == FilterOperator.GTE:
                return actual >= self.value
            if self.operator == FilterOperator.LTE:
                return actual <= self.value
            if self.operator == FilterOperator.IN:
                return actual in self.value
            if self.operator == FilterOperator.NIN:
                return actual not in self.value
        except TypeError:
            return False
        return False


class MetadataFilters(BaseModel):
    """Filters combined with AND (default) or OR."""

    filters: List[MetadataFilter] = Field(default_factory=list)
    condition: FilterCondition = Field(default=FilterCondition.AND)

    def matches(self, metadata: Dict[str, Any]) -> bool:
        if not self.filters:
            return True
        results = (f.matches(metadata) for f in self.filters)
        if self.condition == FilterCondition.OR:
            return any(results)
        return all(results)


class QueryBundle(BaseModel):
    """A query string plus optional precomputed embedding and filters."""

    query_str: str = Field(default="")
    custom_embedding_strs: Optional[List[str]] = Field(default=None)
    embedding: Optional[List[float]] = Field(default=None)
    filters: Optional[MetadataFilters] = Field(default=None)

    @property
    def embedding_strs(self) -> List[str]:
        if self.custom_embedding_strs:
            return self.custom_embedding_strs
        return [self.query_str] if self.query_str else []
