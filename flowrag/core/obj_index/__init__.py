"""Object index: object-to-node mapping, cosine retriever and the `ObjectIndex` facade."""

from .object_index import ObjectIndex
from .object_node_mapping import ObjectNodeMapping, serialize_object
from .object_retriever import ObjectRetriever
from .tool_node_mapping import ToolNodeMapping

__all__ = [
    "ObjectIndex",
    "ObjectNodeMapping",
    "serialize_object",
    "ObjectRetriever",
    "ToolNodeMapping",
]
