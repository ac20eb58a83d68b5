"""Schema module for flowrag.

Pydantic models for nodes and documents, retrieval results and queries,
chat messages, tool descriptions and service configuration.
"""

from .message import Message
from .node import (
    BaseNode,
    Document,
    ImageNode,
    IndexNode,
    MultimodalNode,
    RelatedNodeInfo,
    TextNode,
    render_metadata_value,
)
from .node_with_score import MetadataFilter, MetadataFilters, NodeWithScore, QueryBundle
from .service_config import (
    EmbeddingModelConfig,
    ExtractorConfig,
    LLMConfig,
    LoggerConfig,
    MemoryConfig,
    NodeParserConfig,
    RetryPolicyConfig,
    ServiceConfig,
    TokenCounterConfig,
    WorkflowConfig,
)
from .tool import ToolMetadata, ToolOutput

__all__ = [
    "Message",
    "BaseNode",
    "Document",
    "ImageNode",
    "IndexNode",
    "MultimodalNode",
    "RelatedNodeInfo",
    "TextNode",
    "render_metadata_value",
    "MetadataFilter",
    "MetadataFilters",
    "NodeWithScore",
    "QueryBundle",
    "EmbeddingModelConfig",
    "ExtractorConfig",
    "LLMConfig",
    "LoggerConfig",
    "MemoryConfig",
    "NodeParserConfig",
    "RetryPolicyConfig",
    "ServiceConfig",
    "TokenCounterConfig",
    "WorkflowConfig",
    "ToolMetadata",
    "ToolOutput",
]
