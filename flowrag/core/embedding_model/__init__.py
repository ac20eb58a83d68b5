"""Embedding model collaborators.

- BaseEmbeddingModel: batching, retrying, traced base class
- MockEmbeddingModel: deterministic hashing backend registered as `mock`
- OpenAICompatibleEmbeddingModel: `openai` client backend registered as `openai_compatible`
"""

from .base_embedding_model import BaseEmbeddingModel
from .mock_embedding_model import MockEmbeddingModel
from .openai_compatible_embedding_model import OpenAICompatibleEmbeddingModel

__all__ = [
    "BaseEmbeddingModel",
    "MockEmbeddingModel",
    "OpenAICompatibleEmbeddingModel",
]
