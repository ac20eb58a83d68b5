"""OpenAI-compatible embedding model implementation."""

import os
from typing import List, Literal

from openai import OpenAI

from .base_embedding_model import BaseEmbeddingModel
from ..context import C


@C.register_embedding_model("openai_compatible")
class OpenAICompatibleEmbeddingModel(BaseEmbeddingModel):
    """
    Embeddings through the `openai` client.

    Attributes:
        api_key: API key, defaults to the `FLOWRAG_EMBEDDING_API_KEY` env var.
        base_url: Endpoint, defaults to the `FLOWRAG_EMBEDDING_BASE_URL` env var.
        encoding_format: Encoding format for embeddings ("float" or "base64").
    """

    def __init__(
        self,
        model_name: str = "",
        dimensions: int = 1024,
        api_key: str | None = None,
        base_url: str | None = None,
        encoding_format: Literal["float", "base64"] = "float",
        **kwargs,
    ):
        super().__init__(model_name=model_name, dimensions=dimensions, **kwargs)
        self.api_key = api_key or os.getenv("FLOWRAG_EMBEDDING_API_KEY", "")
        self.base_url = base_url or os.getenv("FLOWRAG_EMBEDDING_BASE_URL", "")
        self.encoding_format = encoding_format
        self._client = OpenAI(api_key=self.api_key, base_url=self.base_url or None)

    def _get_embeddings(self, input_texts: List[str]) -> List[List[float]]:
        completion = self._client.embeddings.create(
            model=self.model_name,
            input=input_texts,
            dimensions=self.dimensions,
            encoding_format=self.encoding_format,
        )

        result_emb = [[] for _ in range(len(input_texts))]
        for emb in completion.data:
            result_emb[emb.index] = emb.embedding
        return result_emb
