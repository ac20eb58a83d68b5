"""Base embedding model implementation.

Backends implement `_get_embeddings` for a batch of texts. This base class
adds batching by `max_batch_size`, the retry loop, wrapping of the final
failure into `EmbedFailedError` and `embedding` callback events.
"""

from abc import ABC
from typing import List, Optional

from loguru import logger

from ..enumeration import CBEventType, EventPayload
from ..exceptions import EmbedFailedError


class BaseEmbeddingModel(ABC):
    """
    Abstract base class for embedding models.

    Embeddings are dense `List[float]` vectors of length `dimensions`.
    """

    def __init__(
        self,
        model_name: str = "",
        dimensions: int = 1024,
        max_batch_size: int = 10,
        max_retries: int = 3,
        callback_manager=None,
        **kwargs,
    ):
        """
        Args:
            model_name: Name of the embedding model.
            dimensions: Dimensionality of the embedding vectors.
            max_batch_size: Maximum number of texts per provider call.
            max_retries: Number of attempts per batch.
            callback_manager: Optional `CallbackManager` receiving `embedding` events.
        """
        self.model_name: str = model_name
        self.dimensions: int = dimensions
        self.max_batch_size: int = max(1, max_batch_size)
        self.max_retries: int = max(1, max_retries)
        self.callback_manager = callback_manager
        self.kwargs: dict = kwargs

    def _get_embeddings(self, input_texts: List[str]) -> List[List[float]]:
        """Embed one batch; must return one vector per input text."""
        raise NotImplementedError

    def get_embeddings(self, input_texts: List[str]) -> List[List[float]]:
        """Embed one batch with retries.

        Raises:
            EmbedFailedError: When every attempt failed.
        """
        last_error: Optional[Exception] = None
        for _ in range(self.max_retries):
            try:
                embeddings = self._get_embeddings(input_texts)
                if len(embeddings) != len(input_texts):
                    raise ValueError(f"expected {len(input_texts)} embeddings, got {len(embeddings)}")
                return embeddings

            except Exception as e:
                last_error = e
                logger.exception(f"embedding model name={self.model_name} encounter error with e={e.args}")

        raise EmbedFailedError(f"embedding model name={self.model_name} failed", cause=last_error)

    def _embed_batched(self, texts: List[str]) -> List[List[float]]:
        embeddings: List[List[float]] = []
        for i in range(0, len(texts), self.max_batch_size):
            embeddings.extend(self.get_embeddings(texts[i : i + self.max_batch_size]))
        return embeddings

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Embed many texts, batched by `max_batch_size`, preserving order."""
        if not texts:
            return []

        if self.callback_manager is None:
            return self._embed_batched(texts)

        with self.callback_manager.event(CBEventType.EMBEDDING, {EventPayload.CHUNKS: list(texts)}) as event:
            embeddings = self._embed_batched(texts)
            event.on_end({EventPayload.EMBEDDINGS: embeddings})
            return embeddings

    def embed_text(self, text: str) -> List[float]:
        return self.embed_texts([text])[0]

    def embed_query(self, query: str) -> List[float]:
        """Embed a retrieval query. Backends with asymmetric query encoding override this."""
        return self.embed_text(query)
