"""Deterministic embedding model for tests and offline use."""

import hashlib
import threading
from typing import Dict, List, Optional, Set

from .base_embedding_model import BaseEmbeddingModel
from ..context import C


@C.register_embedding_model("mock")
class MockEmbeddingModel(BaseEmbeddingModel):
    """Bag-of-words hashing embedder.

    Each lower-cased word adds one to the bucket `sha256(word) % dimensions`.
    Texts listed in `vectors` get the given vector instead, and texts in
    `fail_texts` make the batch containing them raise.
    """

    def __init__(
        self,
        model_name: str = "mock",
        dimensions: int = 64,
        vectors: Optional[Dict[str, List[float]]] = None,
        fail_texts: Optional[Set[str]] = None,
        max_retries: int = 1,
        **kwargs,
    ):
        super().__init__(model_name=model_name, dimensions=dimensions, max_retries=max_retries, **kwargs)
        self.vectors: Dict[str, List[float]] = dict(vectors or {})
        self.fail_texts: Set[str] = set(fail_texts or [])
        self.calls: List[List[str]] = []
        self._lock = threading.Lock()

    def _hash_embedding(self, text: str) -> List[float]:
        vector = [0.0] * self.dimensions
        for word in text.lower().split():
            bucket = int(hashlib.sha256(word.encode("utf-8")).hexdigest(), 16) % self.dimensions
            vector[bucket] += 1.0
        return vector

    def _get_embeddings(self, input_texts: List[str]) -> List[List[float]]:
        with self._lock:
            self.calls.append(list(input_texts))

        for text in input_texts:
            if text in self.fail_texts:
                raise RuntimeError(f"mock embedding failure for text={text[:20]}")

        return [list(self.vectors[t]) if t in self.vectors else self._hash_embedding(t) for t in input_texts]
