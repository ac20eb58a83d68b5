import datetime
from typing import List

import pytest

from flowrag.core.embedding_model import BaseEmbeddingModel, MockEmbeddingModel
from flowrag.core.llm import MockLLM
from flowrag.core.postprocessor import FixedClock
from flowrag.core.token import WhitespaceToken

FIXED_NOW = datetime.datetime(2024, 6, 10, tzinfo=datetime.timezone.utc)


class OneHotEmbeddingModel(BaseEmbeddingModel):
    """`embed(s)` is one-hot at `ord(s[0]) % dimensions`; the empty string maps to the zero vector."""

    def __init__(self, dimensions: int = 8, **kwargs):
        super().__init__(model_name="one_hot", dimensions=dimensions, max_retries=1, **kwargs)

    def _get_embeddings(self, input_texts: List[str]) -> List[List[float]]:
        vectors = []
        for text in input_texts:
            vector = [0.0] * self.dimensions
            if text:
                vector[ord(text[0]) % self.dimensions] = 1.0
            vectors.append(vector)
        return vectors


@pytest.fixture
def one_hot_embed_model():
    return OneHotEmbeddingModel()


@pytest.fixture
def hash_embed_model():
    return MockEmbeddingModel(dimensions=64)


@pytest.fixture
def mock_llm():
    def _build(**kwargs):
        return MockLLM(**kwargs)

    return _build


@pytest.fixture
def whitespace_tokenizer():
    return WhitespaceToken()


@pytest.fixture
def fixed_clock():
    return FixedClock(FIXED_NOW)
