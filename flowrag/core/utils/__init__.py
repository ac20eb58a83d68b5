"""Utility helpers for the flowrag core package.

- common helpers (name conversion, env loading, singleton, ISO-8601 durations)
- loguru initialisation
- timing context manager and decorator
- layered pydantic configuration parser
- reader-writer lock
- dense-vector similarity helpers
"""

from .common_utils import camel_to_snake, format_duration, load_env, singleton
from .logger_utils import init_logger
from .pydantic_config_parser import PydanticConfigParser
from .rw_lock import ReadWriteLock
from .timer import Timer, timer
from .vector_utils import (
    cosine_similarity,
    dot_product,
    euclidean_distance,
    euclidean_similarity,
    magnitude,
    normalize,
    similarity,
    top_k_similar,
)

__all__ = [
    "camel_to_snake",
    "format_duration",
    "load_env",
    "singleton",
    "init_logger",
    "PydanticConfigParser",
    "ReadWriteLock",
    "Timer",
    "timer",
    "cosine_similarity",
    "dot_product",
    "euclidean_distance",
    "euclidean_similarity",
    "magnitude",
    "normalize",
    "similarity",
    "top_k_similar",
]
