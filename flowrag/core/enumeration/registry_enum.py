"""Registry enumeration for pluggable component types."""

from enum import Enum


class RegistryEnum(str, Enum):
    """Kinds of components that can be registered on the service context."""

    LLM = "llm"
    EMBEDDING_MODEL = "embedding_model"
    TOKEN_COUNTER = "token_counter"
    EXTRACTOR = "extractor"
    POSTPROCESSOR = "postprocessor"
    NODE_PARSER = "node_parser"
