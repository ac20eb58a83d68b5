"""Error taxonomy shared by every flowrag component."""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification carried by every `FlowRagError`."""

    CONFIG_INVALID = "CONFIG_INVALID"
    LLM_REQUIRED = "LLM_REQUIRED"
    LLM_FAILED = "LLM_FAILED"
    EMBED_FAILED = "EMBED_FAILED"
    DIM_MISMATCH = "DIM_MISMATCH"
    METADATA_TOO_LARGE = "METADATA_TOO_LARGE"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    NOT_FOUND = "NOT_FOUND"
    CANCELLED = "CANCELLED"
    TIMEOUT = "TIMEOUT"
    PANIC = "PANIC"
    HANDLER_FAILED = "HANDLER_FAILED"
    INVALID_KIND = "INVALID_KIND"
