"""Chat memory: an unbounded list, a token-bounded window and a summarizing window."""

from .base_memory import BaseMemory, count_message_tokens
from .chat_memory_buffer import ChatMemoryBuffer
from .chat_summary_memory_buffer import ChatSummaryMemoryBuffer
from .simple_memory import SimpleMemory

__all__ = [
    "BaseMemory",
    "count_message_tokens",
    "ChatMemoryBuffer",
    "ChatSummaryMemoryBuffer",
    "SimpleMemory",
]
