"""Unbounded in-process chat memory."""

from typing import List, Optional

from .base_memory import BaseMemory
from ..schema import Message


class SimpleMemory(BaseMemory):
    """Unbounded history; `get` returns everything."""

    def get(self, input: Optional[str] = None, **kwargs) -> List[Message]:  # noqa: A002
        return self.get_all()
