"""Token counting.

A token counter is any callable `str -> non-negative int`. The classes
here also count whole message lists. `BaseToken` is the model-agnostic
fallback: it estimates one token per four characters.
"""

import math
from typing import List

from ..context import C
from ..schema import Message


@C.register_token_counter("base")
class BaseToken:
    """Heuristic token counter: `ceil(chars / 4)`."""

    def __init__(self, model_name: str = "", **kwargs):
        """
        Args:
            model_name: Name of the model this counter approximates.
            **kwargs: Backend specific options, kept for subclasses.
        """
        self.model_name: str = model_name
        self.kwargs: dict = kwargs

    def count_text(self, text: str) -> int:
        return math.ceil(len(text) / 4) if text else 0

    def __call__(self, text: str) -> int:
        return self.count_text(text)

    def token_count(self, messages: List[Message], **_kwargs) -> int:
        """Count tokens across message contents."""
        return sum(self.count_text(message.content) for message in messages)


@C.register_token_counter("whitespace")
class WhitespaceToken(BaseToken):
    """One token per whitespace-separated word."""

    def count_text(self, text: str) -> int:
        return len(text.split())


@C.register_token_counter("char")
class CharToken(BaseToken):
    """One token per character."""

    def count_text(self, text: str) -> int:
        return len(text)
