"""Token counters registered on the service context: `base`, `whitespace`, `char`."""

from .base_token import BaseToken, CharToken, WhitespaceToken

__all__ = [
    "BaseToken",
    "CharToken",
    "WhitespaceToken",
]
