"""Chat memory bounded by a token budget."""

from typing import List, Optional

from loguru import logger

from .base_memory import BaseMemory, Tokenizer, count_message_tokens
from ..enumeration import Role
from ..exceptions import ConfigInvalidError
from ..schema import MemoryConfig, Message
from ..token import BaseToken

DEFAULT_TOKEN_LIMIT = MemoryConfig().token_limit
DEFAULT_TOKEN_LIMIT_RATIO = MemoryConfig().token_limit_ratio

_REPLY_ROLES = (Role.ASSISTANT, Role.TOOL)


class ChatMemoryBuffer(BaseMemory):
    """Token-bounded window over the chat history.

    `get` returns the longest suffix of the history whose token count plus
    `initial_token_count` fits in `token_limit`. The window never starts with
    an assistant or tool message. Older messages stay stored; they are only
    left out of the window.

    Args:
        token_limit: Maximum tokens of the returned window.
        tokenizer: Callable `str -> int`, defaults to `BaseToken()`.
        chat_history: Initial messages.
    """

    def __init__(
        self,
        token_limit: int = DEFAULT_TOKEN_LIMIT,
        tokenizer: Optional[Tokenizer] = None,
        chat_history: Optional[List[Message]] = None,
    ):
        if token_limit <= 0:
            raise ConfigInvalidError(f"token_limit={token_limit} must be > 0")
        super().__init__(chat_history)
        self.token_limit: int = token_limit
        self.tokenizer: Tokenizer = tokenizer or BaseToken()

    @classmethod
    def from_defaults(
        cls,
        chat_history: Optional[List[Message]] = None,
        llm=None,
        token_limit: Optional[int] = None,
        tokenizer: Optional[Tokenizer] = None,
    ) -> "ChatMemoryBuffer":
        """Build a buffer whose limit defaults to 75% of the LLM context window."""
        if not token_limit:
            context_window = getattr(llm, "context_window", None)
            if context_window:
                token_limit = int(context_window * DEFAULT_TOKEN_LIMIT_RATIO)
            else:
                token_limit = DEFAULT_TOKEN_LIMIT
        return cls(token_limit=token_limit, tokenizer=tokenizer, chat_history=chat_history)

    def get(self, input: Optional[str] = None, initial_token_count: int = 0, **kwargs) -> List[Message]:  # noqa: A002
        if initial_token_count > self.token_limit:
            raise ConfigInvalidError(
                f"initial_token_count={initial_token_count} exceeds token_limit={self.token_limit}",
            )

        history = self.get_all()
        if not history:
            return []

        message_count = len(history)
        token_count = count_message_tokens(self.tokenizer, history) + initial_token_count
        while token_count > self.token_limit and message_count > 1:
            message_count -= 1
            while message_count > 0 and history[-message_count].role in _REPLY_ROLES:
                message_count -= 1
            if message_count <= 0:
                break
            token_count = count_message_tokens(self.tokenizer, history[-message_count:]) + initial_token_count

        if token_count > self.token_limit or message_count <= 0:
            logger.warning(f"memory window empty: token_limit={self.token_limit} messages={len(history)}")
            return []
        return history[-message_count:]
