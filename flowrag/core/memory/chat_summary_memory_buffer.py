"""Chat memory that folds overflowing history into an LLM summary."""

from pathlib import Path
from typing import List, Optional, Tuple

from loguru import logger

from .base_memory import BaseMemory, Tokenizer, count_message_tokens
from .chat_memory_buffer import DEFAULT_TOKEN_LIMIT_RATIO
from ..context import PromptHandler
from ..enumeration import Role
from ..exceptions import ConfigInvalidError, LLMFailedError
from ..schema import MemoryConfig, Message
from ..token import BaseToken
from ..utils import timer

DEFAULT_SUMMARY_TOKEN_LIMIT = MemoryConfig().summary_token_limit


class ChatSummaryMemoryBuffer(BaseMemory):
    """Token-bounded history that summarizes what falls out of the window.

    On `get`, the newest messages that fit in `token_limit` are kept verbatim.
    Older ones are collapsed by the LLM into a single system message, and the
    stored history is replaced by `[summary] + kept`, so later calls see the
    summary as a prefix. Without an LLM the older messages are dropped from
    the result but the history is left as is.
    """

    prompt_file_path: Path = Path(__file__).parent / "memory_prompt.yaml"

    def __init__(
        self,
        llm=None,
        token_limit: int = DEFAULT_SUMMARY_TOKEN_LIMIT,
        tokenizer: Optional[Tokenizer] = None,
        summarize_prompt: str = "",
        count_initial_tokens: bool = False,
        chat_history: Optional[List[Message]] = None,
        language: str = "",
    ):
        if token_limit <= 0:
            raise ConfigInvalidError(f"token_limit={token_limit} must be > 0")
        super().__init__(chat_history)
        self.llm = llm
        self.token_limit: int = token_limit
        self.tokenizer: Tokenizer = tokenizer or BaseToken()
        self.count_initial_tokens: bool = count_initial_tokens
        self.prompt = PromptHandler(language=language).load_prompt_by_file(self.prompt_file_path)
        self.summarize_prompt: str = summarize_prompt or self.prompt.get_prompt("summarize_prompt")
        self.token_count: int = 0

    @classmethod
    def from_defaults(
        cls,
        chat_history: Optional[List[Message]] = None,
        llm=None,
        token_limit: Optional[int] = None,
        **kwargs,
    ) -> "ChatSummaryMemoryBuffer":
        if not token_limit:
            context_window = getattr(llm, "context_window", None)
            if context_window:
                token_limit = int(context_window * DEFAULT_TOKEN_LIMIT_RATIO)
            else:
                token_limit = DEFAULT_SUMMARY_TOKEN_LIMIT
        return cls(llm=llm, token_limit=token_limit, chat_history=chat_history, **kwargs)

    def get(self, input: Optional[str] = None, initial_token_count: int = 0, **kwargs) -> List[Message]:  # noqa: A002
        with self._lock:
            history = list(self._messages)
            if not history:
                return []

            token_count = 0
            if self.count_initial_tokens:
                if initial_token_count > self.token_limit:
                    raise ConfigInvalidError(
                        f"initial_token_count={initial_token_count} exceeds token_limit={self.token_limit}",
                    )
                token_count = initial_token_count

            full_text, to_summarize, token_count = self._split(history, token_count)
            self.token_count = token_count
            if self.llm is None or not to_summarize:
                if to_summarize:
                    logger.warning(f"no llm configured, drop {len(to_summarize)} messages from the window")
                return full_text

            updated = [self._summarize(to_summarize)] + full_text
            self._messages = list(updated)
            return updated

    def _split(self, history: List[Message], token_count: int) -> Tuple[List[Message], List[Message], int]:
        """Split into (messages kept verbatim, older messages to summarize)."""
        full_text: List[Message] = []
        remaining = list(history)
        while remaining:
            tokens = count_message_tokens(self.tokenizer, [remaining[-1]])
            if token_count + tokens > self.token_limit:
                break
            token_count += tokens
            full_text.insert(0, remaining.pop())

        while full_text and full_text[0].role in (Role.ASSISTANT, Role.TOOL):
            remaining.append(full_text.pop(0))
        return full_text, remaining, token_count

    def _transcript(self, messages: List[Message]) -> str:
        lines = [self.prompt.get_prompt("transcript_prefix")]
        for message in messages:
            lines.append(message.as_transcript_line() + "\n\n")
        return "".join(lines)

    @timer("memory.summarize")
    def _summarize(self, messages: List[Message]) -> Message:
        if len(messages) == 1 and messages[0].role == Role.SYSTEM:
            return messages[0]

        request = [
            Message(role=Role.SYSTEM, content=self.summarize_prompt),
            Message(role=Role.USER, content=self._transcript(messages)),
        ]
        try:
            response = self.llm.chat(request)
        except LLMFailedError:
            raise
        except Exception as e:
            raise LLMFailedError("summarize chat history failed", cause=e) from e

        content = response.content if isinstance(response, Message) else str(response)
        logger.info(f"summarized {len(messages)} messages into {len(content)} chars")
        return Message(role=Role.SYSTEM, content=content)
