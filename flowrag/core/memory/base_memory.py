"""Chat history stores.

Every memory keeps the full ordered history; variants differ only in what
`get` returns. All public methods take the instance lock.
"""

import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from ..schema import Message

Tokenizer = Callable[[str], int]


class BaseMemory(ABC):

    def __init__(self, chat_history: Optional[List[Message]] = None):
        self._messages: List[Message] = list(chat_history or [])
        self._lock = threading.Lock()

    @abstractmethod
    def get(self, input: Optional[str] = None, **kwargs) -> List[Message]:  # noqa: A002
        """Messages to send to the model; may elide older history."""

    def get_all(self) -> List[Message]:
        with self._lock:
            return list(self._messages)

    def put(self, message: Message):
        with self._lock:
            self._messages.append(message)

    def put_messages(self, messages: List[Message]):
        with self._lock:
            self._messages.extend(messages)

    def set(self, messages: List[Message]):
        with self._lock:
            self._messages = list(messages)

    def reset(self):
        with self._lock:
            self._messages = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)


def count_message_tokens(tokenizer: Tokenizer, messages: List[Message]) -> int:
    if not messages:
        return 0
    return tokenizer(" ".join(message.content for message in messages))
