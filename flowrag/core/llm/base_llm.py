"""Base LLM collaborator.

Every language-model backend subclasses `BaseLLM` and implements `_chat`
(and optionally `_stream_chat`). The public methods add the retry loop,
wrap the final failure into `LLMFailedError` and report each call as an
`llm` callback event when a `CallbackManager` is attached.
"""

import time
from abc import ABC
from typing import Generator, List, Optional

from loguru import logger

from ..enumeration import CBEventType, EventPayload, Role
from ..exceptions import LLMFailedError
from ..schema import Message


class BaseLLM(ABC):
    """
    Abstract base class for language-model backends.

    Subclasses only talk to the provider; `chat`, `complete` and
    `stream_complete` handle retries, error wrapping and tracing.
    """

    def __init__(
        self,
        model_name: str = "",
        max_retries: int = 3,
        retry_delay: float = 1.0,
        context_window: int = 4096,
        callback_manager=None,
        **kwargs,
    ):
        """
        Args:
            model_name: Name of the model to call.
            max_retries: Number of attempts before giving up (at least one attempt is made).
            retry_delay: Base sleep in seconds between attempts; attempt `i` waits `retry_delay * (i + 1)`.
            context_window: Size of the model context in tokens, used by memory buffers.
            callback_manager: Optional `CallbackManager` receiving `llm` events.
            **kwargs: Extra parameters forwarded to the provider on every call.
        """
        self.model_name: str = model_name
        self.max_retries: int = max(1, max_retries)
        self.retry_delay: float = retry_delay
        self.context_window: int = context_window
        self.callback_manager = callback_manager
        self.kwargs: dict = kwargs

    def _chat(self, messages: List[Message], **kwargs) -> Message:
        """Perform one provider call and return the assistant message."""
        raise NotImplementedError

    def _stream_chat(self, messages: List[Message], **kwargs) -> Generator[str, None, None]:
        """Yield content chunks of one provider call. Defaults to a single chunk from `_chat`."""
        yield self._chat(messages, **kwargs).content

    def _chat_with_retry(self, messages: List[Message], **kwargs) -> Message:
        last_error: Optional[Exception] = None
        for i in range(self.max_retries):
            try:
                return self._chat(messages, **kwargs)

            except Exception as e:
                last_error = e
                logger.exception(f"chat with model={self.model_name} encounter error with e={e.args}")
                if i < self.max_retries - 1 and self.retry_delay > 0:
                    time.sleep(self.retry_delay * (i + 1))

        raise LLMFailedError(f"model={self.model_name} failed after {self.max_retries} attempts", cause=last_error)

    def _traced_chat(self, messages: List[Message], start_payload: dict, **kwargs) -> Message:
        if self.callback_manager is None:
            return self._chat_with_retry(messages, **kwargs)

        start_payload = {EventPayload.MODEL_NAME: self.model_name, **start_payload}
        with self.callback_manager.event(CBEventType.LLM, start_payload) as event:
            message = self._chat_with_retry(messages, **kwargs)
            event.on_end({EventPayload.COMPLETION: message.content, EventPayload.RESPONSE: message})
            return message

    def chat(self, messages: List[Message], **kwargs) -> Message:
        """Chat completion over a message list.

        Raises:
            LLMFailedError: When every attempt failed.
        """
        return self._traced_chat(messages, {EventPayload.MESSAGES: messages}, **kwargs)

    def complete(self, prompt: str, **kwargs) -> str:
        """Single-prompt completion returning the text of the answer."""
        messages = [Message(role=Role.USER, content=prompt)]
        return self._traced_chat(messages, {EventPayload.FORMATTED_PROMPT: prompt}, **kwargs).content

    def _stream_with_retry(self, messages: List[Message], **kwargs) -> Generator[str, None, None]:
        last_error: Optional[Exception] = None
        for i in range(self.max_retries):
            yielded = False
            try:
                for chunk in self._stream_chat(messages, **kwargs):
                    yielded = True
                    yield chunk
                return

            except Exception as e:
                last_error = e
                logger.exception(f"stream with model={self.model_name} encounter error with e={e.args}")
                if yielded:
                    break
                if i < self.max_retries - 1 and self.retry_delay > 0:
                    time.sleep(self.retry_delay * (i + 1))

        raise LLMFailedError(f"model={self.model_name} stream failed", cause=last_error)

    def stream_complete(self, prompt: str, **kwargs) -> Generator[str, None, None]:
        """Stream the completion of `prompt` as text chunks.

        Attempts are retried only while no chunk has been yielded yet. With a
        callback manager the whole stream is one `llm` event whose end payload
        carries the joined completion.
        """
        messages = [Message(role=Role.USER, content=prompt)]
        if self.callback_manager is None:
            yield from self._stream_with_retry(messages, **kwargs)
            return

        start_payload = {EventPayload.MODEL_NAME: self.model_name, EventPayload.FORMATTED_PROMPT: prompt}
        with self.callback_manager.event(CBEventType.LLM, start_payload) as event:
            chunks: List[str] = []
            for chunk in self._stream_with_retry(messages, **kwargs):
                chunks.append(chunk)
                yield chunk
            event.on_end({EventPayload.COMPLETION: "".join(chunks)})
