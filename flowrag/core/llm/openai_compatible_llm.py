"""LLM backend for OpenAI-compatible chat completion APIs."""

import os
from typing import Generator, List

from loguru import logger
from openai import OpenAI

from .base_llm import BaseLLM
from ..context import C
from ..enumeration import Role
from ..schema import Message


@C.register_llm("openai_compatible")
class OpenAICompatibleLLM(BaseLLM):
    """
    Chat completions through the `openai` client.

    Credentials default to the `FLOWRAG_LLM_API_KEY` and `FLOWRAG_LLM_BASE_URL`
    environment variables.
    """

    def __init__(self, model_name: str, api_key: str | None = None, base_url: str | None = None, **kwargs):
        super().__init__(model_name=model_name, **kwargs)
        self.api_key: str = api_key or os.getenv("FLOWRAG_LLM_API_KEY", "")
        self.base_url: str = base_url or os.getenv("FLOWRAG_LLM_BASE_URL", "")
        self._client = OpenAI(api_key=self.api_key, base_url=self.base_url or None)

    def _chat_kwargs(self, messages: List[Message], **kwargs) -> dict:
        return {
            "model": self.model_name,
            "messages": [x.simple_dump() for x in messages],
            **self.kwargs,
            **kwargs,
        }

    def _chat(self, messages: List[Message], **kwargs) -> Message:
        chat_kwargs = self._chat_kwargs(messages, **kwargs)
        log_kwargs = {k: v for k, v in chat_kwargs.items() if k != "messages"}
        logger.debug(f"OpenAICompatibleLLM.chat: {log_kwargs}")

        completion = self._client.chat.completions.create(**chat_kwargs)
        content = completion.choices[0].message.content or ""
        usage = completion.usage.model_dump() if completion.usage else {}
        return Message(role=Role.ASSISTANT, content=content, metadata={"usage": usage})

    def _stream_chat(self, messages: List[Message], **kwargs) -> Generator[str, None, None]:
        chat_kwargs = self._chat_kwargs(messages, stream=True, **kwargs)
        for chunk in self._client.chat.completions.create(**chat_kwargs):
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                yield delta.content
