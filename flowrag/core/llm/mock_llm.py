"""Deterministic in-process LLM for tests and offline pipelines."""

import threading
from typing import Callable, List, Optional

from .base_llm import BaseLLM
from ..context import C
from ..enumeration import Role
from ..schema import Message


@C.register_llm("mock")
class MockLLM(BaseLLM):
    """Answer from `response_fn`, else from `responses` in order, else echo the last user message.

    Every rendered prompt is recorded in `prompts`. The first `fail_times`
    calls raise, which is handy for exercising retries.
    """

    def __init__(
        self,
        model_name: str = "mock",
        responses: Optional[List[str]] = None,
        response_fn: Optional[Callable[[str], str]] = None,
        fail_times: int = 0,
        max_retries: int = 1,
        retry_delay: float = 0.0,
        **kwargs,
    ):
        super().__init__(model_name=model_name, max_retries=max_retries, retry_delay=retry_delay, **kwargs)
        self.responses: List[str] = list(responses or [])
        self.response_fn: Optional[Callable[[str], str]] = response_fn
        self.fail_times: int = fail_times
        self.prompts: List[str] = []
        self.call_count: int = 0
        self._lock = threading.Lock()

    def _chat(self, messages: List[Message], **kwargs) -> Message:
        prompt = "\n\n".join(m.content for m in messages)
        with self._lock:
            self.call_count += 1
            self.prompts.append(prompt)
            if self.call_count <= self.fail_times:
                raise RuntimeError(f"mock failure {self.call_count}/{self.fail_times}")

            if self.response_fn is not None:
                content = self.response_fn(prompt)
            elif self.responses:
                index = min(self.call_count - self.fail_times, len(self.responses)) - 1
                content = self.responses[index]
            else:
                user_messages = [m for m in messages if m.role == Role.USER]
                content = user_messages[-1].content if user_messages else ""

        return Message(role=Role.ASSISTANT, content=content)
