"""Callback sink that accumulates token usage of llm and embedding events."""

import threading
from typing import Any, Callable, Dict, List, Optional

from .base_handler import BaseCallbackHandler
from ..enumeration import CBEventType, EventPayload
from ..token import BaseToken


class TokenCountingHandler(BaseCallbackHandler):
    """Count prompt, completion and embedding tokens.

    Explicit counts in the end payload (`prompt_tokens`, `completion_tokens`,
    `total_tokens`) take precedence. Otherwise the prompt or chunks seen at
    event start and the completion seen at event end are measured with
    `tokenizer`.
    """

    def __init__(self, tokenizer: Optional[Callable[[str], int]] = None, **kwargs):
        super().__init__(**kwargs)
        self.tokenizer: Callable[[str], int] = tokenizer or BaseToken()
        self._lock = threading.Lock()
        self._pending: Dict[str, Dict[str, Any]] = {}

        self.prompt_tokens: int = 0
        self.completion_tokens: int = 0
        self.total_llm_tokens: int = 0
        self.total_embedding_tokens: int = 0
        self.llm_event_count: int = 0
        self.embedding_event_count: int = 0

    def _count(self, value: Any) -> int:
        if value is None:
            return 0
        if isinstance(value, str):
            return self.tokenizer(value)
        if isinstance(value, (list, tuple)):
            return sum(self._count(v) for v in value)
        if hasattr(value, "content"):
            return self._count(value.content)
        return self.tokenizer(str(value))

    def on_event_start(
        self,
        event_type: CBEventType,
        payload: Optional[Dict[str, Any]] = None,
        event_id: str = "",
        parent_id: str = "",
        **kwargs: Any,
    ) -> str:
        if event_type in (CBEventType.LLM, CBEventType.EMBEDDING) and payload:
            with self._lock:
                self._pending[event_id] = dict(payload)
        return event_id

    def on_event_end(
        self,
        event_type: CBEventType,
        payload: Optional[Dict[str, Any]] = None,
        event_id: str = "",
        **kwargs: Any,
    ) -> None:
        if event_type not in (CBEventType.LLM, CBEventType.EMBEDDING):
            return

        payload = payload or {}
        with self._lock:
            start_payload = self._pending.pop(event_id, {})

            if event_type == CBEventType.LLM:
                self.llm_event_count += 1
                prompt = payload.get("prompt_tokens")
                if prompt is None:
                    prompt = self._count(
                        start_payload.get(EventPayload.FORMATTED_PROMPT, start_payload.get(EventPayload.MESSAGES)),
                    )
                completion = payload.get("completion_tokens")
                if completion is None:
                    completion = self._count(payload.get(EventPayload.COMPLETION, payload.get(EventPayload.RESPONSE)))

                self.prompt_tokens += prompt
                self.completion_tokens += completion
                self.total_llm_tokens += payload.get("total_tokens", prompt + completion)

            else:
                self.embedding_event_count += 1
                tokens = payload.get("total_tokens")
                if tokens is None:
                    tokens = self._count(start_payload.get(EventPayload.CHUNKS))
                self.total_embedding_tokens += tokens

    def start_trace(self, trace_id: Optional[str] = None) -> None:
        pass

    def end_trace(self, trace_id: Optional[str] = None, trace_map: Optional[Dict[str, List[str]]] = None) -> None:
        pass

    def reset_counts(self):
        with self._lock:
            self._pending.clear()
            self.prompt_tokens = 0
            self.completion_tokens = 0
            self.total_llm_tokens = 0
            self.total_embedding_tokens = 0
            self.llm_event_count = 0
            self.embedding_event_count = 0
