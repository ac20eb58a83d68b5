"""Exception hierarchy for flowrag.

Every error raised by the library is a `FlowRagError` whose `kind` is one
of `ErrorKind`. Callers can branch either on the subclass or on `kind`.
"""

from typing import Any, Optional

from .enumeration import ErrorKind


class FlowRagError(Exception):
    """Base error carrying an `ErrorKind` and the wrapped cause, if any."""

    kind: ErrorKind = ErrorKind.HANDLER_FAILED
    # partial WorkflowResult of a run that ended with this error
    partial_result: Any = None

    def __init__(self, message: str = "", cause: Optional[BaseException] = None, kind: Optional[ErrorKind] = None):
        super().__init__(message or (str(cause) if cause else self.__class__.__name__))
        self.message: str = message
        self.cause: Optional[BaseException] = cause
        if kind is not None:
            self.kind = kind
        if cause is not None and self.__cause__ is None:
            self.__cause__ = cause

    def __str__(self) -> str:
        base = super().__str__()
        if self.cause is not None and self.message:
            return f"[{self.kind.value}] {base}: {self.cause}"
        return f"[{self.kind.value}] {base}"


class ConfigInvalidError(FlowRagError):
    kind = ErrorKind.CONFIG_INVALID


class LLMRequiredError(FlowRagError):
    kind = ErrorKind.LLM_REQUIRED


class LLMFailedError(FlowRagError):
    kind = ErrorKind.LLM_FAILED


class EmbedFailedError(FlowRagError):
    """Embedding failed; `node_id` names the offending node when known."""

    kind = ErrorKind.EMBED_FAILED

    def __init__(self, message: str = "", cause: Optional[BaseException] = None, node_id: str = ""):
        super().__init__(message, cause=cause)
        self.node_id: str = node_id


class DimMismatchError(FlowRagError):
    kind = ErrorKind.DIM_MISMATCH


class MetadataTooLargeError(FlowRagError):
    kind = ErrorKind.METADATA_TOO_LARGE


class TypeMismatchError(FlowRagError):
    kind = ErrorKind.TYPE_MISMATCH


class NotFoundError(FlowRagError):
    kind = ErrorKind.NOT_FOUND


class CancelledError(FlowRagError):
    kind = ErrorKind.CANCELLED


class WorkflowTimeoutError(FlowRagError):
    kind = ErrorKind.TIMEOUT


class PanicError(FlowRagError):
    """A handler raised something unexpected and a recovery middleware caught it."""

    kind = ErrorKind.PANIC

    def __init__(self, message: str = "", cause: Optional[BaseException] = None, value: Any = None):
        super().__init__(message, cause=cause)
        self.value: Any = value


class HandlerFailedError(FlowRagError):
    """A workflow handler failed; carries the step name and the event being handled."""

    kind = ErrorKind.HANDLER_FAILED

    def __init__(self, message: str = "", cause: Optional[BaseException] = None, step: str = "", event: Any = None):
        super().__init__(message, cause=cause)
        self.step: str = step
        self.event: Any = event


class InvalidKindError(FlowRagError):
    kind = ErrorKind.INVALID_KIND


def error_kind_of(e: BaseException) -> Optional[ErrorKind]:
    """Return the `ErrorKind` of `e`, looking through `HandlerFailedError` wrappers."""
    while isinstance(e, HandlerFailedError) and e.cause is not None:
        e = e.cause
    if isinstance(e, FlowRagError):
        return e.kind
    return None
