"""Context management module for flowrag.

Exports:
    BaseContext: Dictionary-like context with attribute access.
    CancelToken: Cooperative cancellation flag.
    PromptHandler: YAML prompt template loader and formatter.
    Registry: Name-to-class registry.
    ServiceContext: Singleton holding configuration and registries.
    C: The `ServiceContext` singleton instance.
"""

from .base_context import BaseContext
from .cancel_token import CancelToken
from .prompt_handler import PromptHandler
from .registry import Registry
from .service_context import C
from .service_context import ServiceContext

__all__ = [
    "BaseContext",
    "CancelToken",
    "PromptHandler",
    "Registry",
    "ServiceContext",
    "C",
]
