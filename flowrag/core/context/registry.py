"""Name-to-class registry populated by decorators."""

from .base_context import BaseContext


class Registry(BaseContext):
    """Map registration names to classes.

    Example:
        ```python
        llm_registry = Registry()

        @llm_registry.register("mock")
        class MockLLM: ...

        llm_registry["mock"] is MockLLM  # True
        ```
    """

    def register(self, name: str = ""):
        """Return a class decorator registering under `name` (defaults to the class name)."""

        def decorator(cls):
            self._data[name or cls.__name__] = cls
            return cls

        return decorator
