"""Named-value bag shared by registries, prompt handlers and service contexts."""


class BaseContext:
    """Hold named values that read back as attributes or as items.

    Attribute writes land in the same mapping as item writes, so subclasses
    can declare fields with plain `self.x = ...` assignments.

    Example:
        ```python
        ctx = BaseContext(language="en")
        ctx.language           # 'en'
        ctx["top_k"] = 3
        sorted(ctx.keys())     # ['language', 'top_k']
        ```
    """

    def __init__(self, **kwargs):
        object.__setattr__(self, "_data", dict(kwargs))

    def __getattr__(self, name: str):
        try:
            return object.__getattribute__(self, "_data")[name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__} has no field {name!r}") from None

    def __setattr__(self, name: str, value):
        self._data[name] = value

    def __getitem__(self, name: str):
        try:
            return self._data[name]
        except KeyError:
            raise KeyError(f"{type(self).__name__} has no entry {name!r}") from None

    def __setitem__(self, name: str, value):
        self._data[name] = value

    def __contains__(self, name: str) -> bool:
        return name in self._data

    def __repr__(self):
        return f"{type(self).__name__}(keys={sorted(self._data)})"

    def get(self, name: str, default=None):
        return self._data.get(name, default)

    def keys(self):
        return self._data.keys()
