"""Key/value state shared by the handlers of one workflow run."""

from typing import Any, Dict, List

from ..exceptions import NotFoundError, TypeMismatchError
from ..utils import ReadWriteLock

_MISSING = object()

_TRUE_STRINGS = {"true", "1", "yes", "y", "on"}
_FALSE_STRINGS = {"false", "0", "no", "n", "off"}


class StateStore:
    """Thread-safe dict guarded by a reader-writer lock.

    The typed getters coerce the stored value and raise `TypeMismatchError`
    when that is impossible. A missing key raises `NotFoundError` unless a
    default is given.
    """

    def __init__(self, data: Dict[str, Any] = None):
        self._data: Dict[str, Any] = dict(data or {})
        self._lock = ReadWriteLock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock.read_lock():
            return self._data.get(key, default)

    def set(self, key: str, value: Any):
        with self._lock.write_lock():
            self._data[key] = value

    def delete(self, key: str):
        with self._lock.write_lock():
            self._data.pop(key, None)

    def update(self, values: Dict[str, Any]):
        with self._lock.write_lock():
            self._data.update(values)

    def keys(self) -> List[str]:
        with self._lock.read_lock():
            return list(self._data.keys())

    def clear(self):
        with self._lock.write_lock():
            self._data.clear()

    def clone(self) -> "StateStore":
        return StateStore(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        with self._lock.read_lock():
            return dict(self._data)

    def __contains__(self, key: str) -> bool:
        with self._lock.read_lock():
            return key in self._data

    def __len__(self) -> int:
        with self._lock.read_lock():
            return len(self._data)

    def _lookup(self, key: str, default: Any):
        with self._lock.read_lock():
            value = self._data.get(key, _MISSING)
        if value is _MISSING:
            if default is _MISSING:
                raise NotFoundError(f"state key={key} not found")
            return default, False
        return value, True

    def get_str(self, key: str, default: Any = _MISSING) -> str:
        value, found = self._lookup(key, default)
        if not found:
            return value
        if isinstance(value, (str, int, float, bool)):
            return str(value)
        raise TypeMismatchError(f"state key={key} type={type(value).__name__} is not a string")

    def get_int(self, key: str, default: Any = _MISSING) -> int:
        value, found = self._lookup(key, default)
        if not found:
            return value
        if isinstance(value, bool):
            raise TypeMismatchError(f"state key={key} holds a bool, not an int")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError as e:
                raise TypeMismatchError(f"state key={key} value={value!r} is not an int", cause=e) from e
        raise TypeMismatchError(f"state key={key} type={type(value).__name__} is not an int")

    def get_float(self, key: str, default: Any = _MISSING) -> float:
        value, found = self._lookup(key, default)
        if not found:
            return value
        if isinstance(value, bool):
            raise TypeMismatchError(f"state key={key} holds a bool, not a float")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError as e:
                raise TypeMismatchError(f"state key={key} value={value!r} is not a float", cause=e) from e
        raise TypeMismatchError(f"state key={key} type={type(value).__name__} is not a float")

    def get_bool(self, key: str, default: Any = _MISSING) -> bool:
        value, found = self._lookup(key, default)
        if not found:
            return value
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        raise TypeMismatchError(f"state key={key} value={value!r} is not a bool")

    def __repr__(self) -> str:
        return f"StateStore(keys={self.keys()})"
