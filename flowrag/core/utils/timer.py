"""Elapsed-time measurement that reports through loguru.

`Timer` is used as a context manager around workflow runs, parser runs,
extractor batches and index builds. `timer` is the decorator form.
"""

import functools
import time
from typing import Callable, Optional, TypeVar

from loguru import logger

from .common_utils import format_duration

T = TypeVar("T")


class Timer:
    """Context manager measuring wall-clock time of a block.

    Usage:
        with Timer("build_index") as t:
            ...
        t.time_cost      # seconds as float
        t.iso_duration   # e.g. "PT0.0125S"
    """

    def __init__(self, name: str, use_ms: bool = False, level: str = "DEBUG", stack_level: int = 2):
        """
        Args:
            name: Name used in the log lines.
            use_ms: Report milliseconds instead of seconds.
            level: Loguru level for the start/end lines.
            stack_level: Stack level passed to loguru so the caller is reported.
        """
        self.name: str = name
        self.use_ms: bool = use_ms
        self.level: str = level
        self.stack_level: int = stack_level

        self.time_start: float = 0.0
        self.time_cost: float = 0.0

    @property
    def iso_duration(self) -> str:
        return format_duration(self.time_cost)

    def __enter__(self) -> "Timer":
        self.time_start = time.perf_counter()
        logger.opt(depth=self.stack_level - 1).log(self.level, f"========== timer.{self.name} start ==========")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.time_cost = time.perf_counter() - self.time_start
        if self.use_ms:
            time_str = f"{self.time_cost * 1000:.2f}ms"
        else:
            time_str = f"{self.time_cost:.3f}s"

        status = "failed" if exc_type is not None else "end"
        logger.opt(depth=self.stack_level - 1).log(
            self.level,
            f"========== timer.{self.name} {status}, time_cost={time_str} ==========",
        )


def timer(name: Optional[str] = None, use_ms: bool = False, level: str = "DEBUG") -> Callable:
    """Decorator factory wrapping a function call in a `Timer`.

    Args:
        name: Timer name. Defaults to the function name.
        use_ms: Report milliseconds instead of seconds.
        level: Loguru level for the start/end lines.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            with Timer(name=name or func.__name__, use_ms=use_ms, level=level, stack_level=3):
                return func(*args, **kwargs)

        return wrapper

    return decorator
