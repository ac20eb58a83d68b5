"""Retry policy of workflow handlers."""

from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import CancelledError, WorkflowTimeoutError
from ..schema import RetryPolicyConfig


def _retry_all(_: BaseException) -> bool:
    return True


class RetryPolicy(BaseModel):
    """Exponential backoff for a single handler invocation; delays in seconds.

    A policy with `max_retries=n` allows `n + 1` invocations. Cancellation and
    timeout errors are never retried.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    max_retries: int = Field(default=3, ge=0)
    initial_delay: float = Field(default=0.1, ge=0)
    max_delay: float = Field(default=5.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1.0)
    retry_on: Callable[[BaseException], bool] = Field(default=_retry_all)

    @classmethod
    def from_config(cls, config: RetryPolicyConfig, retry_on: Optional[Callable[[BaseException], bool]] = None):
        policy = cls(**config.model_dump())
        if retry_on is not None:
            policy.retry_on = retry_on
        return policy

    def should_retry(self, error: BaseException) -> bool:
        if isinstance(error, (CancelledError, WorkflowTimeoutError)):
            return False
        return bool(self.retry_on(error))

    def next_delay(self, delay: float) -> float:
        return min(delay * self.multiplier, self.max_delay)

    def delays(self) -> List[float]:
        """The sleep before each retry, in order."""
        result = []
        delay = min(self.initial_delay, self.max_delay)
        for _ in range(self.max_retries):
            result.append(delay)
            delay = self.next_delay(delay)
        return result


class StepConfig(BaseModel):
    """Per-step options. `num_workers` bounds concurrent invocations of the step within a run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(default="")
    num_workers: int = Field(default=1, gt=0)
    retry_policy: Optional[RetryPolicy] = Field(default=None)
    suppress_errors: bool = Field(default=False)


StepOption = Callable[[StepConfig], None]


def with_step_name(name: str) -> StepOption:
    def _apply(config: StepConfig):
        config.name = name

    return _apply


def with_num_workers(num_workers: int) -> StepOption:
    def _apply(config: StepConfig):
        config.num_workers = num_workers

    return _apply


def with_retry_policy(policy: RetryPolicy) -> StepOption:
    def _apply(config: StepConfig):
        config.retry_policy = policy

    return _apply


def with_retries(max_retries: int) -> StepOption:
    return with_retry_policy(RetryPolicy(max_retries=max_retries))


def with_exponential_backoff(
    max_retries: int,
    initial_delay: float = 0.1,
    max_delay: float = 5.0,
    multiplier: float = 2.0,
) -> StepOption:
    return with_retry_policy(
        RetryPolicy(max_retries=max_retries, initial_delay=initial_delay, max_delay=max_delay, multiplier=multiplier),
    )


def with_suppressed_errors() -> StepOption:
    def _apply(config: StepConfig):
        config.suppress_errors = True

    return _apply


def build_step_config(*options: StepOption, config: Optional[StepConfig] = None) -> StepConfig:
    config = config.model_copy() if config is not None else StepConfig()
    for option in options:
        option(config)
    return config
