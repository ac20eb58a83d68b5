"""Recency weighting of retrieved nodes by a metadata date."""

import datetime
from typing import Any, Callable, List, Optional, Tuple, Union

from loguru import logger

from .base_postprocessor import BasePostprocessor
from ..context import C
from ..exceptions import ConfigInvalidError
from ..schema import NodeWithScore, QueryBundle

FALLBACK_DATE_FORMATS = [
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%b %d, %Y",
]

TIME_WEIGHT_MODES = ("none", "linear", "exponential", "step")

_MIN_TIME = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


class SystemClock:

    @staticmethod
    def now() -> datetime.datetime:
        return datetime.datetime.now(datetime.timezone.utc)


class FixedClock:
    """Clock frozen at `current`; handy for deterministic tests."""

    def __init__(self, current: datetime.datetime):
        self.current: datetime.datetime = current

    def now(self) -> datetime.datetime:
        return self.current


def _as_timedelta(value: Union[datetime.timedelta, float, int, None]) -> Optional[datetime.timedelta]:
    if value is None or isinstance(value, datetime.timedelta):
        return value
    return datetime.timedelta(seconds=value)


def _as_aware(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


@C.register_postprocessor("node_recency")
class NodeRecencyPostprocessor(BasePostprocessor):
    """Reweight or filter nodes by the age of `metadata[date_key]`.

    Args:
        date_key: Metadata key holding a `datetime`, a date string or a unix timestamp.
        date_format: `strptime` format tried first for strings; ISO-8601 and a few
            common formats are tried after it.
        max_age: Nodes older than this are dropped; also the horizon of linear decay.
        time_weight_mode: One of "none", "linear", "exponential", "step".
        decay_rate: Weight lost per half-life in exponential mode. The half-life is
            `max_age / 2`, or one day without `max_age`.
        recent_threshold: Age boundary of the step mode.
        recent_weight: Step mode weight of nodes younger than the threshold.
        old_weight: Step mode weight of older nodes.
        top_k: Keep at most this many nodes; 0 keeps all.
        sort_by_date: Sort newest first instead of by adjusted score.
        clock: Object with `now()` or a zero-argument callable; defaults to UTC wall time.

    Nodes without a parseable date keep their score and sort last by date.
    """

    def __init__(
        self,
        date_key: str = "date",
        date_format: str = "%Y-%m-%dT%H:%M:%S%z",
        max_age: Union[datetime.timedelta, float, None] = None,
        time_weight_mode: str = "linear",
        decay_rate: float = 0.5,
        recent_threshold: Union[datetime.timedelta, float] = datetime.timedelta(days=1),
        recent_weight: float = 1.0,
        old_weight: float = 0.5,
        top_k: int = 0,
        sort_by_date: bool = False,
        clock: Union[Any, Callable[[], datetime.datetime], None] = None,
        name: str = "",
    ):
        if time_weight_mode not in TIME_WEIGHT_MODES:
            raise ConfigInvalidError(f"time_weight_mode={time_weight_mode} not in {TIME_WEIGHT_MODES}")
        if not 0 < decay_rate <= 1:
            raise ConfigInvalidError(f"decay_rate={decay_rate} must be in (0, 1]")
        super().__init__(name=name)
        self.date_key: str = date_key
        self.date_format: str = date_format
        self.max_age: Optional[datetime.timedelta] = _as_timedelta(max_age)
        self.time_weight_mode: str = time_weight_mode
        self.decay_rate: float = decay_rate
        self.recent_threshold: datetime.timedelta = _as_timedelta(recent_threshold)
        self.recent_weight: float = recent_weight
        self.old_weight: float = old_weight
        self.top_k: int = top_k
        self.sort_by_date: bool = sort_by_date
        self.clock = clock or SystemClock()

    def now(self) -> datetime.datetime:
        now = self.clock.now() if hasattr(self.clock, "now") else self.clock()
        return _as_aware(now)

    def parse_date(self, value: Any) -> Optional[datetime.datetime]:
        if isinstance(value, datetime.datetime):
            return _as_aware(value)
        if isinstance(value, datetime.date):
            return datetime.datetime(value.year, value.month, value.day, tzinfo=datetime.timezone.utc)
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
        if not isinstance(value, str):
            return None

        for date_format in [self.date_format] + FALLBACK_DATE_FORMATS:
            try:
                return _as_aware(datetime.datetime.strptime(value, date_format))
            except ValueError:
                continue
        try:
            return _as_aware(datetime.datetime.fromisoformat(value))
        except ValueError:
            logger.warning(f"date_key={self.date_key} value={value!r} is not a recognised date")
            return None

    def adjust_score(self, score: float, age: datetime.timedelta) -> float:
        # future dates count as brand new
        age = max(age, datetime.timedelta(0))
        if self.time_weight_mode == "linear":
            if not self.max_age:
                return score
            return score * max(0.0, 1.0 - age / self.max_age)

        if self.time_weight_mode == "exponential":
            half_life = self.max_age / 2 if self.max_age else datetime.timedelta(days=1)
            return score * self.decay_rate ** (age / half_life)

        if self.time_weight_mode == "step":
            return score * (self.recent_weight if age <= self.recent_threshold else self.old_weight)

        return score

    def _postprocess_nodes(self, nodes: List[NodeWithScore], query_bundle: Optional[QueryBundle]) -> List[NodeWithScore]:
        now = self.now()
        dated: List[Tuple[NodeWithScore, datetime.datetime]] = []
        for node in nodes:
            node_time = self.parse_date(node.metadata.get(self.date_key))
            if node_time is None:
                dated.append((node, _MIN_TIME))
                continue

            age = now - node_time
            if self.max_age and age > self.max_age:
                continue
            dated.append((NodeWithScore(node=node.node, score=self.adjust_score(node.get_score(), age)), node_time))

        if self.sort_by_date:
            dated.sort(key=lambda x: x[1], reverse=True)
        else:
            dated.sort(key=lambda x: x[0].get_score(), reverse=True)

        result = [node for node, _ in dated]
        if self.top_k > 0:
            result = result[: self.top_k]
        return result
