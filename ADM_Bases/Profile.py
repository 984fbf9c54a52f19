from collections import deque
from dataclasses import dataclass

from ADM_Bases.Statistics import recency_weight, weighted_mean, weighted_slope
from adm_config import DOM_PROFILE_CAPACITY_DEFAULT, NEUTRAL_SCORE, DOMTarget, clamp_unit, finite_or


@dataclass(frozen=True)
class PerformanceDataPoint:
    timestamp: float
    value: float
    performance: float

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "value": self.value,
            "performance": self.performance,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "PerformanceDataPoint":
        return cls(
            timestamp=float(payload["timestamp"]),
            value=float(payload["value"]),
            performance=clamp_unit(finite_or(payload["performance"], NEUTRAL_SCORE)),
        )


class DOMPerformanceProfile:
    """
    Bounded buffer of (axis value, performance) observations for one axis.

    Oldest points are evicted first once ``capacity`` is reached.
    """

    __slots__ = ("dom_type", "capacity", "_points")

    def __init__(
        self,
        dom_type: DOMTarget,
        capacity: int = DOM_PROFILE_CAPACITY_DEFAULT,
        points=(),
    ):
        self.dom_type = dom_type
        self.capacity = capacity
        self._points = deque(points, maxlen=capacity)

    def __len__(self) -> int:
        return len(self._points)

    @property
    def performance_by_value(self) -> tuple:
        return tuple(self._points)

    def record_performance(self, timestamp: float, value: float, performance: float) -> None:
        self._points.append(
            PerformanceDataPoint(timestamp, float(value), clamp_unit(performance))
        )

    def replace(self, points) -> None:
        self._points = deque(points, maxlen=self.capacity)

    def clear(self) -> None:
        self._points.clear()

    def recency_weights(self, now: float, half_life_hours: float) -> list:
        return [recency_weight(p.timestamp, now, half_life_hours) for p in self._points]

    def performances(self) -> list:
        return [p.performance for p in self._points]

    def weighted_average_performance(self, now: float, half_life_hours: float) -> float:
        weights = self.recency_weights(now, half_life_hours)
        return weighted_mean(self.performances(), weights, default=NEUTRAL_SCORE)

    def weighted_slope(self, now: float, half_life_hours: float) -> float:
        """Recency-weighted slope of performance against the axis value."""
        weights = self.recency_weights(now, half_life_hours)
        values = [p.value for p in self._points]
        return weighted_slope(values, self.performances(), weights)
