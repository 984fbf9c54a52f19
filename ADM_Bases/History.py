from collections import deque
from dataclasses import dataclass, field

from ADM_Bases.Statistics import linear_trend, mean, sample_variance
from adm_config import NEUTRAL_SCORE, ADMConfig, DOMTarget, KPIType, clamp_unit, finite_or


@dataclass(frozen=True)
class PerformanceHistoryEntry:
    timestamp: float
    overall_score: float
    normalized_kpis: dict = field(default_factory=dict)
    arousal_level: float = NEUTRAL_SCORE
    dom_values: dict = field(default_factory=dict)
    session_context: str | None = None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "overall_score": self.overall_score,
            "normalized_kpis": {k.value: v for k, v in self.normalized_kpis.items()},
            "arousal_level": self.arousal_level,
            "dom_values": {k.value: v for k, v in self.dom_values.items()},
            "session_context": self.session_context,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "PerformanceHistoryEntry":
        if not isinstance(payload, dict):
            raise TypeError("history entry must be a dictionary")
        kpis = {}
        for key, value in (payload.get("normalized_kpis") or {}).items():
            try:
                kpis[KPIType(key)] = float(value)
            except ValueError:
                continue
        dom_values = {}
        for key, value in (payload.get("dom_values") or {}).items():
            try:
                dom_values[DOMTarget(key)] = float(value)
            except ValueError:
                continue
        return cls(
            timestamp=float(payload["timestamp"]),
            overall_score=clamp_unit(finite_or(payload["overall_score"], NEUTRAL_SCORE)),
            normalized_kpis=kpis,
            arousal_level=float(payload.get("arousal_level", NEUTRAL_SCORE)),
            dom_values=dom_values,
            session_context=payload.get("session_context"),
        )


@dataclass(frozen=True)
class PerformanceMetrics:
    average: float
    trend: float
    variance: float


class PerformanceHistory:
    """Bounded, oldest-first window of per-round scores."""

    __slots__ = ("_config", "_entries")

    def __init__(self, config: ADMConfig, entries=()):
        self._config = config
        self._entries = deque(entries, maxlen=config.history_window_size)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple:
        return tuple(self._entries)

    @property
    def newest(self) -> PerformanceHistoryEntry | None:
        return self._entries[-1] if self._entries else None

    def record(self, entry: PerformanceHistoryEntry) -> None:
        self._entries.append(entry)

    def replace(self, entries) -> None:
        self._entries = deque(entries, maxlen=self._config.history_window_size)

    def clear(self) -> None:
        self._entries.clear()

    def scores(self) -> list:
        return [entry.overall_score for entry in self._entries]

    def metrics(self) -> PerformanceMetrics:
        """Average, index trend and sample variance of the window."""
        scores = self.scores()
        if len(scores) < self._config.minimum_history_for_trend:
            trend = 0.0
        else:
            trend = linear_trend(scores)
        return PerformanceMetrics(
            average=mean(scores, default=NEUTRAL_SCORE),
            trend=trend,
            variance=sample_variance(scores),
        )

    def adaptive_score(self, current_score: float) -> float:
        """
        Blend the current score with the window average and trend.

        Falls back to the raw score when history is disabled or too short to
        carry a trend.
        """
        config = self._config
        if (
            not config.use_performance_history
            or len(self._entries) < config.minimum_history_for_trend
        ):
            return clamp_unit(current_score)
        metrics = self.metrics()
        blended = (
            config.current_performance_weight * current_score
            + config.history_influence_weight * metrics.average
            + config.trend_influence_weight * metrics.trend
        )
        return clamp_unit(blended)
