from dataclasses import dataclass

from ADM_Bases.Statistics import recency_weight, weighted_variance
from adm_config import NEUTRAL_SCORE, ADMConfig, clamp_unit


@dataclass(frozen=True)
class ConfidenceScore:
    total: float
    variance: float
    direction: float
    history: float

    @classmethod
    def neutral(cls) -> "ConfidenceScore":
        return cls(NEUTRAL_SCORE, NEUTRAL_SCORE, NEUTRAL_SCORE, NEUTRAL_SCORE)

    def to_dict(self) -> dict:
        return {
            "total": round(self.total, 4),
            "variance": round(self.variance, 4),
            "direction": round(self.direction, 4),
            "history": round(self.history, 4),
        }


def variance_component(variance: float, scale: float) -> float:
    return max(0.0, 1.0 - min(variance / scale, 1.0))


def baseline_component(amount: float, baseline: float) -> float:
    return clamp_unit(amount / baseline)


def _combine(variance: float, direction: float, history: float) -> ConfidenceScore:
    total = clamp_unit((variance + direction + history) / 3.0)
    return ConfidenceScore(
        total=total,
        variance=clamp_unit(variance),
        direction=clamp_unit(direction),
        history=clamp_unit(history),
    )


def calculate_global_confidence(
    entries, direction_stable_count: int, now: float, config: ADMConfig
) -> ConfidenceScore:
    """
    Confidence in the global adaptation decision.

    Args:
        entries: History entries, oldest first.
        direction_stable_count (int): Rounds spent in the current direction.
        now (float): Current timestamp in seconds.
        config (ADMConfig): Baselines and recency half-life.

    Returns:
        ConfidenceScore: mean of the variance, direction and history parts,
        each in [0, 1]. An empty history yields 0.5 everywhere.
    """
    if not entries:
        return ConfidenceScore.neutral()

    half_life = config.recency_half_life_hours
    weights = [recency_weight(e.timestamp, now, half_life) for e in entries]
    scores = [e.overall_score for e in entries]

    variance = variance_component(
        weighted_variance(scores, weights), config.confidence_variance_scale
    )
    # Direction memory ages with the newest observation.
    direction = (
        baseline_component(direction_stable_count, config.confidence_direction_baseline)
        * weights[-1]
    )
    history = baseline_component(sum(weights), config.confidence_history_baseline)
    return _combine(variance, direction, history)


def calculate_local_confidence(
    profile, direction_stable_count: int, now: float, config: ADMConfig
) -> ConfidenceScore:
    """Confidence for a single axis, built from that axis' profile."""
    if len(profile) == 0:
        return ConfidenceScore.neutral()

    weights = profile.recency_weights(now, config.recency_half_life_hours)
    variance = variance_component(
        weighted_variance(profile.performances(), weights),
        config.confidence_variance_scale,
    )
    direction = baseline_component(
        direction_stable_count, config.confidence_direction_baseline
    )
    data = baseline_component(len(profile), config.dom_min_data_points_for_profiling)
    return _combine(variance, direction, data)
