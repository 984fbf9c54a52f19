import logging
from dataclasses import dataclass

from adm_config import ADMConfig, AdaptationDirection, clamp, clamp_unit

logger = logging.getLogger(__name__)

FULL_GAIN = 2.0


@dataclass(frozen=True)
class GateDecision:
    signal: float
    direction: AdaptationDirection
    suppressed: bool = False


class HysteresisGate:
    """
    Direction memory for the global adaptation signal.

    ``stable_round_count`` counts rounds spent in ``last_direction``; a
    reversal is only let through once that count reaches
    ``min_stable_rounds_before_direction_change``.
    """

    __slots__ = ("_config", "last_direction", "stable_round_count")

    def __init__(
        self,
        config: ADMConfig,
        last_direction: AdaptationDirection = AdaptationDirection.STABLE,
        stable_round_count: int = 0,
    ):
        self._config = config
        self.last_direction = AdaptationDirection(last_direction)
        self.stable_round_count = max(0, int(stable_round_count))

    def reset(self) -> None:
        self.last_direction = AdaptationDirection.STABLE
        self.stable_round_count = 0

    def effective_thresholds(
        self, target: float | None = None, confidence: float | None = None
    ) -> tuple[float, float]:
        """(increase, decrease) thresholds around target, widened when unsure."""
        config = self._config
        if target is None:
            target = config.global_performance_target
        upper_offset = config.adaptation_increase_threshold - config.global_performance_target
        lower_offset = config.global_performance_target - config.adaptation_decrease_threshold
        widening = 0.0
        if config.enable_confidence_scaling and confidence is not None:
            widening = config.confidence_threshold_widening_factor * (
                1.0 - clamp_unit(confidence)
            )
        increase = clamp_unit(target + upper_offset + widening)
        decrease = clamp_unit(target - lower_offset - widening)
        return increase, decrease

    def _is_premature_reversal(self, proposed: AdaptationDirection) -> bool:
        if self.last_direction is AdaptationDirection.STABLE:
            return False
        if proposed is self.last_direction:
            return False
        return (
            self.stable_round_count
            < self._config.min_stable_rounds_before_direction_change
        )

    def evaluate(
        self,
        score: float,
        target: float | None = None,
        confidence: float | None = None,
    ) -> GateDecision:
        """Signal in [-1, 1] for score; does not change the gate state."""
        config = self._config
        if target is None:
            target = config.global_performance_target
        deviation = score - target
        if abs(deviation) < config.hysteresis_dead_zone:
            return GateDecision(0.0, AdaptationDirection.STABLE)

        increase, decrease = self.effective_thresholds(target, confidence)
        gain = FULL_GAIN
        if decrease <= score <= increase:
            gain = FULL_GAIN * config.neutral_zone_gain

        proposed = (
            AdaptationDirection.INCREASING if deviation > 0 else AdaptationDirection.DECREASING
        )
        if config.enable_hysteresis and self._is_premature_reversal(proposed):
            logger.debug(
                {
                    "event": "adm_hysteresis_suppressed",
                    "score": round(score, 4),
                    "last_direction": self.last_direction.value,
                    "stable_round_count": self.stable_round_count,
                }
            )
            return GateDecision(0.0, AdaptationDirection.STABLE, suppressed=True)

        signal = clamp(deviation * gain, -1.0, 1.0)
        if signal == 0.0:
            return GateDecision(0.0, AdaptationDirection.STABLE)
        return GateDecision(signal, proposed)

    def commit(self, decision: GateDecision) -> None:
        direction = decision.direction
        if direction is AdaptationDirection.STABLE or direction is self.last_direction:
            self.stable_round_count += 1
            return
        self.last_direction = direction
        self.stable_round_count = 1

    def step(
        self,
        score: float,
        target: float | None = None,
        confidence: float | None = None,
    ) -> GateDecision:
        decision = self.evaluate(score, target, confidence)
        self.commit(decision)
        return decision
