"""
PD_Controller.py
----------------
Per-axis profiling path. Each difficulty axis is steered toward the profiling
target by a proportional term (gap to target) damped by the local
performance-vs-value slope, with forced exploration when an axis has
converged and a fallback to the global path while profiles are still thin.
"""

import logging
from dataclasses import dataclass

from ADM_Bases.Confidence import ConfidenceScore, calculate_local_confidence
from ADM_Bases.Interpolation import interpolate_value
from ADM_Bases.Round import RoundContext
from Weighted_Budget import WeightedBudgetStrategy
from adm_config import (
    DOM_TARGETS,
    POSITION_MAX,
    POSITION_MIDPOINT,
    POSITION_MIN,
    ADMConfig,
    AdaptationDirection,
    DOMTarget,
    clamp,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AxisSignal:
    dom_type: DOMTarget
    signal: float
    performance_gap: float
    slope: float
    gain_modifier: float
    adaptation_rate: float
    local_confidence: ConfidenceScore


class PDProfilingStrategy:

    name = "pd_profiling"

    __slots__ = (
        "_config",
        "fallback",
        "convergence_counters",
        "axis_directions",
        "axis_stable_counts",
    )

    def __init__(self, config: ADMConfig, fallback: WeightedBudgetStrategy | None = None):
        self._config = config
        self.fallback = fallback or WeightedBudgetStrategy(config)
        self.convergence_counters = {axis: 0 for axis in DOM_TARGETS}
        self.axis_directions = {axis: AdaptationDirection.STABLE for axis in DOM_TARGETS}
        self.axis_stable_counts = {axis: 0 for axis in DOM_TARGETS}

    def reset(self) -> None:
        for axis in DOM_TARGETS:
            self.convergence_counters[axis] = 0
            self.axis_directions[axis] = AdaptationDirection.STABLE
            self.axis_stable_counts[axis] = 0

    def is_axis_ready(self, profile) -> bool:
        return len(profile) >= self._config.dom_min_data_points_for_profiling

    def interpolated_rate(self, axis: DOMTarget, arousal: float) -> float:
        config = self._config
        return interpolate_value(
            config.dom_adaptation_rates_low_arousal[axis],
            config.dom_adaptation_rates_high_arousal[axis],
            arousal,
            config.dom_rate_transition_start,
            config.dom_rate_transition_end,
        )

    def direction_multiplier(self, axis: DOMTarget, performance_gap: float) -> float:
        """Hardening (gap > 0) is slowed relative to easing; per-axis overrides win."""
        config = self._config
        if performance_gap > 0:
            return config.dom_hardening_rate_multiplier_by_dom.get(
                axis, config.dom_hardening_rate_multiplier
            )
        return config.dom_easing_rate_multiplier_by_dom.get(
            axis, config.dom_easing_rate_multiplier
        )

    def local_confidence(self, axis: DOMTarget, profile, now: float) -> ConfidenceScore:
        return calculate_local_confidence(
            profile, self.axis_stable_counts[axis], now, self._config
        )

    def calculate_axis_signal(
        self,
        axis: DOMTarget,
        profile,
        arousal: float,
        now: float,
        rate_multiplier: float = 1.0,
    ) -> AxisSignal:
        config = self._config
        half_life = config.recency_half_life_hours

        performance_gap = (
            profile.weighted_average_performance(now, half_life)
            - config.dom_profiling_performance_target
        )
        slope = profile.weighted_slope(now, half_life)
        gain_modifier = 1.0 / (1.0 + abs(slope) * config.dom_slope_dampening_factor)
        confidence = self.local_confidence(axis, profile, now)

        adaptation_rate = (
            self.interpolated_rate(axis, arousal)
            * confidence.total
            * self.direction_multiplier(axis, performance_gap)
            * gain_modifier
            * rate_multiplier
        )
        limit = config.dom_max_signal_per_round
        signal = clamp(performance_gap * adaptation_rate, -limit, limit)
        return AxisSignal(
            dom_type=axis,
            signal=signal,
            performance_gap=performance_gap,
            slope=slope,
            gain_modifier=gain_modifier,
            adaptation_rate=adaptation_rate,
            local_confidence=confidence,
        )

    def exploration_nudge(self, position: float) -> float:
        """Inward push for a converged axis, larger when it sits on a bound."""
        config = self._config
        at_boundary = position <= POSITION_MIN or position >= POSITION_MAX
        size = config.dom_boundary_nudge_factor if at_boundary else config.dom_exploration_nudge_factor
        size = min(size, config.dom_max_signal_per_round)
        return size if position < POSITION_MIDPOINT else -size

    def _track_direction(self, axis: DOMTarget, signal: float) -> None:
        if signal > 0:
            direction = AdaptationDirection.INCREASING
        elif signal < 0:
            direction = AdaptationDirection.DECREASING
        else:
            direction = AdaptationDirection.STABLE
        if direction is AdaptationDirection.STABLE or direction is self.axis_directions[axis]:
            self.axis_stable_counts[axis] += 1
            return
        self.axis_directions[axis] = direction
        self.axis_stable_counts[axis] = 1

    def adapt(self, manager, context: RoundContext) -> dict:
        config = self._config
        profiles = manager.dom_performance_profiles
        ready = [axis for axis in DOM_TARGETS if self.is_axis_ready(profiles[axis])]
        if not ready:
            logger.info(
                {
                    "event": "adm_global_fallback",
                    "min_data_points": config.dom_min_data_points_for_profiling,
                    "profile_sizes": {a.value: len(profiles[a]) for a in DOM_TARGETS},
                }
            )
            outcome = self.fallback.adapt(manager, context)
            outcome["fallback"] = True
            return outcome

        positions = manager.normalized_positions
        axes = {}
        for axis in ready:
            computed = self.calculate_axis_signal(
                axis, profiles[axis], context.arousal, context.timestamp, context.rate_multiplier
            )
            position = positions[axis]
            signal = computed.signal
            pushing_outward = (position >= POSITION_MAX and signal > 0) or (
                position <= POSITION_MIN and signal < 0
            )
            effective = 0.0 if pushing_outward else signal

            if abs(effective) < config.dom_convergence_threshold:
                self.convergence_counters[axis] += 1
            else:
                self.convergence_counters[axis] = 0

            explored = False
            if self.convergence_counters[axis] >= config.dom_convergence_duration:
                signal = self.exploration_nudge(position)
                self.convergence_counters[axis] = 0
                explored = True
                logger.info(
                    {
                        "event": "adm_exploration_nudge",
                        "dom": axis.value,
                        "position": round(position, 4),
                        "nudge": round(signal, 4),
                    }
                )

            applied = manager.modulation.apply(positions, axis, signal, bypass_smoothing=True)
            self._track_direction(axis, signal)
            logger.debug(
                {
                    "event": "adm_pd_signal",
                    "dom": axis.value,
                    "performance_gap": round(computed.performance_gap, 4),
                    "slope": round(computed.slope, 4),
                    "gain_modifier": round(computed.gain_modifier, 4),
                    "signal": round(signal, 4),
                    "applied": round(applied, 4),
                }
            )
            axes[axis.value] = {
                "signal": round(signal, 4),
                "applied_change": round(applied, 4),
                "performance_gap": round(computed.performance_gap, 4),
                "slope": round(computed.slope, 4),
                "gain_modifier": round(computed.gain_modifier, 4),
                "adaptation_rate": round(computed.adaptation_rate, 4),
                "local_confidence": round(computed.local_confidence.total, 4),
                "explored": explored,
                "convergence_count": self.convergence_counters[axis],
            }

        return {
            "path": self.name,
            "fallback": False,
            "axes": axes,
            "skipped": [axis.value for axis in DOM_TARGETS if axis not in ready],
        }
