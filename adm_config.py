"""
Central configuration for the adaptive difficulty manager.
Keep all tunable constants here so the controller, backend and tests can rely
on one source.
"""

import math
from dataclasses import dataclass, field, fields
from enum import Enum


class DOMTarget(str, Enum):
    """Difficulty axes ("dimensions of modulation") the controller adapts."""

    DISCRIMINATORY_LOAD = "discriminatoryLoad"
    MEAN_BALL_SPEED = "meanBallSpeed"
    BALL_SPEED_SD = "ballSpeedSD"
    RESPONSE_TIME = "responseTime"
    TARGET_COUNT = "targetCount"


class KPIType(str, Enum):
    TASK_SUCCESS = "taskSuccess"
    TF_TTF_RATIO = "tfTtfRatio"
    REACTION_TIME = "reactionTime"
    RESPONSE_DURATION = "responseDuration"
    TAP_ACCURACY = "tapAccuracy"


class AdaptationDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class SessionPhase(str, Enum):
    WARMUP = "warmup"
    STANDARD = "standard"


DOM_TARGETS = tuple(DOMTarget)
KPI_TYPES = tuple(KPIType)

# Normalized position bounds
POSITION_MIN = 0.0
POSITION_MAX = 1.0
POSITION_MIDPOINT = 0.5

# Arousal
INITIAL_AROUSAL_DEFAULT = 0.5
AROUSAL_OPERATIONAL_MIN = 0.35
AROUSAL_OPERATIONAL_MAX = 1.0

# Neutral score used when nothing better is known
NEUTRAL_SCORE = 0.5

# Budgets smaller than this are treated as "no change"
BUDGET_EPSILON = 1e-9

# Performance history / adaptive score
HISTORY_WINDOW_DEFAULT = 40
MIN_HISTORY_FOR_TREND_DEFAULT = 3
CURRENT_PERFORMANCE_WEIGHT_DEFAULT = 0.7
HISTORY_INFLUENCE_WEIGHT_DEFAULT = 0.3
TREND_INFLUENCE_WEIGHT_DEFAULT = 0.1

# Confidence
MIN_CONFIDENCE_MULTIPLIER_DEFAULT = 0.2
THRESHOLD_WIDENING_FACTOR_DEFAULT = 0.05
CONFIDENCE_VARIANCE_SCALE_DEFAULT = 0.5
CONFIDENCE_DIRECTION_BASELINE_DEFAULT = 5
CONFIDENCE_HISTORY_BASELINE_DEFAULT = 10
RECENCY_HALF_LIFE_HOURS_DEFAULT = 24.0

# Hysteresis (global path)
GLOBAL_PERFORMANCE_TARGET_DEFAULT = 0.5
INCREASE_THRESHOLD_DEFAULT = 0.55
DECREASE_THRESHOLD_DEFAULT = 0.45
MIN_STABLE_ROUNDS_DEFAULT = 2
HYSTERESIS_DEAD_ZONE_DEFAULT = 0.02
NEUTRAL_ZONE_GAIN_DEFAULT = 0.5

# Arousal transitions (smoothstep windows)
KPI_TRANSITION_START_DEFAULT = 0.55
KPI_TRANSITION_END_DEFAULT = 0.85
KPI_SWITCH_AROUSAL_DEFAULT = 0.7
PRIORITY_TRANSITION_START_DEFAULT = 0.55
PRIORITY_TRANSITION_END_DEFAULT = 0.85
RATE_TRANSITION_START_DEFAULT = 0.6
RATE_TRANSITION_END_DEFAULT = 0.8

# KPI normalization bounds (best, worst)
REACTION_TIME_BOUNDS = (0.2, 1.75)
RESPONSE_DURATION_PER_TARGET_BOUNDS = (0.2, 1.0)
TAP_ACCURACY_BOUNDS = (0.0, 225.0)

# Per-axis PD controller
DOM_PROFILING_TARGET_DEFAULT = 0.8
DOM_SLOPE_DAMPENING_DEFAULT = 10.0
DOM_MIN_DATA_POINTS_DEFAULT = 15
DOM_PROFILE_CAPACITY_DEFAULT = 200
DOM_CONVERGENCE_THRESHOLD_DEFAULT = 0.01
DOM_CONVERGENCE_DURATION_DEFAULT = 5
DOM_EXPLORATION_NUDGE_DEFAULT = 0.03
DOM_BOUNDARY_NUDGE_DEFAULT = 0.05
DOM_MAX_SIGNAL_PER_ROUND_DEFAULT = 0.15
DOM_HARDENING_MULTIPLIER_DEFAULT = 0.6
DOM_EASING_MULTIPLIER_DEFAULT = 1.0

# Session phases
WARMUP_PROPORTION_DEFAULT = 0.25
WARMUP_INITIAL_MULTIPLIER_DEFAULT = 0.85
WARMUP_PERFORMANCE_TARGET_DEFAULT = 0.60
WARMUP_RATE_MULTIPLIER_DEFAULT = 1.7
WARMUP_POSITION_FLOOR_DEFAULT = 0.3
INTERACTIVE_SESSION_PROPORTION_DEFAULT = 0.65
SECONDS_PER_ROUND_DEFAULT = 25.0
# An unfinished session idle for longer than this is not resumed.
SESSION_RESUME_WINDOW_SECONDS_DEFAULT = 1800.0


@dataclass(frozen=True)
class DOMRange:
    """Absolute parameter range of one axis, gated by arousal.

    ``easiest_*`` is the value at normalized position 0, ``hardest_*`` at 1;
    the ``*_low`` / ``*_high`` pair is interpolated by normalized arousal.
    """

    easiest_low: float
    easiest_high: float
    hardest_low: float
    hardest_high: float
    rounded: bool = False


def _default_dom_ranges() -> dict:
    return {
        DOMTarget.DISCRIMINATORY_LOAD: DOMRange(1.0, 0.3, 0.65, 0.075),
        DOMTarget.MEAN_BALL_SPEED: DOMRange(25.0, 700.0, 75.0, 1000.0),
        DOMTarget.BALL_SPEED_SD: DOMRange(0.0, 75.0, 25.0, 200.0),
        DOMTarget.RESPONSE_TIME: DOMRange(10.0, 2.0, 5.0, 1.0),
        DOMTarget.TARGET_COUNT: DOMRange(5.0, 1.0, 7.0, 1.0, rounded=True),
    }


def _default_kpi_weights_low() -> dict:
    return {
        KPIType.TASK_SUCCESS: 0.6,
        KPIType.TF_TTF_RATIO: 0.225,
        KPIType.REACTION_TIME: 0.025,
        KPIType.RESPONSE_DURATION: 0.05,
        KPIType.TAP_ACCURACY: 0.10,
    }


def _default_kpi_weights_high() -> dict:
    return {
        KPIType.TASK_SUCCESS: 0.6,
        KPIType.TF_TTF_RATIO: 0.1,
        KPIType.REACTION_TIME: 0.15,
        KPIType.RESPONSE_DURATION: 0.10,
        KPIType.TAP_ACCURACY: 0.05,
    }


def _default_priorities_low() -> dict:
    return {
        DOMTarget.TARGET_COUNT: 5.0,
        DOMTarget.RESPONSE_TIME: 4.0,
        DOMTarget.DISCRIMINATORY_LOAD: 3.0,
        DOMTarget.MEAN_BALL_SPEED: 2.0,
        DOMTarget.BALL_SPEED_SD: 1.0,
    }


def _default_priorities_high() -> dict:
    return {
        DOMTarget.DISCRIMINATORY_LOAD: 5.0,
        DOMTarget.MEAN_BALL_SPEED: 4.0,
        DOMTarget.BALL_SPEED_SD: 3.0,
        DOMTarget.RESPONSE_TIME: 2.0,
        DOMTarget.TARGET_COUNT: 1.0,
    }


def _default_rates_low() -> dict:
    return {
        DOMTarget.TARGET_COUNT: 7.0,
        DOMTarget.RESPONSE_TIME: 3.0,
        DOMTarget.DISCRIMINATORY_LOAD: 3.0,
        DOMTarget.MEAN_BALL_SPEED: 3.0,
        DOMTarget.BALL_SPEED_SD: 2.0,
    }


def _default_rates_high() -> dict:
    return {
        DOMTarget.DISCRIMINATORY_LOAD: 6.0,
        DOMTarget.MEAN_BALL_SPEED: 3.0,
        DOMTarget.BALL_SPEED_SD: 3.0,
        DOMTarget.RESPONSE_TIME: 2.0,
        DOMTarget.TARGET_COUNT: 1.0,
    }


def _default_hardening_smoothing() -> dict:
    return {
        DOMTarget.DISCRIMINATORY_LOAD: 0.3,
        DOMTarget.MEAN_BALL_SPEED: 0.2,
        DOMTarget.BALL_SPEED_SD: 0.1,
        DOMTarget.RESPONSE_TIME: 0.1,
        DOMTarget.TARGET_COUNT: 0.3,
    }


def _default_easing_smoothing() -> dict:
    return {
        DOMTarget.DISCRIMINATORY_LOAD: 0.5,
        DOMTarget.MEAN_BALL_SPEED: 0.3,
        DOMTarget.BALL_SPEED_SD: 0.2,
        DOMTarget.RESPONSE_TIME: 0.15,
        DOMTarget.TARGET_COUNT: 0.15,
    }


# (start, end) field pairs of every arousal transition window
_TRANSITION_WINDOWS = (
    ("kpi_weight_transition_start", "kpi_weight_transition_end"),
    ("dom_priority_transition_start", "dom_priority_transition_end"),
    ("dom_rate_transition_start", "dom_rate_transition_end"),
)

_AXIS_TABLES = (
    "dom_priorities_low_arousal",
    "dom_priorities_high_arousal",
    "dom_adaptation_rates_low_arousal",
    "dom_adaptation_rates_high_arousal",
    "dom_hardening_smoothing_factors",
    "dom_easing_smoothing_factors",
)

_AXIS_OVERRIDE_TABLES = (
    "dom_hardening_rate_multiplier_by_dom",
    "dom_easing_rate_multiplier_by_dom",
)

_KPI_TABLES = (
    "kpi_weights_low_arousal",
    "kpi_weights_high_arousal",
)


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value to [low, high]."""
    if value < low:
        return low
    if value > high:
        return high
    return value


def clamp_unit(value: float) -> float:
    """Clamp value to the normalized [0, 1] range."""
    return clamp(value, POSITION_MIN, POSITION_MAX)


def finite_or(value, default: float) -> float:
    """Coerce value to float, replacing NaN/inf with default.

    Raises TypeError/ValueError for values that are not numbers at all.
    """
    if isinstance(value, bool):
        return float(value)
    number = float(value)
    if not math.isfinite(number):
        return default
    return number


def normalize_arousal(arousal: float) -> float:
    """Map arousal from the operational range onto [0, 1]."""
    span = AROUSAL_OPERATIONAL_MAX - AROUSAL_OPERATIONAL_MIN
    return clamp_unit((arousal - AROUSAL_OPERATIONAL_MIN) / span)


@dataclass(frozen=True)
class ADMConfig:
    # Performance history
    use_performance_history: bool = True
    history_window_size: int = HISTORY_WINDOW_DEFAULT
    minimum_history_for_trend: int = MIN_HISTORY_FOR_TREND_DEFAULT
    current_performance_weight: float = CURRENT_PERFORMANCE_WEIGHT_DEFAULT
    history_influence_weight: float = HISTORY_INFLUENCE_WEIGHT_DEFAULT
    trend_influence_weight: float = TREND_INFLUENCE_WEIGHT_DEFAULT

    # Confidence
    enable_confidence_scaling: bool = True
    min_confidence_multiplier: float = MIN_CONFIDENCE_MULTIPLIER_DEFAULT
    confidence_threshold_widening_factor: float = THRESHOLD_WIDENING_FACTOR_DEFAULT
    confidence_variance_scale: float = CONFIDENCE_VARIANCE_SCALE_DEFAULT
    confidence_direction_baseline: int = CONFIDENCE_DIRECTION_BASELINE_DEFAULT
    confidence_history_baseline: int = CONFIDENCE_HISTORY_BASELINE_DEFAULT
    recency_half_life_hours: float = RECENCY_HALF_LIFE_HOURS_DEFAULT

    # Hysteresis
    enable_hysteresis: bool = True
    global_performance_target: float = GLOBAL_PERFORMANCE_TARGET_DEFAULT
    adaptation_increase_threshold: float = INCREASE_THRESHOLD_DEFAULT
    adaptation_decrease_threshold: float = DECREASE_THRESHOLD_DEFAULT
    min_stable_rounds_before_direction_change: int = MIN_STABLE_ROUNDS_DEFAULT
    hysteresis_dead_zone: float = HYSTERESIS_DEAD_ZONE_DEFAULT
    neutral_zone_gain: float = NEUTRAL_ZONE_GAIN_DEFAULT

    # KPI weighting
    use_kpi_weight_interpolation: bool = True
    kpi_weight_transition_start: float = KPI_TRANSITION_START_DEFAULT
    kpi_weight_transition_end: float = KPI_TRANSITION_END_DEFAULT
    arousal_threshold_for_kpi_switch: float = KPI_SWITCH_AROUSAL_DEFAULT
    kpi_weights_low_arousal: dict = field(default_factory=_default_kpi_weights_low)
    kpi_weights_high_arousal: dict = field(default_factory=_default_kpi_weights_high)
    reaction_time_bounds: tuple = REACTION_TIME_BOUNDS
    response_duration_per_target_bounds: tuple = RESPONSE_DURATION_PER_TARGET_BOUNDS
    tap_accuracy_bounds: tuple = TAP_ACCURACY_BOUNDS

    # Priorities / rates
    dom_priority_transition_start: float = PRIORITY_TRANSITION_START_DEFAULT
    dom_priority_transition_end: float = PRIORITY_TRANSITION_END_DEFAULT
    dom_priorities_low_arousal: dict = field(default_factory=_default_priorities_low)
    dom_priorities_high_arousal: dict = field(default_factory=_default_priorities_high)
    dom_rate_transition_start: float = RATE_TRANSITION_START_DEFAULT
    dom_rate_transition_end: float = RATE_TRANSITION_END_DEFAULT
    dom_adaptation_rates_low_arousal: dict = field(default_factory=_default_rates_low)
    dom_adaptation_rates_high_arousal: dict = field(default_factory=_default_rates_high)

    # Modulation
    dom_hardening_smoothing_factors: dict = field(
        default_factory=_default_hardening_smoothing
    )
    dom_easing_smoothing_factors: dict = field(default_factory=_default_easing_smoothing)

    # Per-axis PD controller
    enable_dom_specific_profiling: bool = True
    dom_profiling_performance_target: float = DOM_PROFILING_TARGET_DEFAULT
    dom_slope_dampening_factor: float = DOM_SLOPE_DAMPENING_DEFAULT
    dom_min_data_points_for_profiling: int = DOM_MIN_DATA_POINTS_DEFAULT
    dom_profile_capacity: int = DOM_PROFILE_CAPACITY_DEFAULT
    dom_convergence_threshold: float = DOM_CONVERGENCE_THRESHOLD_DEFAULT
    dom_convergence_duration: int = DOM_CONVERGENCE_DURATION_DEFAULT
    dom_exploration_nudge_factor: float = DOM_EXPLORATION_NUDGE_DEFAULT
    dom_boundary_nudge_factor: float = DOM_BOUNDARY_NUDGE_DEFAULT
    dom_max_signal_per_round: float = DOM_MAX_SIGNAL_PER_ROUND_DEFAULT
    dom_hardening_rate_multiplier: float = DOM_HARDENING_MULTIPLIER_DEFAULT
    dom_easing_rate_multiplier: float = DOM_EASING_MULTIPLIER_DEFAULT
    dom_hardening_rate_multiplier_by_dom: dict = field(default_factory=dict)
    dom_easing_rate_multiplier_by_dom: dict = field(default_factory=dict)

    # Session phases
    enable_session_phases: bool = True
    warmup_phase_proportion: float = WARMUP_PROPORTION_DEFAULT
    warmup_initial_difficulty_multiplier: float = WARMUP_INITIAL_MULTIPLIER_DEFAULT
    warmup_performance_target: float = WARMUP_PERFORMANCE_TARGET_DEFAULT
    warmup_adaptation_rate_multiplier: float = WARMUP_RATE_MULTIPLIER_DEFAULT
    warmup_position_floor: float = WARMUP_POSITION_FLOOR_DEFAULT
    interactive_session_proportion: float = INTERACTIVE_SESSION_PROPORTION_DEFAULT
    seconds_per_round_estimate: float = SECONDS_PER_ROUND_DEFAULT
    session_resume_window_seconds: float = SESSION_RESUME_WINDOW_SECONDS_DEFAULT

    # Persistence
    persist_dom_profiles: bool = True
    clear_past_session_data: bool = False

    # Absolute value mapping
    dom_value_ranges: dict = field(default_factory=_default_dom_ranges)

    def __post_init__(self):
        for name in _AXIS_TABLES:
            object.__setattr__(self, name, self._axis_table(name, required=True))
        for name in _AXIS_OVERRIDE_TABLES:
            object.__setattr__(self, name, self._axis_table(name, required=False))
        for name in _KPI_TABLES:
            object.__setattr__(self, name, self._kpi_table(name))
        object.__setattr__(self, "dom_value_ranges", self._range_table())
        for name in (
            "reaction_time_bounds",
            "response_duration_per_target_bounds",
            "tap_accuracy_bounds",
        ):
            best, worst = getattr(self, name)
            if not (math.isfinite(best) and math.isfinite(worst)):
                raise ValueError(f"{name} must be finite numbers")
            if best >= worst:
                raise ValueError(f"{name} must be (best, worst) with best < worst")
            object.__setattr__(self, name, (float(best), float(worst)))
        self._validate()

    def _axis_table(self, name: str, required: bool) -> dict:
        raw = getattr(self, name)
        if not isinstance(raw, dict):
            raise ValueError(f"{name} must be a mapping of difficulty axis to value")
        table = {DOMTarget(key): float(value) for key, value in raw.items()}
        if required:
            missing = [axis.value for axis in DOM_TARGETS if axis not in table]
            if missing:
                raise ValueError(f"{name} is missing axes: {', '.join(missing)}")
        for axis, value in table.items():
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"{name}[{axis.value}] must be a non-negative number")
        return table

    def _kpi_table(self, name: str) -> dict:
        raw = getattr(self, name)
        if not isinstance(raw, dict):
            raise ValueError(f"{name} must be a mapping of KPI to weight")
        table = {KPIType(key): float(value) for key, value in raw.items()}
        missing = [kpi.value for kpi in KPI_TYPES if kpi not in table]
        if missing:
            raise ValueError(f"{name} is missing KPIs: {', '.join(missing)}")
        if any(not math.isfinite(weight) or weight < 0 for weight in table.values()):
            raise ValueError(f"{name} weights must be non-negative numbers")
        if sum(table.values()) <= 0:
            raise ValueError(f"{name} weights must not all be zero")
        return table

    def _range_table(self) -> dict:
        table = {}
        for key, value in self.dom_value_ranges.items():
            if not isinstance(value, DOMRange):
                value = DOMRange(*value)
            bounds = (
                value.easiest_low,
                value.easiest_high,
                value.hardest_low,
                value.hardest_high,
            )
            if not all(math.isfinite(bound) for bound in bounds):
                raise ValueError(f"dom_value_ranges[{DOMTarget(key).value}] must be finite")
            table[DOMTarget(key)] = value
        missing = [axis.value for axis in DOM_TARGETS if axis not in table]
        if missing:
            raise ValueError(f"dom_value_ranges is missing axes: {', '.join(missing)}")
        return table

    def _validate(self) -> None:
        # Comparisons below are all False for NaN.
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            if not math.isfinite(value):
                raise ValueError(f"{f.name} must be a finite number")

        for start_name, end_name in _TRANSITION_WINDOWS:
            if getattr(self, end_name) < getattr(self, start_name):
                raise ValueError(f"{end_name} must be >= {start_name}")

        positive_ints = (
            "history_window_size",
            "dom_profile_capacity",
            "confidence_direction_baseline",
            "confidence_history_baseline",
            "dom_min_data_points_for_profiling",
            "dom_convergence_duration",
        )
        for name in positive_ints:
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if self.minimum_history_for_trend < 0:
            raise ValueError("minimum_history_for_trend must be >= 0")
        if self.min_stable_rounds_before_direction_change < 0:
            raise ValueError("min_stable_rounds_before_direction_change must be >= 0")
        if self.recency_half_life_hours <= 0:
            raise ValueError("recency_half_life_hours must be positive")
        if self.confidence_variance_scale <= 0:
            raise ValueError("confidence_variance_scale must be positive")
        if self.seconds_per_round_estimate <= 0:
            raise ValueError("seconds_per_round_estimate must be positive")
        if self.session_resume_window_seconds <= 0:
            raise ValueError("session_resume_window_seconds must be positive")

        unit_values = (
            "global_performance_target",
            "adaptation_increase_threshold",
            "adaptation_decrease_threshold",
            "dom_profiling_performance_target",
            "warmup_performance_target",
            "warmup_phase_proportion",
            "warmup_position_floor",
            "interactive_session_proportion",
            "min_confidence_multiplier",
        )
        for name in unit_values:
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1]")
        if self.adaptation_increase_threshold < self.adaptation_decrease_threshold:
            raise ValueError(
                "adaptation_increase_threshold must be >= adaptation_decrease_threshold"
            )

        non_negative = (
            "current_performance_weight",
            "history_influence_weight",
            "trend_influence_weight",
            "confidence_threshold_widening_factor",
            "hysteresis_dead_zone",
            "neutral_zone_gain",
            "dom_slope_dampening_factor",
            "dom_convergence_threshold",
            "dom_exploration_nudge_factor",
            "dom_boundary_nudge_factor",
            "dom_max_signal_per_round",
            "dom_hardening_rate_multiplier",
            "dom_easing_rate_multiplier",
            "warmup_initial_difficulty_multiplier",
            "warmup_adaptation_rate_multiplier",
        )
        for name in non_negative:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")

        for name in ("dom_priorities_low_arousal", "dom_priorities_high_arousal"):
            if any(priority <= 0 for priority in getattr(self, name).values()):
                raise ValueError(f"{name} priorities must be positive")

    @property
    def max_priority(self) -> float:
        """Top of the priority scale, used for easing-time inversion."""
        return max(
            max(self.dom_priorities_low_arousal.values()),
            max(self.dom_priorities_high_arousal.values()),
        )

    @classmethod
    def from_dict(cls, overrides: dict | None) -> "ADMConfig":
        """Build a config from JSON-style overrides; unknown keys are rejected."""
        if not overrides:
            return cls()
        if not isinstance(overrides, dict):
            raise TypeError("config overrides must be a dictionary")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**overrides)
