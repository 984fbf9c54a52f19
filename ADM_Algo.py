"""
ADM_Algo.py
-----------
Adaptive Difficulty Manager. Owns every piece of per-player adaptive state
(history, per-axis profiles, normalized positions, hysteresis memory, phase)
and runs one round end to end: record, score, pick a signal through the
active strategy, modulate positions.
"""

import logging
import time

from ADM_Bases.Confidence import (
    ConfidenceScore,
    calculate_global_confidence,
    calculate_local_confidence,
)
from ADM_Bases.History import PerformanceHistory, PerformanceHistoryEntry
from ADM_Bases.Hysteresis import HysteresisGate
from ADM_Bases.Interpolation import lerp
from ADM_Bases.KPI import normalize_kpis, overall_performance_score
from ADM_Bases.Modulation import ModulationApplier
from ADM_Bases.Persistence import PersistedState
from ADM_Bases.Phase import SessionPhaseManager, SessionPhaseState, estimate_expected_rounds
from ADM_Bases.Profile import DOMPerformanceProfile
from ADM_Bases.Round import RoundContext
from PD_Controller import PDProfilingStrategy
from Weighted_Budget import WeightedBudgetStrategy
from adm_config import (
    DOM_TARGETS,
    INITIAL_AROUSAL_DEFAULT,
    NEUTRAL_SCORE,
    POSITION_MIDPOINT,
    ADMConfig,
    AdaptationDirection,
    DOMTarget,
    clamp_unit,
    finite_or,
    normalize_arousal,
)

logger = logging.getLogger(__name__)


class AdaptiveDifficultyManager:

    __slots__ = (
        "config",
        "user_id",
        "current_arousal_level",
        "performance_history",
        "dom_performance_profiles",
        "normalized_positions",
        "hysteresis",
        "modulation",
        "phase_manager",
        "strategy",
        "restored_from_persistence",
        "resumed_session",
        "_store",
        "_clock",
        "_last_active_at",
    )

    def __init__(
        self,
        config: ADMConfig | None = None,
        initial_arousal: float = INITIAL_AROUSAL_DEFAULT,
        session_duration: float | None = None,
        expected_rounds: int | None = None,
        user_id: str | None = None,
        state_store=None,
        clock=time.time,
        new_session: bool = False,
    ):
        self.config = config or ADMConfig()
        self.user_id = user_id
        self._store = state_store
        self._clock = clock
        self._last_active_at = clock()
        self.current_arousal_level = clamp_unit(
            finite_or(initial_arousal, INITIAL_AROUSAL_DEFAULT)
        )

        self.performance_history = PerformanceHistory(self.config)
        self.dom_performance_profiles = {
            axis: DOMPerformanceProfile(axis, self.config.dom_profile_capacity)
            for axis in DOM_TARGETS
        }
        self.normalized_positions = {axis: POSITION_MIDPOINT for axis in DOM_TARGETS}
        self.hysteresis = HysteresisGate(self.config)
        self.modulation = ModulationApplier(self.config)

        if expected_rounds is None and session_duration is not None:
            expected_rounds = estimate_expected_rounds(session_duration, self.config)
        self.phase_manager = SessionPhaseManager(self.config, expected_rounds or 0)

        # Fixed for the lifetime of the instance.
        if self.config.enable_dom_specific_profiling:
            self.strategy = PDProfilingStrategy(
                self.config, WeightedBudgetStrategy(self.config)
            )
        else:
            self.strategy = WeightedBudgetStrategy(self.config)

        state = self._load_persisted_state()
        self.restored_from_persistence = state is not None
        self.resumed_session = (
            state is not None and not new_session and self._can_resume(state.session_progress)
        )
        if self.resumed_session:
            # Warmup easing was applied when this session started.
            self.phase_manager.resume(state.session_progress)
        elif self.phase_manager.is_warmup:
            for axis in DOM_TARGETS:
                self.normalized_positions[axis] = self.phase_manager.scale_initial_position(
                    self.normalized_positions[axis]
                )

    # Hysteresis memory, exposed for snapshots and callers.

    @property
    def last_adaptation_direction(self) -> AdaptationDirection:
        return self.hysteresis.last_direction

    @last_adaptation_direction.setter
    def last_adaptation_direction(self, direction: AdaptationDirection) -> None:
        self.hysteresis.last_direction = AdaptationDirection(direction)

    @property
    def direction_stable_count(self) -> int:
        return self.hysteresis.stable_round_count

    @direction_stable_count.setter
    def direction_stable_count(self, count: int) -> None:
        self.hysteresis.stable_round_count = max(0, int(count))

    @property
    def session_phase(self) -> SessionPhaseState:
        return self.phase_manager.state

    def update_arousal_level(self, arousal: float) -> float:
        """Store a new arousal reading; NaN/inf keep the previous level."""
        self.current_arousal_level = clamp_unit(
            finite_or(arousal, self.current_arousal_level)
        )
        return self.current_arousal_level

    def calculate_adaptation_confidence(self) -> ConfidenceScore:
        return calculate_global_confidence(
            self.performance_history.entries,
            self.direction_stable_count,
            self._clock(),
            self.config,
        )

    def calculate_local_confidence(self, axis: DOMTarget) -> ConfidenceScore:
        axis = DOMTarget(axis)
        direction_count = 0
        if isinstance(self.strategy, PDProfilingStrategy):
            direction_count = self.strategy.axis_stable_counts[axis]
        return calculate_local_confidence(
            self.dom_performance_profiles[axis], direction_count, self._clock(), self.config
        )

    def absolute_value(self, axis: DOMTarget, arousal: float | None = None) -> float:
        """Gameplay parameter value for an axis' current normalized position."""
        axis = DOMTarget(axis)
        if arousal is None:
            arousal = self.current_arousal_level
        easiest, hardest = self._value_span(axis, arousal)
        value = lerp(easiest, hardest, self.normalized_positions[axis])
        if self.config.dom_value_ranges[axis].rounded:
            return float(round(value))
        return value

    def absolute_values(self, arousal: float | None = None) -> dict:
        return {axis: self.absolute_value(axis, arousal) for axis in DOM_TARGETS}

    def normalized_value(
        self, axis: DOMTarget, value: float, arousal: float | None = None
    ) -> float:
        """Position in [0, 1] that an absolute gameplay value corresponds to."""
        axis = DOMTarget(axis)
        if arousal is None:
            arousal = self.current_arousal_level
        easiest, hardest = self._value_span(axis, arousal)
        if hardest == easiest:
            return self.normalized_positions[axis]
        return clamp_unit((value - easiest) / (hardest - easiest))

    def _value_span(self, axis: DOMTarget, arousal: float) -> tuple:
        t = normalize_arousal(arousal)
        value_range = self.config.dom_value_ranges[axis]
        easiest = lerp(value_range.easiest_low, value_range.easiest_high, t)
        hardest = lerp(value_range.hardest_low, value_range.hardest_high, t)
        return easiest, hardest

    def record_identification_performance(
        self,
        task_success: bool,
        tf_ttf_ratio: float,
        reaction_time: float,
        response_duration: float,
        average_tap_accuracy: float,
        targets_to_find: int,
        dom_values: dict | None = None,
        arousal: float | None = None,
    ) -> dict:
        """Score raw round measurements and run one adaptation round."""
        if arousal is not None:
            self.update_arousal_level(arousal)
        kpis = normalize_kpis(
            task_success,
            tf_ttf_ratio,
            reaction_time,
            response_duration,
            average_tap_accuracy,
            targets_to_find,
            self.config,
        )
        score = overall_performance_score(kpis, self.current_arousal_level, self.config)
        return self.record_round(score, normalized_kpis=kpis, dom_values=dom_values)

    def record_round(
        self,
        performance_score: float,
        normalized_kpis: dict | None = None,
        dom_values: dict | None = None,
        arousal: float | None = None,
    ) -> dict:
        """
        Run one adaptation round from an already computed overall score.

        ``dom_values`` optionally maps axis -> absolute value the round was
        played at. Profiles always record normalized positions, so supplied
        values are mapped back onto the arousal-gated range first.
        """
        if arousal is not None:
            self.update_arousal_level(arousal)
        now = self._clock()
        self._last_active_at = now
        score = clamp_unit(finite_or(performance_score, NEUTRAL_SCORE))
        arousal_level = self.current_arousal_level

        supplied = {}
        for key, value in (dom_values or {}).items():
            number = finite_or(value, None)
            if number is not None:
                supplied[DOMTarget(key)] = number
        absolute = self.absolute_values(arousal_level)

        self.performance_history.record(
            PerformanceHistoryEntry(
                timestamp=now,
                overall_score=score,
                normalized_kpis=dict(normalized_kpis or {}),
                arousal_level=arousal_level,
                dom_values={axis: supplied.get(axis, absolute[axis]) for axis in DOM_TARGETS},
            )
        )
        for axis in DOM_TARGETS:
            if axis in supplied:
                position = self.normalized_value(axis, supplied[axis], arousal_level)
            else:
                position = self.normalized_positions[axis]
            self.dom_performance_profiles[axis].record_performance(now, position, score)

        phase_state = self.phase_manager.state
        context = RoundContext(
            timestamp=now,
            performance_score=score,
            adaptive_score=self.performance_history.adaptive_score(score),
            arousal=arousal_level,
            confidence=self.calculate_adaptation_confidence(),
            phase_state=phase_state,
            performance_target=self.phase_manager.performance_target(),
            rate_multiplier=self.phase_manager.adaptation_rate_multiplier(),
        )
        outcome = self.strategy.adapt(self, context)
        self.phase_manager.advance()

        self._log_round(context, outcome)
        return self._build_response(context, outcome)

    def _log_round(self, context: RoundContext, outcome: dict) -> None:
        logger.info(
            {
                "event": "adm_round",
                "user_id": self.user_id,
                "performance_score": round(context.performance_score, 4),
                "adaptive_score": round(context.adaptive_score, 4),
                "arousal": round(context.arousal, 4),
                "phase": context.phase_state.phase.value,
                "confidence": round(context.confidence.total, 4),
                "path": outcome["path"],
                "fallback": outcome.get("fallback", False),
                "direction": self.last_adaptation_direction.value,
                "positions": {
                    axis.value: round(self.normalized_positions[axis], 4)
                    for axis in DOM_TARGETS
                },
            }
        )

    def _build_response(self, context: RoundContext, outcome: dict) -> dict:
        return {
            "performance_score": round(context.performance_score, 4),
            "adaptive_score": round(context.adaptive_score, 4),
            "arousal": round(context.arousal, 4),
            "performance_target": context.performance_target,
            "session_phase": context.phase_state.to_dict(),
            "confidence": context.confidence.to_dict(),
            "last_adaptation_direction": self.last_adaptation_direction.value,
            "direction_stable_count": self.direction_stable_count,
            "normalized_positions": {
                axis.value: round(self.normalized_positions[axis], 4) for axis in DOM_TARGETS
            },
            "absolute_values": {
                axis.value: round(value, 4) for axis, value in self.absolute_values().items()
            },
            "adaptation": outcome,
        }

    def snapshot(self, close_session: bool = False) -> PersistedState:
        """State to persist; an open session also records its phase progress."""
        profiles = None
        if self.config.persist_dom_profiles:
            profiles = {
                axis: list(profile.performance_by_value)
                for axis, profile in self.dom_performance_profiles.items()
            }
        return PersistedState(
            performance_history=list(self.performance_history.entries),
            last_adaptation_direction=self.last_adaptation_direction,
            direction_stable_count=self.direction_stable_count,
            normalized_positions=dict(self.normalized_positions),
            dom_performance_profiles=profiles,
            session_progress=(
                None if close_session else self.phase_manager.progress(self._last_active_at)
            ),
        )

    def restore(self, state: PersistedState) -> None:
        """Adopt a persisted snapshot; missing pieces keep their defaults."""
        self.performance_history.replace(state.performance_history)
        self.hysteresis.last_direction = state.last_adaptation_direction
        self.hysteresis.stable_round_count = state.direction_stable_count
        for axis in DOM_TARGETS:
            self.normalized_positions[axis] = clamp_unit(
                state.normalized_positions.get(axis, POSITION_MIDPOINT)
            )
        if state.dom_performance_profiles is not None:
            for axis, points in state.dom_performance_profiles.items():
                self.dom_performance_profiles[axis].replace(points)

    def _load_persisted_state(self) -> PersistedState | None:
        if self._store is None or self.user_id is None:
            return None
        if self.config.clear_past_session_data:
            self._store.clear(self.user_id)
            return None
        state = self._store.load(self.user_id)
        if state is not None:
            self.restore(state)
        return state

    def _can_resume(self, progress) -> bool:
        if progress is None:
            return False
        idle = self._clock() - progress.last_active_at
        return idle <= self.config.session_resume_window_seconds

    def save_state(self, close_session: bool = False) -> bool:
        """Persist a snapshot; returns False when no store/user is attached.

        ``close_session`` marks the session finished, so the next manager for
        this player starts a fresh one (with warmup) instead of resuming it.
        """
        if self._store is None or self.user_id is None:
            return False
        self._store.save(self.user_id, self.snapshot(close_session))
        return True

    def clear_past_session_data(self) -> None:
        """Forget all learned state, in memory and in the attached store."""
        self.performance_history.clear()
        for profile in self.dom_performance_profiles.values():
            profile.clear()
        for axis in DOM_TARGETS:
            self.normalized_positions[axis] = POSITION_MIDPOINT
        self.hysteresis.reset()
        if isinstance(self.strategy, PDProfilingStrategy):
            self.strategy.reset()
        if self._store is not None and self.user_id is not None:
            self._store.clear(self.user_id)
