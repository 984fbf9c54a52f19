"""
Weighted_Budget.py
------------------
Global (legacy) adaptation path. A single hysteresis-gated signal becomes a
budget that is split across the difficulty axes by arousal-interpolated
priority, with a two-pass split when easing.
"""

from ADM_Bases.Interpolation import interpolate_table, invert_priority
from ADM_Bases.Modulation import ModulationApplier
from ADM_Bases.Round import RoundContext
from adm_config import (
    BUDGET_EPSILON,
    DOM_TARGETS,
    POSITION_MIDPOINT,
    ADMConfig,
    clamp,
    clamp_unit,
)


class WeightedBudgetStrategy:

    name = "global_budget"

    __slots__ = ("_config",)

    def __init__(self, config: ADMConfig):
        self._config = config

    def interpolated_priorities(self, arousal: float) -> dict:
        config = self._config
        return interpolate_table(
            config.dom_priorities_low_arousal,
            config.dom_priorities_high_arousal,
            arousal,
            config.dom_priority_transition_start,
            config.dom_priority_transition_end,
        )

    def distribute(
        self,
        total_budget: float,
        arousal: float,
        invert_priorities: bool = False,
        subset=None,
    ) -> dict:
        """
        Split total_budget across axes in proportion to their priority.

        Args:
            total_budget (float): Signed budget; positive hardens.
            arousal (float): Current arousal, selects the priority blend.
            invert_priorities (bool): Use ``max + 1 - p`` (easing order).
            subset: Axes to include; all axes when None.

        Returns:
            dict: DOMTarget -> signed share. Shares sum to total_budget.
        """
        axes = tuple(subset) if subset else DOM_TARGETS
        priorities = self.interpolated_priorities(arousal)
        max_priority = self._config.max_priority
        weights = {}
        for axis in axes:
            priority = priorities[axis]
            if invert_priorities:
                priority = invert_priority(priority, max_priority)
            weights[axis] = priority
        total_weight = sum(weights.values())
        if total_weight <= 0:
            return {axis: 0.0 for axis in axes}
        return {axis: total_budget * w / total_weight for axis, w in weights.items()}

    def modulate_with_weighted_budget(
        self,
        positions: dict,
        applier: ModulationApplier,
        total_budget: float,
        arousal: float,
    ) -> float:
        """
        Apply a signed budget to positions and return the unspent remainder.

        Hardening spreads the budget by priority. Easing first spreads it over
        axes sitting above the midpoint using inverted priority, and only
        touches every axis when none is above the midpoint.
        """
        if abs(total_budget) < BUDGET_EPSILON:
            return total_budget

        if total_budget > 0:
            shares = self.distribute(total_budget, arousal)
        else:
            overshooting = [a for a in DOM_TARGETS if positions[a] > POSITION_MIDPOINT]
            shares = self.distribute(
                total_budget, arousal, invert_priorities=True, subset=overshooting or None
            )

        spent = 0.0
        for axis, share in shares.items():
            current = positions[axis]
            spent += clamp_unit(current + share) - current
            applier.apply(positions, axis, share)
        return total_budget - spent

    def adapt(self, manager, context: RoundContext) -> dict:
        config = self._config
        decision = manager.hysteresis.evaluate(
            context.adaptive_score,
            target=context.performance_target,
            confidence=context.confidence.total,
        )
        manager.hysteresis.commit(decision)

        budget = decision.signal
        if config.enable_confidence_scaling:
            budget *= max(config.min_confidence_multiplier, context.confidence.total)
        budget = clamp(budget * context.rate_multiplier, -1.0, 1.0)

        before = dict(manager.normalized_positions)
        unspent = self.modulate_with_weighted_budget(
            manager.normalized_positions, manager.modulation, budget, context.arousal
        )
        return {
            "path": self.name,
            "signal": round(decision.signal, 4),
            "direction": decision.direction.value,
            "suppressed": decision.suppressed,
            "budget": round(budget, 4),
            "unspent_budget": round(unspent, 4),
            "changes": {
                axis.value: round(manager.normalized_positions[axis] - before[axis], 4)
                for axis in DOM_TARGETS
            },
        }
