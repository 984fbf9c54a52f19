import math

from adm_config import ADMConfig, DOMTarget, clamp_unit


class ModulationApplier:
    """Commits desired position changes with per-axis directional smoothing."""

    __slots__ = ("_config",)

    def __init__(self, config: ADMConfig):
        self._config = config

    def smoothing_factor(self, axis: DOMTarget, delta: float) -> float:
        if delta > 0:
            return self._config.dom_hardening_smoothing_factors[axis]
        return self._config.dom_easing_smoothing_factors[axis]

    def apply(
        self,
        positions: dict,
        axis: DOMTarget,
        delta: float,
        bypass_smoothing: bool = False,
    ) -> float:
        """
        Move ``positions[axis]`` by delta and return the change actually applied.

        Positive deltas harden, non-positive ones ease. The committed position
        is always clamped to [0, 1].
        """
        if not math.isfinite(delta):
            delta = 0.0
        if not bypass_smoothing:
            delta *= self.smoothing_factor(axis, delta)
        current = positions[axis]
        updated = clamp_unit(current + delta)
        positions[axis] = updated
        return updated - current
