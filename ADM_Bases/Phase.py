import math
from dataclasses import dataclass

from adm_config import ADMConfig, SessionPhase, clamp_unit


@dataclass(frozen=True)
class SessionPhaseState:
    phase: SessionPhase
    progress: float

    def to_dict(self) -> dict:
        return {"phase": self.phase.value, "progress": round(self.progress, 4)}


@dataclass(frozen=True)
class SessionProgress:
    """How far an unfinished session got, so a later process can resume it."""

    expected_rounds: int
    rounds_completed: int
    last_active_at: float

    def to_dict(self) -> dict:
        return {
            "expected_rounds": self.expected_rounds,
            "rounds_completed": self.rounds_completed,
            "last_active_at": self.last_active_at,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "SessionProgress":
        if not isinstance(payload, dict):
            raise TypeError("session progress must be a dictionary")
        last_active_at = float(payload["last_active_at"])
        if not math.isfinite(last_active_at):
            raise ValueError("last_active_at must be finite")
        return cls(
            expected_rounds=max(0, int(payload.get("expected_rounds", 0))),
            rounds_completed=max(0, int(payload.get("rounds_completed", 0))),
            last_active_at=last_active_at,
        )


def estimate_expected_rounds(session_duration: float, config: ADMConfig) -> int:
    """Rounds expected in a session of ``session_duration`` seconds."""
    if session_duration is None or session_duration <= 0:
        return 0
    interactive = session_duration * config.interactive_session_proportion
    return int(math.floor(interactive / config.seconds_per_round_estimate))


def warmup_length(expected_rounds: int, config: ADMConfig) -> int:
    if not config.enable_session_phases or expected_rounds <= 0:
        return 0
    return max(1, int(expected_rounds * config.warmup_phase_proportion))


class SessionPhaseManager:
    """Tracks warmup versus standard play for one session."""

    __slots__ = ("_config", "expected_rounds", "warmup_rounds", "rounds_completed")

    def __init__(self, config: ADMConfig, expected_rounds: int = 0):
        self._config = config
        self.expected_rounds = max(0, int(expected_rounds or 0))
        self.warmup_rounds = warmup_length(self.expected_rounds, config)
        self.rounds_completed = 0

    @property
    def is_warmup(self) -> bool:
        return self.rounds_completed < self.warmup_rounds

    @property
    def state(self) -> SessionPhaseState:
        if self.is_warmup:
            return SessionPhaseState(
                SessionPhase.WARMUP, self.rounds_completed / self.warmup_rounds
            )
        remaining = self.expected_rounds - self.warmup_rounds
        if remaining <= 0:
            progress = 0.0
        else:
            progress = (self.rounds_completed - self.warmup_rounds) / remaining
        return SessionPhaseState(SessionPhase.STANDARD, clamp_unit(progress))

    def performance_target(self) -> float:
        if self.is_warmup:
            return self._config.warmup_performance_target
        return self._config.global_performance_target

    def adaptation_rate_multiplier(self) -> float:
        if self.is_warmup:
            return self._config.warmup_adaptation_rate_multiplier
        return 1.0

    def scale_initial_position(self, position: float) -> float:
        """Ease a starting position for warmup without sinking below the floor."""
        scaled = position * self._config.warmup_initial_difficulty_multiplier
        floor = min(position, self._config.warmup_position_floor)
        return clamp_unit(max(scaled, floor))

    def advance(self) -> None:
        self.rounds_completed += 1

    def progress(self, last_active_at: float) -> SessionProgress:
        return SessionProgress(self.expected_rounds, self.rounds_completed, last_active_at)

    def resume(self, progress: SessionProgress) -> None:
        """Continue a session started by an earlier manager."""
        self.expected_rounds = progress.expected_rounds
        self.warmup_rounds = warmup_length(self.expected_rounds, self._config)
        self.rounds_completed = progress.rounds_completed
