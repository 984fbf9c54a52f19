from dataclasses import dataclass

from ADM_Bases.Confidence import ConfidenceScore
from ADM_Bases.Phase import SessionPhaseState


@dataclass(frozen=True)
class RoundContext:
    """Per-round inputs handed to the active adaptation strategy."""

    timestamp: float
    performance_score: float
    adaptive_score: float
    arousal: float
    confidence: ConfidenceScore
    phase_state: SessionPhaseState
    performance_target: float
    rate_multiplier: float
