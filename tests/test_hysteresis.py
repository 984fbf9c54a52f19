import pytest

from ADM_Bases.Hysteresis import HysteresisGate
from adm_config import ADMConfig, AdaptationDirection


def make_gate(**overrides):
	return HysteresisGate(ADMConfig(**overrides))


def test_prevents_immediate_reversal():
	gate = make_gate()
	first = gate.step(0.6)
	assert first.direction is AdaptationDirection.INCREASING
	assert first.signal > 0

	decision = gate.evaluate(0.4)
	assert decision.signal == 0.0
	assert decision.suppressed
	assert gate.last_direction is AdaptationDirection.INCREASING


def test_reversal_allowed_after_stable_rounds():
	gate = make_gate()
	gate.step(0.6)
	suppressed = gate.step(0.4)
	assert suppressed.suppressed
	allowed = gate.step(0.4)
	assert allowed.direction is AdaptationDirection.DECREASING
	assert allowed.signal == pytest.approx(-0.2)
	assert gate.last_direction is AdaptationDirection.DECREASING


def test_stable_round_counting():
	gate = make_gate()
	gate.step(0.6)
	gate.step(0.6)
	assert gate.stable_round_count == 2
	decision = gate.step(0.4)
	assert not decision.suppressed
	assert decision.direction is AdaptationDirection.DECREASING
	assert gate.stable_round_count == 1


def test_dead_zone_emits_nothing():
	gate = make_gate()
	decision = gate.step(0.51)
	assert decision.signal == 0.0
	assert decision.direction is AdaptationDirection.STABLE
	assert gate.last_direction is AdaptationDirection.STABLE


def test_neutral_zone_uses_reduced_gain():
	gate = make_gate()
	assert gate.evaluate(0.53).signal == pytest.approx(0.03)
	assert gate.evaluate(0.47).signal == pytest.approx(-0.03)


def test_outside_thresholds_uses_full_gain():
	gate = make_gate()
	assert gate.evaluate(0.7).signal == pytest.approx(0.4)
	assert gate.evaluate(0.2).signal == pytest.approx(-0.6)


def test_signal_is_clamped():
	gate = make_gate()
	assert gate.evaluate(1.0, target=0.0).signal == 1.0


def test_thresholds_widen_with_low_confidence():
	gate = make_gate()
	assert gate.effective_thresholds(0.5, confidence=1.0) == pytest.approx((0.55, 0.45))
	assert gate.effective_thresholds(0.5, confidence=0.0) == pytest.approx((0.60, 0.40))
	assert gate.effective_thresholds(0.6, confidence=1.0) == pytest.approx((0.65, 0.55))


def test_reversals_are_spaced_by_minimum_stable_rounds():
	gate = make_gate()
	reversal_rounds = []
	previous = gate.last_direction
	for i in range(30):
		gate.step(0.3 if i % 2 == 0 else 0.7)
		current = gate.last_direction
		if previous is not AdaptationDirection.STABLE and current is not previous:
			reversal_rounds.append(i)
		previous = current
	assert reversal_rounds
	for earlier, later in zip(reversal_rounds, reversal_rounds[1:]):
		assert later - earlier >= 2


def test_disabled_hysteresis_allows_immediate_reversal():
	gate = make_gate(enable_hysteresis=False)
	gate.step(0.6)
	decision = gate.step(0.4)
	assert decision.direction is AdaptationDirection.DECREASING
	assert decision.signal < 0
