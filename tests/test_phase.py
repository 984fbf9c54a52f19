import pytest

from ADM_Bases.Phase import SessionPhaseManager, estimate_expected_rounds, warmup_length
from adm_config import ADMConfig, SessionPhase


def test_expected_rounds_from_session_duration():
	config = ADMConfig()
	assert estimate_expected_rounds(600, config) == 15
	assert estimate_expected_rounds(0, config) == 0
	assert estimate_expected_rounds(None, config) == 0


def test_warmup_length():
	config = ADMConfig()
	assert warmup_length(15, config) == 3
	assert warmup_length(2, config) == 1
	assert warmup_length(0, config) == 0
	assert warmup_length(15, ADMConfig(enable_session_phases=False)) == 0


def test_phase_transitions_after_warmup_rounds():
	manager = SessionPhaseManager(ADMConfig(), expected_rounds=12)
	assert manager.warmup_rounds == 3
	for _ in range(3):
		assert manager.state.phase is SessionPhase.WARMUP
		assert manager.performance_target() == 0.60
		assert manager.adaptation_rate_multiplier() == 1.7
		manager.advance()
	assert manager.state.phase is SessionPhase.STANDARD
	assert manager.performance_target() == 0.50
	assert manager.adaptation_rate_multiplier() == 1.0


def test_phase_progress():
	manager = SessionPhaseManager(ADMConfig(), expected_rounds=12)
	assert manager.state.progress == 0.0
	manager.advance()
	assert manager.state.progress == pytest.approx(1 / 3)
	for _ in range(5):
		manager.advance()
	assert manager.state.phase is SessionPhase.STANDARD
	assert manager.state.progress == pytest.approx(3 / 9)


def test_no_expected_rounds_means_no_warmup():
	manager = SessionPhaseManager(ADMConfig(), expected_rounds=0)
	assert not manager.is_warmup
	assert manager.state.phase is SessionPhase.STANDARD


def test_initial_position_scaling_with_floor():
	manager = SessionPhaseManager(ADMConfig(), expected_rounds=12)
	assert manager.scale_initial_position(0.5) == pytest.approx(0.425)
	assert manager.scale_initial_position(1.0) == pytest.approx(0.85)
	# 0.2 * 0.85 would sink below min(0.2, 0.3)
	assert manager.scale_initial_position(0.2) == pytest.approx(0.2)
	assert manager.scale_initial_position(0.34) == pytest.approx(0.3)
