import pytest

import Session_Based
from ADM_Bases.Persistence import MemoryStateStore
from Session_Based import (
	clear_user_data,
	end_session,
	get_user_state,
	run_round_adjustment,
)


@pytest.fixture(autouse=True)
def memory_store():
	store = MemoryStateStore()
	Session_Based.set_state_store(store)
	yield store
	Session_Based.set_state_store(MemoryStateStore())


def test_run_round_adjustment_basic_shape():
	result = run_round_adjustment(
		user_id="u1",
		arousal=0.6,
		task_success=True,
		tf_ttf_ratio=1.0,
		reaction_time=0.5,
		response_duration=0.9,
		average_tap_accuracy=15.0,
		targets_to_find=2,
	)
	assert result["user_id"] == "u1"
	assert "ADM_Result" in result
	summary = result.get("Summary")
	assert isinstance(summary, dict)
	assert "Normalized_Positions" in summary
	assert "Absolute_Values" in summary
	assert summary["Adaptation_Path"] == "global_budget"
	assert summary["Global_Fallback"] is True


def test_session_reuses_manager_between_rounds():
	run_round_adjustment(user_id="u1", performance_score=0.7)
	result = run_round_adjustment(user_id="u1", performance_score=0.7)
	assert result["metadata"]["rounds_played"] == 2
	assert Session_Based.active_sessions() == ["u1"]


def test_end_session_saves_and_releases(memory_store):
	run_round_adjustment(user_id="u2", performance_score=0.9)
	assert end_session("u2") is True
	assert Session_Based.active_sessions() == []
	assert memory_store.list_saved_states() == ["u2"]
	state = get_user_state("u2")
	assert len(state["performance_history"]) == 1
	assert end_session("u2") is False


def test_next_session_restores_saved_state():
	run_round_adjustment(user_id="u3", performance_score=0.95)
	end_session("u3")
	result = run_round_adjustment(user_id="u3", performance_score=0.95)
	assert result["metadata"]["restored_from_persistence"] is True
	assert result["metadata"]["rounds_played"] == 1


def test_clear_user_data(memory_store):
	run_round_adjustment(user_id="u4", performance_score=0.2, auto_save=True)
	assert memory_store.list_saved_states() == ["u4"]
	assert clear_user_data("u4") is True
	assert memory_store.list_saved_states() == []
	assert get_user_state("u4") is None


def test_invalid_inputs_are_rejected():
	with pytest.raises(TypeError):
		run_round_adjustment(user_id="u5", task_success="yes")
	with pytest.raises(TypeError):
		run_round_adjustment(user_id="u5", dom_values=[1, 2])
	with pytest.raises(TypeError):
		run_round_adjustment(user_id="u5", auto_save="false")
	with pytest.raises(TypeError):
		run_round_adjustment(user_id="u5", new_session="yes")
	with pytest.raises(ValueError):
		run_round_adjustment(user_id="u6", config_overrides={"no_such_setting": 1})


def test_rounds_in_separate_processes_share_one_warmup():
	phases = []
	speeds = []
	for _ in range(6):
		result = run_round_adjustment(
			user_id="u7", performance_score=0.6, session_duration=600, auto_save=True
		)
		# Each stand-alone script call starts with no live managers.
		Session_Based._managers.clear()
		phases.append(result["Summary"]["Session_Phase"])
		speeds.append(result["Summary"]["Normalized_Positions"]["meanBallSpeed"])
	assert phases == ["warmup"] * 3 + ["standard"] * 3
	assert speeds[:3] == [0.425] * 3
	assert result["metadata"]["rounds_played"] == 6
	assert result["metadata"]["resumed_session"] is True


def test_new_session_restarts_warmup():
	run_round_adjustment(user_id="u8", performance_score=0.6, session_duration=600, auto_save=True)
	result = run_round_adjustment(
		user_id="u8", performance_score=0.6, session_duration=600, new_session=True
	)
	assert result["metadata"]["rounds_played"] == 1
	assert result["metadata"]["restored_from_persistence"] is True
	assert result["metadata"]["resumed_session"] is False
	assert result["Summary"]["Session_Phase"] == "warmup"
