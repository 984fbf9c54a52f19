import json

import pytest

from ADM_Algo import AdaptiveDifficultyManager
from ADM_Bases.Persistence import (
	SCHEMA_VERSION,
	JSONStateStore,
	MemoryStateStore,
	PersistedState,
)
from adm_config import DOM_TARGETS, ADMConfig, AdaptationDirection, DOMTarget

NOW = 1_000_000.0


def make_manager(store=None, user_id="player-1", config=None, **kwargs):
	return AdaptiveDifficultyManager(
		config=config or ADMConfig(),
		user_id=user_id,
		state_store=store,
		clock=lambda: NOW,
		**kwargs,
	)


def play(manager, scores):
	for score in scores:
		manager.record_identification_performance(
			task_success=score > 0.5,
			tf_ttf_ratio=score,
			reaction_time=0.5,
			response_duration=0.8,
			average_tap_accuracy=30.0,
			targets_to_find=2,
		)


def v1_payload():
	return {
		"performance_history": [
			{"timestamp": NOW, "overall_score": 0.7, "normalized_kpis": {"taskSuccess": 1.0}, "arousal_level": 0.6},
		],
		"last_adaptation_direction": "increasing",
		"direction_stable_count": 3,
		"normalized_positions": {"meanBallSpeed": 0.8, "targetCount": 0.3},
	}


def test_snapshot_round_trip_is_lossless():
	manager = make_manager()
	play(manager, [0.9, 0.2, 0.7, 0.95, 0.4])
	snapshot = manager.snapshot()
	decoded = PersistedState.from_dict(json.loads(json.dumps(snapshot.to_dict())))
	assert decoded == snapshot
	assert decoded.schema_version == SCHEMA_VERSION


def test_v1_payload_migrates_with_empty_profiles():
	state = PersistedState.from_dict(v1_payload())
	assert state.schema_version == SCHEMA_VERSION
	assert state.dom_performance_profiles == {}
	assert state.last_adaptation_direction is AdaptationDirection.INCREASING
	assert state.direction_stable_count == 3
	assert state.normalized_positions[DOMTarget.MEAN_BALL_SPEED] == 0.8
	assert len(state.performance_history) == 1


def test_unknown_fields_and_values_are_ignored():
	payload = v1_payload()
	payload["schema_version"] = 2
	payload["dom_performance_profiles"] = None
	payload["future_field"] = {"anything": True}
	payload["normalized_positions"]["notAnAxis"] = 0.1
	payload["last_adaptation_direction"] = "sideways"
	state = PersistedState.from_dict(payload)
	assert DOMTarget.TARGET_COUNT in state.normalized_positions
	assert len(state.normalized_positions) == 2
	assert state.last_adaptation_direction is AdaptationDirection.STABLE
	assert state.dom_performance_profiles is None


def test_newer_schema_is_rejected():
	payload = v1_payload()
	payload["schema_version"] = SCHEMA_VERSION + 1
	with pytest.raises(ValueError):
		PersistedState.from_dict(payload)


def test_json_store_save_load_clear(tmp_path):
	store = JSONStateStore(str(tmp_path / "states"))
	manager = make_manager(store)
	play(manager, [0.8, 0.9, 0.3])
	assert manager.save_state()

	assert (tmp_path / "states" / "adm_state_player-1.json").exists()
	assert store.list_saved_states() == ["player-1"]
	assert store.load("player-1") == manager.snapshot()

	assert store.clear("player-1")
	assert store.load("player-1") is None
	assert store.list_saved_states() == []


def test_json_store_missing_and_corrupt_files(tmp_path):
	store = JSONStateStore(str(tmp_path))
	assert store.load("nobody") is None
	(tmp_path / "adm_state_broken.json").write_text("{not json", encoding="utf-8")
	assert store.load("broken") is None
	(tmp_path / "adm_state_odd.json").write_text('{"performance_history": 5}', encoding="utf-8")
	assert store.load("odd") is None


def test_json_store_sanitizes_user_ids(tmp_path):
	store = JSONStateStore(str(tmp_path))
	path = store.path_for("../../etc/passwd")
	assert path.startswith(str(tmp_path))
	assert "/" not in path[len(str(tmp_path)) + 1:]


def test_manager_restores_previous_session():
	store = MemoryStateStore()
	first = make_manager(store, config=ADMConfig(enable_dom_specific_profiling=False))
	play(first, [0.95] * 6)
	first.save_state()

	second = make_manager(store, config=ADMConfig(enable_dom_specific_profiling=False))
	assert second.restored_from_persistence
	assert second.normalized_positions == first.normalized_positions
	assert second.last_adaptation_direction is first.last_adaptation_direction
	assert len(second.performance_history) == 6
	for axis in DOM_TARGETS:
		assert len(second.dom_performance_profiles[axis]) == 6


def test_restored_positions_are_eased_for_warmup_with_floor():
	store = MemoryStateStore()
	state = PersistedState(normalized_positions={
		DOMTarget.DISCRIMINATORY_LOAD: 0.2,
		DOMTarget.MEAN_BALL_SPEED: 0.8,
	})
	store.save("player-1", state)
	manager = make_manager(store, session_duration=600)
	assert manager.normalized_positions[DOMTarget.DISCRIMINATORY_LOAD] == pytest.approx(0.2)
	assert manager.normalized_positions[DOMTarget.MEAN_BALL_SPEED] == pytest.approx(0.68)
	assert manager.normalized_positions[DOMTarget.TARGET_COUNT] == pytest.approx(0.425)


def test_clear_past_session_data_option_discards_saved_state():
	store = MemoryStateStore()
	first = make_manager(store)
	play(first, [0.9] * 3)
	first.save_state()

	second = make_manager(store, config=ADMConfig(clear_past_session_data=True))
	assert not second.restored_from_persistence
	assert len(second.performance_history) == 0
	assert store.list_saved_states() == []


def test_profiles_can_be_left_out_of_snapshots():
	manager = make_manager(config=ADMConfig(persist_dom_profiles=False))
	play(manager, [0.6, 0.7])
	payload = manager.snapshot().to_dict()
	assert payload["dom_performance_profiles"] is None
	assert len(payload["performance_history"]) == 2


def test_memory_store_corrupt_payload_loads_as_none():
	store = MemoryStateStore()
	store.save_raw("player-1", "[1, 2")
	assert store.load("player-1") is None
	manager = make_manager(store)
	assert not manager.restored_from_persistence


def test_save_without_store_is_a_no_op():
	manager = make_manager(store=None)
	assert manager.save_state() is False


def test_v2_payload_migrates_without_session_progress():
	payload = v1_payload()
	payload["schema_version"] = 2
	payload["dom_performance_profiles"] = {}
	state = PersistedState.from_dict(payload)
	assert state.session_progress is None
	assert state.schema_version == SCHEMA_VERSION


def test_malformed_session_progress_is_dropped():
	payload = v1_payload()
	payload["schema_version"] = SCHEMA_VERSION
	payload["session_progress"] = {"expected_rounds": 10}
	state = PersistedState.from_dict(payload)
	assert state.session_progress is None
	assert state.normalized_positions[DOMTarget.MEAN_BALL_SPEED] == 0.8


def test_open_session_resumes_without_repeating_warmup():
	store = MemoryStateStore()
	config = ADMConfig(enable_dom_specific_profiling=False)
	first = make_manager(store, config=config, session_duration=600)
	first.record_round(0.6)
	first.save_state()

	second = make_manager(store, config=config, session_duration=600)
	assert second.resumed_session
	assert second.phase_manager.rounds_completed == 1
	assert second.phase_manager.warmup_rounds == first.phase_manager.warmup_rounds
	assert second.normalized_positions == first.normalized_positions


def test_closed_session_starts_a_fresh_warmup():
	store = MemoryStateStore()
	config = ADMConfig(enable_dom_specific_profiling=False)
	first = make_manager(store, config=config, session_duration=600)
	first.record_round(0.6)
	first.save_state(close_session=True)

	second = make_manager(store, config=config, session_duration=600)
	assert second.restored_from_persistence
	assert not second.resumed_session
	assert second.phase_manager.rounds_completed == 0
	assert second.normalized_positions[DOMTarget.MEAN_BALL_SPEED] == pytest.approx(0.425 * 0.85)


def test_idle_session_is_not_resumed():
	store = MemoryStateStore()
	config = ADMConfig(enable_dom_specific_profiling=False)
	first = make_manager(store, config=config, session_duration=600)
	first.record_round(0.6)
	first.save_state()

	later = AdaptiveDifficultyManager(
		config=config,
		user_id="player-1",
		state_store=store,
		clock=lambda: NOW + config.session_resume_window_seconds + 1,
		session_duration=600,
	)
	assert later.restored_from_persistence
	assert not later.resumed_session
	assert later.session_phase.progress == 0.0


def test_new_session_flag_ignores_open_session():
	store = MemoryStateStore()
	first = make_manager(store, session_duration=600)
	first.record_round(0.6)
	first.save_state()

	second = make_manager(store, session_duration=600, new_session=True)
	assert not second.resumed_session
	assert second.phase_manager.rounds_completed == 0
