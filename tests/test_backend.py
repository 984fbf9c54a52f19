import pytest

import Session_Based
from ADM_Bases.Persistence import SCHEMA_VERSION, MemoryStateStore
from Tester.backend import app


@pytest.fixture
def client():
	Session_Based.set_state_store(MemoryStateStore())
	app.config["TESTING"] = True
	with app.test_client() as test_client:
		yield test_client
	Session_Based.set_state_store(MemoryStateStore())


def test_health(client):
	response = client.get("/api/health")
	assert response.status_code == 200
	assert response.get_json()["status"] == "ok"


def test_single_round(client):
	response = client.post("/api/adm/round", json={
		"user_id": "p1",
		"arousal": 0.7,
		"task_success": True,
		"tf_ttf_ratio": 1.0,
		"reaction_time": 0.4,
		"response_duration": 0.7,
		"average_tap_accuracy": 12.0,
		"targets_to_find": 2,
	})
	body = response.get_json()
	assert response.status_code == 200
	assert body["success"] is True
	assert body["result"]["batch_mode"] is False
	assert set(body["result"]["summary"]["Normalized_Positions"]) == {
		"discriminatoryLoad", "meanBallSpeed", "ballSpeedSD", "responseTime", "targetCount",
	}


def test_batch_round_reports_per_player_errors(client):
	response = client.post("/api/adm/round", json={
		"players": [
			{"user_id": "p1", "performance_score": 0.8},
			{"user_id": "p2", "targets_to_find": "many"},
		]
	})
	body = response.get_json()
	assert body["success"] is True
	summary = body["result"]["summary"]
	assert summary["processed"] == 1
	assert summary["failed"] == 1


def test_state_session_end_and_clear(client):
	assert client.get("/api/adm/state/p9").status_code == 404

	client.post("/api/adm/round", json={"user_id": "p9", "performance_score": 0.9})
	state = client.get("/api/adm/state/p9").get_json()
	assert state["success"] is True
	assert state["result"]["schema_version"] == SCHEMA_VERSION

	ended = client.post("/api/adm/session/end", json={"user_id": "p9"}).get_json()
	assert ended["result"]["ended"] is True
	saved = client.get("/api/adm/states").get_json()
	assert saved["result"]["saved_states"] == ["p9"]

	cleared = client.post("/api/adm/clear", json={"user_id": "p9"}).get_json()
	assert cleared["result"]["cleared"] is True


def test_session_end_requires_user_id(client):
	response = client.post("/api/adm/session/end", json={})
	assert response.status_code == 400
	assert response.get_json()["success"] is False


def test_priority_preview(client):
	body = client.post("/api/adm/priority", json={"arousal": 0.3}).get_json()
	result = body["result"]
	assert result["priorities"]["targetCount"] == 5.0
	for axis, priority in result["priorities"].items():
		assert priority + result["inverted_priorities"][axis] == pytest.approx(6.0)


def test_budget_preview(client):
	body = client.post("/api/adm/budget", json={
		"budget": -0.2,
		"arousal": 0.3,
		"positions": {"discriminatoryLoad": 0.7},
	}).get_json()
	result = body["result"]
	assert result["positions_after"]["discriminatoryLoad"] < 0.7
	assert result["positions_after"]["targetCount"] == 0.5


def test_invalid_config_is_reported(client):
	response = client.post("/api/adm/priority", json={
		"arousal": 0.5,
		"config": {"dom_priority_transition_start": 0.9, "dom_priority_transition_end": 0.1},
	})
	assert response.status_code == 400


def test_generic_dispatch(client):
	body = client.post("/api/test", json={"function": "priority", "args": {"arousal": 0.9}}).get_json()
	assert body["success"] is True
	unknown = client.post("/api/test", json={"function": "nope", "args": {}})
	assert unknown.status_code == 400


def test_string_flags_are_not_coerced(client):
	response = client.post("/api/adm/round", json={"user_id": "p3", "task_success": "false"})
	assert response.status_code == 400
	assert response.get_json()["success"] is False
	response = client.post("/api/adm/round", json={
		"user_id": "p3", "performance_score": 0.5, "new_session": "true",
	})
	assert response.status_code == 400
	ok = client.post("/api/adm/round", json={"user_id": "p3", "task_success": False})
	assert ok.get_json()["success"] is True
