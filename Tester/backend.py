"""
Flask Backend API for Adaptive Difficulty Testing
Provides REST endpoints to drive the adaptive difficulty manager from the front-end.
"""

from flask import Flask, request, jsonify
from flask_cors import CORS
import sys
import os

# Add parent directory to path to import the engine modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import Session_Based
from ADM_Bases.Interpolation import invert_priority
from ADM_Bases.Modulation import ModulationApplier
from PD_Controller import PDProfilingStrategy
from Session_Based import (
    clear_user_data,
    end_session,
    get_user_state,
    run_round_adjustment,
)
from Weighted_Budget import WeightedBudgetStrategy
from adm_config import DOM_TARGETS, POSITION_MIDPOINT, ADMConfig, DOMTarget, clamp_unit

app = Flask(__name__)
CORS(app)  # Enable CORS for front-end requests


def _round_kwargs(data: dict) -> dict:
    performance_score = data.get('performance_score')
    session_duration = data.get('session_duration')
    return {
        "user_id": data.get('user_id') or data.get('player_id', 'Player'),
        "arousal": float(data.get('arousal', 0.5)),
        "task_success": data.get('task_success', False),
        "tf_ttf_ratio": float(data.get('tf_ttf_ratio', 0.0)),
        "reaction_time": float(data.get('reaction_time', 1.0)),
        "response_duration": float(data.get('response_duration', 1.0)),
        "average_tap_accuracy": float(data.get('average_tap_accuracy', 0.0)),
        "targets_to_find": int(data.get('targets_to_find', 1)),
        "performance_score": None if performance_score is None else float(performance_score),
        "dom_values": data.get('dom_values'),
        "session_duration": None if session_duration is None else float(session_duration),
        "config_overrides": data.get('config'),
        "auto_save": data.get('auto_save', False),
        "new_session": data.get('new_session', False),
    }


def _require_user_id(data: dict) -> str:
    user_id = data.get('user_id')
    if not user_id:
        raise ValueError("'user_id' is required")
    return user_id


def _budget_preview(data: dict) -> dict:
    config = ADMConfig.from_dict(data.get('config'))
    strategy = WeightedBudgetStrategy(config)
    arousal = clamp_unit(float(data.get('arousal', 0.5)))
    budget = float(data.get('budget', 0.0))

    positions = {axis: POSITION_MIDPOINT for axis in DOM_TARGETS}
    for key, value in (data.get('positions') or {}).items():
        positions[DOMTarget(key)] = clamp_unit(float(value))
    before = dict(positions)

    unspent = strategy.modulate_with_weighted_budget(
        positions, ModulationApplier(config), budget, arousal
    )
    return {
        "budget": budget,
        "arousal": arousal,
        "unspent_budget": round(unspent, 4),
        "positions_before": {a.value: round(before[a], 4) for a in DOM_TARGETS},
        "positions_after": {a.value: round(positions[a], 4) for a in DOM_TARGETS},
    }


def _priority_preview(data: dict) -> dict:
    config = ADMConfig.from_dict(data.get('config'))
    arousal = clamp_unit(float(data.get('arousal', 0.5)))
    priorities = WeightedBudgetStrategy(config).interpolated_priorities(arousal)
    pd_strategy = PDProfilingStrategy(config)
    return {
        "arousal": arousal,
        "priorities": {a.value: round(p, 4) for a, p in priorities.items()},
        "inverted_priorities": {
            a.value: round(invert_priority(p, config.max_priority), 4)
            for a, p in priorities.items()
        },
        "adaptation_rates": {
            a.value: round(pd_strategy.interpolated_rate(a, arousal), 4) for a in DOM_TARGETS
        },
    }


@app.route('/api/health', methods=['GET'])
def health():
    """Health check endpoint"""
    return jsonify({"status": "ok", "message": "Adaptive difficulty API is running"})


@app.route('/api/adm/round', methods=['POST'])
def adm_round():
    """
    Record one round and adapt difficulty.
    Supports both a single player and batch processing (multiple players).

    Single player JSON payload:
    {
        "user_id": str,
        "arousal": float,
        "task_success": bool,
        "tf_ttf_ratio": float,
        "reaction_time": float,
        "response_duration": float,
        "average_tap_accuracy": float,
        "targets_to_find": int,
        "performance_score": float (optional, skips KPI scoring),
        "dom_values": dict (optional),
        "session_duration": float (optional, seconds),
        "config": dict (optional, used when the session starts),
        "auto_save": bool (optional),
        "new_session": bool (optional, closes any open session first)
    }

    Batch JSON payload:
    {
        "players": [ {single player payload}, ... ]
    }
    """
    try:
        data = request.json

        if 'players' in data and isinstance(data.get('players'), list):
            players = data.get('players', [])
            if not players:
                raise ValueError("'players' must be a non-empty list")

            results = []
            for idx, player in enumerate(players):
                try:
                    result = run_round_adjustment(**_round_kwargs(player))
                    results.append({
                        "player_index": idx + 1,
                        "user_id": result["user_id"],
                        "summary": result["Summary"],
                        "full_details": result
                    })
                except (TypeError, ValueError, KeyError) as e:
                    # If one player fails, include error in result
                    results.append({
                        "player_index": idx + 1,
                        "user_id": player.get('user_id', f'Player_{idx+1}'),
                        "error": str(e)
                    })

            return jsonify({
                "success": True,
                "result": {
                    "batch_mode": True,
                    "players": results,
                    "summary": {
                        "total_players": len(players),
                        "processed": len([r for r in results if "error" not in r]),
                        "failed": len([r for r in results if "error" in r])
                    }
                }
            })

        result = run_round_adjustment(**_round_kwargs(data))
        return jsonify({
            "success": True,
            "result": {
                "batch_mode": False,
                "summary": result["Summary"],
                "full_details": result
            }
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/adm/state/<user_id>', methods=['GET'])
def adm_state(user_id):
    """Snapshot of a player's live or persisted adaptive state."""
    try:
        state = get_user_state(user_id)
        if state is None:
            return jsonify({
                "success": False,
                "error": f"No state for user: {user_id}"
            }), 404
        return jsonify({
            "success": True,
            "result": state
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/adm/states', methods=['GET'])
def adm_saved_states():
    """List players with persisted state."""
    try:
        store = Session_Based.get_state_store()
        return jsonify({
            "success": True,
            "result": {
                "saved_states": store.list_saved_states(),
                "active_sessions": Session_Based.active_sessions()
            }
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/adm/session/end', methods=['POST'])
def adm_session_end():
    """
    Save and release a player's session.

    Expected JSON payload:
    {
        "user_id": str
    }
    """
    try:
        user_id = _require_user_id(request.json)
        return jsonify({
            "success": True,
            "result": {"user_id": user_id, "ended": end_session(user_id)}
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/adm/clear', methods=['POST'])
def adm_clear():
    """
    Forget a player's learned state (live and persisted).

    Expected JSON payload:
    {
        "user_id": str
    }
    """
    try:
        user_id = _require_user_id(request.json)
        return jsonify({
            "success": True,
            "result": {"user_id": user_id, "cleared": clear_user_data(user_id)}
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/adm/priority', methods=['POST'])
def adm_priority():
    """
    Inspect arousal-interpolated priorities and per-axis rates.

    Expected JSON payload:
    {
        "arousal": float,
        "config": dict (optional)
    }
    """
    try:
        return jsonify({
            "success": True,
            "result": _priority_preview(request.json)
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/adm/budget', methods=['POST'])
def adm_budget():
    """
    Preview a weighted budget distribution without touching any session.

    Expected JSON payload:
    {
        "budget": float,
        "arousal": float,
        "positions": dict (optional, axis -> normalized position),
        "config": dict (optional)
    }
    """
    try:
        return jsonify({
            "success": True,
            "result": _budget_preview(request.json)
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/test', methods=['POST'])
def test_custom():
    """
    Generic test endpoint that accepts function name and arguments.

    Expected JSON payload:
    {
        "function": str,  # "round", "state", "end_session", "clear", "priority", "budget"
        "args": dict       # Arguments for the function
    }
    """
    try:
        data = request.json
        func_name = data.get('function', '').lower()
        args = data.get('args', {})

        if func_name == 'round':
            result = run_round_adjustment(**args)
        elif func_name == 'state':
            result = get_user_state(**args)
        elif func_name == 'end_session':
            result = end_session(**args)
        elif func_name == 'clear':
            result = clear_user_data(**args)
        elif func_name == 'priority':
            result = _priority_preview(args)
        elif func_name == 'budget':
            result = _budget_preview(args)
        else:
            return jsonify({
                "success": False,
                "error": f"Unknown function: {func_name}. Available: round, state, end_session, clear, priority, budget"
            }), 400

        return jsonify({
            "success": True,
            "result": result
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


if __name__ == '__main__':
    print("Starting Adaptive Difficulty API on http://localhost:5000")
    print("API Endpoints:")
    print("  GET  /api/health")
    print("  POST /api/adm/round")
    print("  GET  /api/adm/state/<user_id>")
    print("  GET  /api/adm/states")
    print("  POST /api/adm/session/end")
    print("  POST /api/adm/clear")
    print("  POST /api/adm/priority")
    print("  POST /api/adm/budget")
    print("  POST /api/test")
    app.run(debug=True, port=5000)
