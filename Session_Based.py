"""
Session_Based.py
----------------
High-level adaptive engine entrypoint used by the backend and the stand-alone
script. Keeps one AdaptiveDifficultyManager per player for the duration of a
session, loading persisted state when the session starts and saving it when
the session ends.
"""

import logging
import os
from threading import Lock

from ADM_Algo import AdaptiveDifficultyManager
from ADM_Bases.Persistence import JSONStateStore
from adm_config import INITIAL_AROUSAL_DEFAULT, ADMConfig, clamp_unit

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "adm_state")

# One manager per active player session.
_managers = {}
_state_store = JSONStateStore(os.environ.get("ADM_STATE_DIR", DEFAULT_STATE_DIR))

# Rounds and session boundaries run one at a time across all players.
_session_lock = Lock()


def get_state_store():
    return _state_store


def set_state_store(store) -> None:
    """Swap the backing store (e.g. a MemoryStateStore in tests); drops live sessions."""
    global _state_store
    with _session_lock:
        _state_store = store
        _managers.clear()


def active_sessions() -> list:
    with _session_lock:
        return sorted(_managers)


def _get_or_start(user_id, config, initial_arousal, session_duration, new_session=False):
    manager = _managers.get(user_id)
    if manager is not None and new_session:
        manager.save_state(close_session=True)
        manager = None
    if manager is None:
        manager = AdaptiveDifficultyManager(
            config=config,
            initial_arousal=initial_arousal,
            session_duration=session_duration,
            user_id=user_id,
            state_store=_state_store,
            new_session=new_session,
        )
        _managers[user_id] = manager
    return manager


def get_manager(
    user_id: str,
    config: ADMConfig | None = None,
    initial_arousal: float = INITIAL_AROUSAL_DEFAULT,
    session_duration: float | None = None,
) -> AdaptiveDifficultyManager:
    """Return the player's live manager, starting (and loading) one if needed."""
    with _session_lock:
        return _get_or_start(user_id, config, initial_arousal, session_duration)


def run_round_adjustment(
    user_id: str = None,
    arousal: float = INITIAL_AROUSAL_DEFAULT,
    task_success: bool = False,
    tf_ttf_ratio: float = 0.0,
    reaction_time: float = 1.0,
    response_duration: float = 1.0,
    average_tap_accuracy: float = 0.0,
    targets_to_find: int = 1,
    performance_score: float | None = None,
    dom_values: dict | None = None,
    session_duration: float | None = None,
    config_overrides: dict | None = None,
    auto_save: bool = False,
    new_session: bool = False,
) -> dict:
    """
    Run one round for a player.

    A player's session runs from the first round until ``end_session``, a
    round sent with ``new_session=True``, or an idle gap longer than the
    configured resume window. Rounds inside a session share one warmup even
    when each round runs in a separate process.
    """

    # Input validation / defaults.
    if user_id is None:
        user_id = "unknown_user"
    if not isinstance(task_success, bool):
        raise TypeError("task_success must be a boolean value.")
    if not isinstance(new_session, bool):
        raise TypeError("new_session must be a boolean value.")
    if not isinstance(auto_save, bool):
        raise TypeError("auto_save must be a boolean value.")
    if dom_values is not None and not isinstance(dom_values, dict):
        raise TypeError("dom_values must be a dictionary")

    arousal = clamp_unit(float(arousal))
    targets_to_find = max(1, int(targets_to_find))
    config = ADMConfig.from_dict(config_overrides) if config_overrides else None

    with _session_lock:
        manager = _get_or_start(user_id, config, arousal, session_duration, new_session)
        manager.update_arousal_level(arousal)

        if performance_score is not None:
            adm_result = manager.record_round(float(performance_score), dom_values=dom_values)
        else:
            adm_result = manager.record_identification_performance(
                task_success=task_success,
                tf_ttf_ratio=float(tf_ttf_ratio),
                reaction_time=float(reaction_time),
                response_duration=float(response_duration),
                average_tap_accuracy=float(average_tap_accuracy),
                targets_to_find=targets_to_find,
                dom_values=dom_values,
            )

        saved = manager.save_state() if auto_save else False
        rounds_played = manager.phase_manager.rounds_completed
        restored = manager.restored_from_persistence
        resumed = manager.resumed_session

    adaptation = adm_result["adaptation"]

    return {
        "user_id": user_id,
        "ADM_Result": adm_result,
        "Summary": {
            "Performance_Score": adm_result["performance_score"],
            "Adaptive_Score": adm_result["adaptive_score"],
            "Session_Phase": adm_result["session_phase"]["phase"],
            "Adaptation_Path": adaptation["path"],
            "Global_Fallback": adaptation.get("fallback", False),
            "Confidence": adm_result["confidence"]["total"],
            "Direction": adm_result["last_adaptation_direction"],
            "Normalized_Positions": adm_result["normalized_positions"],
            "Absolute_Values": adm_result["absolute_values"],
        },
        "metadata": {
            "rounds_played": rounds_played,
            "restored_from_persistence": restored,
            "resumed_session": resumed,
            "state_saved": saved,
        },
    }


def get_user_state(user_id: str) -> dict | None:
    """Snapshot of a live session, or of the persisted state when none is live."""
    with _session_lock:
        manager = _managers.get(user_id)
        if manager is not None:
            return manager.snapshot().to_dict()
        state = _state_store.load(user_id)
    return state.to_dict() if state is not None else None


def end_session(user_id: str) -> bool:
    """Save and release the player's manager. False when no session is live."""
    with _session_lock:
        manager = _managers.pop(user_id, None)
        if manager is None:
            return False
        manager.save_state(close_session=True)
    logger.info(
        {
            "event": "adm_session_end",
            "user_id": user_id,
            "rounds_played": manager.phase_manager.rounds_completed,
        }
    )
    return True


def clear_user_data(user_id: str) -> bool:
    """Forget everything learned about the player, live and persisted."""
    with _session_lock:
        manager = _managers.pop(user_id, None)
        if manager is not None:
            manager.clear_past_session_data()
            return True
        return _state_store.clear(user_id)
