"""
Versioned snapshot of a player's adaptive state plus the stores that keep it
between sessions.
"""

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field

from ADM_Bases.History import PerformanceHistoryEntry
from ADM_Bases.Phase import SessionProgress
from ADM_Bases.Profile import PerformanceDataPoint
from adm_config import POSITION_MIDPOINT, AdaptationDirection, DOMTarget, clamp_unit, finite_or

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 3
STATE_FILE_PREFIX = "adm_state_"
STATE_FILE_SUFFIX = ".json"

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def _migrate_v1(payload: dict) -> dict:
    # v1 snapshots predate per-axis profiling.
    payload = dict(payload)
    payload.setdefault("dom_performance_profiles", {})
    payload["schema_version"] = 2
    return payload


def _migrate_v2(payload: dict) -> dict:
    # v2 snapshots did not track unfinished sessions.
    payload = dict(payload)
    payload.setdefault("session_progress", None)
    payload["schema_version"] = 3
    return payload


# version -> function upgrading a payload from that version to the next
MIGRATIONS = {1: _migrate_v1, 2: _migrate_v2}


def migrate_payload(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise TypeError("persisted state must be a JSON object")
    version = int(payload.get("schema_version", 1))
    if version > SCHEMA_VERSION:
        raise ValueError(f"Unsupported schema version {version}")
    original = version
    while version < SCHEMA_VERSION:
        payload = MIGRATIONS[version](payload)
        version = int(payload["schema_version"])
    if original != SCHEMA_VERSION:
        logger.info(
            {"event": "adm_state_migrated", "from_version": original, "to_version": version}
        )
    return payload


@dataclass
class PersistedState:
    performance_history: list = field(default_factory=list)
    last_adaptation_direction: AdaptationDirection = AdaptationDirection.STABLE
    direction_stable_count: int = 0
    normalized_positions: dict = field(default_factory=dict)
    dom_performance_profiles: dict | None = None
    session_progress: SessionProgress | None = None
    schema_version: int = SCHEMA_VERSION

    def to_dict(self) -> dict:
        profiles = None
        if self.dom_performance_profiles is not None:
            profiles = {
                axis.value: [point.to_dict() for point in points]
                for axis, points in self.dom_performance_profiles.items()
            }
        return {
            "schema_version": self.schema_version,
            "performance_history": [entry.to_dict() for entry in self.performance_history],
            "last_adaptation_direction": self.last_adaptation_direction.value,
            "direction_stable_count": self.direction_stable_count,
            "normalized_positions": {
                axis.value: value for axis, value in self.normalized_positions.items()
            },
            "dom_performance_profiles": profiles,
            "session_progress": (
                self.session_progress.to_dict() if self.session_progress is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "PersistedState":
        """Decode a stored payload, migrating older schema versions first."""
        payload = migrate_payload(payload)

        history = [
            PerformanceHistoryEntry.from_dict(item)
            for item in payload.get("performance_history") or []
        ]

        try:
            direction = AdaptationDirection(payload.get("last_adaptation_direction"))
        except ValueError:
            direction = AdaptationDirection.STABLE

        positions = {}
        for key, value in (payload.get("normalized_positions") or {}).items():
            try:
                positions[DOMTarget(key)] = clamp_unit(finite_or(value, POSITION_MIDPOINT))
            except ValueError:
                continue

        profiles = None
        raw_profiles = payload.get("dom_performance_profiles")
        if raw_profiles is not None:
            profiles = {}
            for key, points in raw_profiles.items():
                try:
                    axis = DOMTarget(key)
                except ValueError:
                    continue
                profiles[axis] = [PerformanceDataPoint.from_dict(p) for p in points]

        session_progress = None
        if payload.get("session_progress") is not None:
            try:
                session_progress = SessionProgress.from_dict(payload["session_progress"])
            except (TypeError, ValueError, KeyError):
                logger.warning({"event": "adm_session_progress_dropped"})

        return cls(
            performance_history=history,
            last_adaptation_direction=direction,
            direction_stable_count=max(0, int(payload.get("direction_stable_count", 0))),
            normalized_positions=positions,
            dom_performance_profiles=profiles,
            session_progress=session_progress,
            schema_version=SCHEMA_VERSION,
        )


class JSONStateStore:
    """One JSON file per user under ``directory``."""

    __slots__ = ("directory",)

    def __init__(self, directory: str):
        self.directory = directory

    def path_for(self, user_id: str) -> str:
        safe_id = _UNSAFE_ID_CHARS.sub("_", str(user_id))
        return os.path.join(self.directory, f"{STATE_FILE_PREFIX}{safe_id}{STATE_FILE_SUFFIX}")

    def load(self, user_id: str) -> PersistedState | None:
        path = self.path_for(user_id)
        if not os.path.exists(path):
            logger.info({"event": "adm_state_missing", "user_id": user_id})
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                state = PersistedState.from_dict(json.load(f))
        except (OSError, ValueError, TypeError, KeyError, AttributeError):
            logger.warning(
                {"event": "adm_state_corrupt", "user_id": user_id, "path": path},
                exc_info=True,
            )
            return None
        logger.info(
            {
                "event": "adm_state_loaded",
                "user_id": user_id,
                "history_entries": len(state.performance_history),
            }
        )
        return state

    def save(self, user_id: str, state: PersistedState) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = self.path_for(user_id)
        fd, temp_path = tempfile.mkstemp(
            prefix=STATE_FILE_PREFIX, suffix=".tmp", dir=self.directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state.to_dict(), f, indent=2)
            os.replace(temp_path, path)
        except BaseException:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise
        logger.info({"event": "adm_state_saved", "user_id": user_id, "path": path})

    def clear(self, user_id: str) -> bool:
        path = self.path_for(user_id)
        if not os.path.exists(path):
            return False
        os.remove(path)
        logger.info({"event": "adm_state_cleared", "user_id": user_id})
        return True

    def list_saved_states(self) -> list:
        if not os.path.isdir(self.directory):
            return []
        user_ids = []
        for name in sorted(os.listdir(self.directory)):
            if name.startswith(STATE_FILE_PREFIX) and name.endswith(STATE_FILE_SUFFIX):
                user_ids.append(name[len(STATE_FILE_PREFIX):-len(STATE_FILE_SUFFIX)])
        return user_ids


class MemoryStateStore:
    """In-process store; keeps encoded payloads so loads decode like files do."""

    __slots__ = ("_payloads",)

    def __init__(self):
        self._payloads = {}

    def load(self, user_id: str) -> PersistedState | None:
        raw = self._payloads.get(user_id)
        if raw is None:
            logger.info({"event": "adm_state_missing", "user_id": user_id})
            return None
        try:
            return PersistedState.from_dict(json.loads(raw))
        except (ValueError, TypeError, KeyError, AttributeError):
            logger.warning({"event": "adm_state_corrupt", "user_id": user_id}, exc_info=True)
            return None

    def save(self, user_id: str, state: PersistedState) -> None:
        self._payloads[user_id] = json.dumps(state.to_dict())
        logger.info({"event": "adm_state_saved", "user_id": user_id})

    def save_raw(self, user_id: str, raw: str) -> None:
        self._payloads[user_id] = raw

    def clear(self, user_id: str) -> bool:
        removed = self._payloads.pop(user_id, None) is not None
        if removed:
            logger.info({"event": "adm_state_cleared", "user_id": user_id})
        return removed

    def list_saved_states(self) -> list:
        return sorted(self._payloads)
