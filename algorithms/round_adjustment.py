#!/usr/bin/env python3
"""
Standalone script to run one adaptive difficulty round.
Can be called directly from a game server using a child process: reads a JSON
payload on stdin, writes a JSON envelope on stdout.
"""
import sys
import json
import os
import logging

# Add parent directory to path to import the engine modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from Session_Based import run_round_adjustment

logger = logging.getLogger("round_adjustment")


def _optional_float(value):
    return None if value is None else float(value)


def main():
    """Main entry point for a single round adjustment"""
    # Configure logging to stderr so stdout stays clean JSON
    logging.basicConfig(stream=sys.stderr, level=logging.INFO)
    try:
        input_data = json.loads(sys.stdin.read() or "{}")
        if not isinstance(input_data, dict):
            raise TypeError("input payload must be a JSON object")
        logger.info({"event": "round_adjust_input", "payload": input_data})

        user_id = input_data.get('user_id', 'unknown_user')

        # Each invocation is its own process: state is loaded and saved per
        # round and the open session (warmup progress included) is resumed.
        result = run_round_adjustment(
            user_id=user_id,
            arousal=float(input_data.get('arousal', 0.5)),
            task_success=input_data.get('task_success', False),
            tf_ttf_ratio=float(input_data.get('tf_ttf_ratio', 0.0)),
            reaction_time=float(input_data.get('reaction_time', 1.0)),
            response_duration=float(input_data.get('response_duration', 1.0)),
            average_tap_accuracy=float(input_data.get('average_tap_accuracy', 0.0)),
            targets_to_find=int(input_data.get('targets_to_find', 1)),
            performance_score=_optional_float(input_data.get('performance_score')),
            dom_values=input_data.get('dom_values'),
            session_duration=_optional_float(input_data.get('session_duration')),
            config_overrides=input_data.get('config'),
            auto_save=True,
            new_session=input_data.get('new_session', False),
        )

        output = {
            "success": True,
            "result": result
        }
        summary = result.get("Summary", {})
        logger.info({
            "event": "round_adjust_output",
            "user_id": user_id,
            "phase": summary.get("Session_Phase"),
            "path": summary.get("Adaptation_Path"),
            "positions": summary.get("Normalized_Positions"),
        })
        print(json.dumps(output))

    except Exception as e:
        error_output = {
            "success": False,
            "error": str(e)
        }
        logger.exception({"event": "round_adjust_error", "error": str(e)})
        print(json.dumps(error_output))
        sys.exit(1)


if __name__ == '__main__':
    main()
