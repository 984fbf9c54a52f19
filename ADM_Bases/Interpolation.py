from functools import lru_cache


def lerp(low: float, high: float, t: float) -> float:
    """Linear interpolation between low (t=0) and high (t=1)."""
    return low + (high - low) * t


@lru_cache(maxsize=1024)
def smoothstep(edge0: float, edge1: float, x: float) -> float:
    """
    Hermite smoothstep of x over [edge0, edge1].

    Returns 0 below edge0, 1 above edge1 and 3t^2 - 2t^3 in between, so the
    result is continuous and monotonically non-decreasing in x.
    """
    if edge1 <= edge0:
        return 0.0 if x < edge0 else 1.0
    t = (x - edge0) / (edge1 - edge0)
    t = max(0.0, min(1.0, t))
    return t * t * (3.0 - 2.0 * t)


def interpolate_value(
    low: float, high: float, arousal: float, start: float, end: float
) -> float:
    return lerp(low, high, smoothstep(start, end, arousal))


def interpolate_table(
    low_table: dict, high_table: dict, arousal: float, start: float, end: float
) -> dict:
    """
    Blend two per-key tables for the given arousal.

    Args:
        low_table (dict): Values used at or below ``start``.
        high_table (dict): Values used at or above ``end``.
        arousal (float): Current arousal level.
        start (float): Transition start.
        end (float): Transition end.

    Returns:
        dict: Same keys as ``low_table`` with interpolated values.
    """
    t = smoothstep(start, end, arousal)
    return {key: lerp(low_table[key], high_table[key], t) for key in low_table}


def invert_priority(priority: float, max_priority: float) -> float:
    """Flip a priority on the 1..max scale; used when easing."""
    return max_priority + 1.0 - priority
