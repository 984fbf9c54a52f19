from ADM_Bases.Interpolation import interpolate_table
from adm_config import KPI_TYPES, NEUTRAL_SCORE, ADMConfig, KPIType, clamp_unit, finite_or


def normalize_lower_is_better(raw: float, best: float, worst: float) -> float:
    """Map raw onto [0, 1] where ``best`` scores 1 and ``worst`` scores 0."""
    if worst <= best:
        return NEUTRAL_SCORE
    return clamp_unit((worst - raw) / (worst - best))


def normalize_kpis(
    task_success: bool,
    tf_ttf_ratio: float,
    reaction_time: float,
    response_duration: float,
    average_tap_accuracy: float,
    targets_to_find: int,
    config: ADMConfig,
) -> dict:
    """
    Normalize raw round measurements to [0, 1] per KPI.

    Args:
        task_success (bool): Whether every target was identified.
        tf_ttf_ratio (float): Targets found / targets to find.
        reaction_time (float): Seconds until the first tap.
        response_duration (float): Seconds spent identifying targets.
        average_tap_accuracy (float): Mean tap distance to target, in points.
        targets_to_find (int): Number of targets in the round.
        config (ADMConfig): Normalization bounds.

    Returns:
        dict: KPIType -> normalized value (higher is better).
    """
    targets = max(1, int(finite_or(targets_to_find, 1.0)))
    rt_best, rt_worst = config.reaction_time_bounds
    rd_best, rd_worst = config.response_duration_per_target_bounds
    tap_best, tap_worst = config.tap_accuracy_bounds

    return {
        KPIType.TASK_SUCCESS: 1.0 if task_success else 0.0,
        KPIType.TF_TTF_RATIO: clamp_unit(finite_or(tf_ttf_ratio, 0.0)),
        KPIType.REACTION_TIME: normalize_lower_is_better(
            finite_or(reaction_time, rt_worst), rt_best, rt_worst
        ),
        KPIType.RESPONSE_DURATION: normalize_lower_is_better(
            finite_or(response_duration, rd_worst * targets),
            rd_best * targets,
            rd_worst * targets,
        ),
        KPIType.TAP_ACCURACY: normalize_lower_is_better(
            finite_or(average_tap_accuracy, tap_worst), tap_best, tap_worst
        ),
    }


def kpi_weights_for_arousal(arousal: float, config: ADMConfig) -> dict:
    if config.use_kpi_weight_interpolation:
        return interpolate_table(
            config.kpi_weights_low_arousal,
            config.kpi_weights_high_arousal,
            arousal,
            config.kpi_weight_transition_start,
            config.kpi_weight_transition_end,
        )
    if arousal >= config.arousal_threshold_for_kpi_switch:
        return dict(config.kpi_weights_high_arousal)
    return dict(config.kpi_weights_low_arousal)


def overall_performance_score(normalized_kpis: dict, arousal: float, config: ADMConfig) -> float:
    """Weighted mean of the normalized KPIs, clamped to [0, 1]."""
    weights = kpi_weights_for_arousal(arousal, config)
    total_weight = 0.0
    score = 0.0
    for kpi in KPI_TYPES:
        if kpi not in normalized_kpis:
            continue
        weight = weights[kpi]
        score += weight * normalized_kpis[kpi]
        total_weight += weight
    if total_weight <= 0:
        return NEUTRAL_SCORE
    return clamp_unit(score / total_weight)
