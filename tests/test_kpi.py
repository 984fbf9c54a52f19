import math

import pytest

from ADM_Bases.KPI import (
	kpi_weights_for_arousal,
	normalize_kpis,
	normalize_lower_is_better,
	overall_performance_score,
)
from adm_config import KPI_TYPES, ADMConfig, KPIType


def test_lower_is_better_normalization():
	assert normalize_lower_is_better(0.2, 0.2, 1.75) == 1.0
	assert normalize_lower_is_better(1.75, 0.2, 1.75) == 0.0
	assert normalize_lower_is_better(0.975, 0.2, 1.75) == pytest.approx(0.5)
	assert normalize_lower_is_better(5.0, 0.2, 1.75) == 0.0


def test_perfect_round_scores_one():
	config = ADMConfig()
	kpis = normalize_kpis(True, 1.0, 0.2, 0.6, 0.0, 3, config)
	assert all(kpis[kpi] == 1.0 for kpi in KPI_TYPES)
	assert overall_performance_score(kpis, 0.5, config) == pytest.approx(1.0)


def test_failed_round_scores_zero():
	config = ADMConfig()
	kpis = normalize_kpis(False, 0.0, 2.0, 5.0, 300.0, 1, config)
	assert overall_performance_score(kpis, 0.9, config) == 0.0


def test_response_duration_bounds_scale_with_targets():
	config = ADMConfig()
	one = normalize_kpis(True, 1.0, 0.5, 0.6, 10.0, 1, config)
	three = normalize_kpis(True, 1.0, 0.5, 0.6, 10.0, 3, config)
	assert one[KPIType.RESPONSE_DURATION] == pytest.approx(0.5)
	assert three[KPIType.RESPONSE_DURATION] == 1.0


def test_kpi_weights_follow_arousal():
	config = ADMConfig()
	assert kpi_weights_for_arousal(0.3, config) == pytest.approx(config.kpi_weights_low_arousal)
	assert kpi_weights_for_arousal(0.9, config) == pytest.approx(config.kpi_weights_high_arousal)
	middle = kpi_weights_for_arousal(0.7, config)
	assert middle[KPIType.REACTION_TIME] == pytest.approx((0.025 + 0.15) / 2)


def test_kpi_weight_switch_without_interpolation():
	config = ADMConfig(use_kpi_weight_interpolation=False)
	assert kpi_weights_for_arousal(0.69, config) == config.kpi_weights_low_arousal
	assert kpi_weights_for_arousal(0.7, config) == config.kpi_weights_high_arousal


def test_non_finite_inputs_still_score_in_range():
	config = ADMConfig()
	kpis = normalize_kpis(True, math.nan, math.inf, math.nan, math.nan, 2, config)
	score = overall_performance_score(kpis, 0.5, config)
	assert 0.0 <= score <= 1.0
