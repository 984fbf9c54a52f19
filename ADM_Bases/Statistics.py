from math import exp, log

LN2 = log(2.0)
SECONDS_PER_HOUR = 3600.0

# Spreads smaller than this are treated as "no spread"
VARIANCE_EPSILON = 1e-12


def mean(values, default: float = 0.5) -> float:
    if not values:
        return default
    return sum(values) / len(values)


def sample_variance(values) -> float:
    """Unbiased sample variance; 0 for fewer than two values."""
    n = len(values)
    if n < 2:
        return 0.0
    mu = sum(values) / n
    return sum((v - mu) ** 2 for v in values) / (n - 1)


def linear_trend(values) -> float:
    """Least-squares slope of values against their index (0, 1, 2, ...)."""
    n = len(values)
    if n < 2:
        return 0.0
    mean_x = (n - 1) / 2.0
    mean_y = sum(values) / n
    numerator = 0.0
    denominator = 0.0
    for i, y in enumerate(values):
        dx = i - mean_x
        numerator += dx * (y - mean_y)
        denominator += dx * dx
    if denominator <= 0:
        return 0.0
    return numerator / denominator


def recency_weight(timestamp: float, now: float, half_life_hours: float) -> float:
    """
    Exponential decay weight of a sample recorded at ``timestamp``.

    A sample exactly one half-life old weighs 0.5. Samples stamped in the
    future are treated as brand new.
    """
    age_hours = max(0.0, now - timestamp) / SECONDS_PER_HOUR
    return exp(-age_hours * LN2 / half_life_hours)


def weighted_mean(values, weights, default: float = 0.5) -> float:
    total = sum(weights)
    if total <= 0:
        return default
    return sum(w * v for v, w in zip(values, weights)) / total


def weighted_variance(values, weights) -> float:
    """
    Reliability-weighted variance: sum(w(x-mu)^2) / (sum(w) - sum(w^2)/sum(w)).

    Falls back to 0 when the effective sample size cannot support it.
    """
    total = sum(weights)
    if len(values) < 2 or total <= 0:
        return 0.0
    mu = weighted_mean(values, weights)
    squared = sum(w * w for w in weights)
    denominator = total - squared / total
    if denominator <= VARIANCE_EPSILON:
        return 0.0
    return sum(w * (v - mu) ** 2 for v, w in zip(values, weights)) / denominator


def weighted_slope(xs, ys, weights) -> float:
    """Weighted least-squares slope of ys against xs; 0 when xs have no spread."""
    total = sum(weights)
    if len(xs) < 2 or total <= 0:
        return 0.0
    mean_x = sum(w * x for x, w in zip(xs, weights)) / total
    mean_y = sum(w * y for y, w in zip(ys, weights)) / total
    covariance = 0.0
    spread = 0.0
    for x, y, w in zip(xs, ys, weights):
        dx = x - mean_x
        covariance += w * dx * (y - mean_y)
        spread += w * dx * dx
    if spread <= VARIANCE_EPSILON:
        return 0.0
    return covariance / spread
