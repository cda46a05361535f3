"""Interval estimators and the numeric primitives they share.

These estimators are fixed-horizon: they are meant for reporting a finished
experiment or for dashboards, not for deciding when to stop. Stopping
decisions go through the sequential test in ``sequential.py``.
"""

import math
from collections.abc import Sequence

from .models import ConfidenceIntervalResult

# Rational approximation of the inverse normal CDF (P. J. Acklam).
# Relative error below 1.15e-9 over the open unit interval.
_ACKLAM_A = (
    -3.969683028665376e01,
    2.209460984245205e02,
    -2.759285104469687e02,
    1.383577518672690e02,
    -3.066479806614716e01,
    2.506628277459239e00,
)
_ACKLAM_B = (
    -5.447609879822406e01,
    1.615858368580409e02,
    -1.556989798598866e02,
    6.680131188771972e01,
    -1.328068155288572e01,
)
_ACKLAM_C = (
    -7.784894002430293e-03,
    -3.223964580411365e-01,
    -2.400758277161838e00,
    -2.549732539343734e00,
    4.374664141464968e00,
    2.938163982698783e00,
)
_ACKLAM_D = (
    7.784695709041462e-03,
    3.224671290700398e-01,
    2.445134137142996e00,
    3.754408661907416e00,
)
_P_LOW = 0.02425
_P_HIGH = 1 - _P_LOW


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def variance(values: Sequence[float]) -> float:
    """Unbiased sample variance (n - 1 divisor); 0.0 below two values."""
    n = len(values)
    if n < 2:
        return 0.0
    m = mean(values)
    return sum((x - m) ** 2 for x in values) / (n - 1)


def standard_error(
    control_values: Sequence[float], treatment_values: Sequence[float]
) -> float:
    """Standard error of the difference in means (unequal variances).

    Empty groups contribute nothing rather than dividing by zero.
    """
    total = 0.0
    if control_values:
        total += variance(control_values) / len(control_values)
    if treatment_values:
        total += variance(treatment_values) / len(treatment_values)
    return math.sqrt(total)


def _tail(q: float) -> float:
    c1, c2, c3, c4, c5, c6 = _ACKLAM_C
    d1, d2, d3, d4 = _ACKLAM_D
    return (((((c1 * q + c2) * q + c3) * q + c4) * q + c5) * q + c6) / (
        (((d1 * q + d2) * q + d3) * q + d4) * q + 1
    )


def inverse_normal_cdf(p: float) -> float:
    """Approximate the standard normal quantile for probability ``p``.

    Args:
        p: Probability in the open interval (0, 1).

    Returns:
        z such that P(Z <= z) = p, or 0.0 when ``p`` is outside (0, 1).
    """
    if p <= 0 or p >= 1:
        return 0.0

    if p < _P_LOW:
        return _tail(math.sqrt(-2 * math.log(p)))

    if p <= _P_HIGH:
        a1, a2, a3, a4, a5, a6 = _ACKLAM_A
        b1, b2, b3, b4, b5 = _ACKLAM_B
        q = p - 0.5
        r = q * q
        return (((((a1 * r + a2) * r + a3) * r + a4) * r + a5) * r + a6) * q / (
            ((((b1 * r + b2) * r + b3) * r + b4) * r + b5) * r + 1
        )

    return -_tail(math.sqrt(-2 * math.log(1 - p)))


def z_for_confidence(confidence_level: float) -> float:
    """Two-sided critical value, e.g. ~1.96 for 0.95.

    Raises:
        ValueError: If ``confidence_level`` is outside (0, 1).
    """
    if confidence_level <= 0 or confidence_level >= 1:
        raise ValueError(
            f"confidence_level must be in (0, 1), got {confidence_level}"
        )
    alpha = 1 - confidence_level
    return inverse_normal_cdf(1 - alpha / 2)


def confidence_interval(
    control_values: Sequence[float],
    treatment_values: Sequence[float],
    confidence_level: float = 0.95,
) -> ConfidenceIntervalResult:
    """Interval on the difference in means (treatment - control).

    Args:
        control_values: Observations from the control arm.
        treatment_values: Observations from the treatment arm.
        confidence_level: Two-sided coverage, in (0, 1).

    Returns:
        Point estimate with lower and upper bounds.
    """
    z = z_for_confidence(confidence_level)
    point_estimate = mean(treatment_values) - mean(control_values)
    se = standard_error(control_values, treatment_values)

    return ConfidenceIntervalResult(
        point_estimate=point_estimate,
        lower=point_estimate - z * se,
        upper=point_estimate + z * se,
        confidence_level=confidence_level,
    )


def relative_lift(
    control_values: Sequence[float],
    treatment_values: Sequence[float],
    confidence_level: float = 0.95,
) -> ConfidenceIntervalResult:
    """Interval on the relative lift (treatment - control) / control.

    Uses the delta method for the standard error of a ratio of means. A zero
    control mean has no defined lift and yields an all-zero result.
    """
    z = z_for_confidence(confidence_level)
    control_mean = mean(control_values)
    treatment_mean = mean(treatment_values)

    if control_mean == 0 or not control_values or not treatment_values:
        return ConfidenceIntervalResult(
            point_estimate=0.0, lower=0.0, upper=0.0, confidence_level=confidence_level
        )

    lift = (treatment_mean - control_mean) / control_mean

    treatment_term = variance(treatment_values) / (
        len(treatment_values) * control_mean**2
    )
    control_term = (
        variance(control_values)
        * treatment_mean**2
        / (len(control_values) * control_mean**4)
    )
    se = math.sqrt(treatment_term + control_term)

    return ConfidenceIntervalResult(
        point_estimate=lift,
        lower=lift - z * se,
        upper=lift + z * se,
        confidence_level=confidence_level,
    )
