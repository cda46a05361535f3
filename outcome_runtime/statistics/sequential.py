"""Always-valid sequential testing with the mixture SPRT.

The mixture Sequential Probability Ratio Test (mSPRT) compares the
likelihood of the observed difference in means under the null (no effect)
with its likelihood averaged over a normal prior N(0, tau^2) on the effect.
For a normally distributed estimate with standard error ``se`` the mixture
integral has a closed form:

    Lambda = sqrt(se^2 / (se^2 + tau^2))
             * exp(tau^2 * delta^2 / (2 * se^2 * (se^2 + tau^2)))

Under the null, Lambda is a non-negative martingale with expectation one,
so by Ville's inequality P(Lambda ever >= 1/alpha) <= alpha. The test may be
evaluated after every new measurement without inflating the false-positive
rate beyond ``1 - confidence_required``.
"""

import math
from collections.abc import Iterable

from .intervals import mean, variance
from .models import (
    KillDirection,
    Measurement,
    MeasurementPlan,
    SignificanceResult,
    Variant,
)

INSUFFICIENT_SAMPLE = "insufficient_sample"

DEFAULT_CI_Z_SCORE = 1.96

# exp(700) is close to the largest finite double
_MAX_LOG_STATISTIC = 700.0


def significance_threshold(confidence_required: float) -> float:
    """Anytime-valid rejection threshold 1 / (1 - confidence).

    Raises:
        ValueError: If ``confidence_required`` is outside (0, 1).
    """
    if confidence_required <= 0 or confidence_required >= 1:
        raise ValueError(
            f"confidence_required must be in (0, 1), got {confidence_required}"
        )
    return 1.0 / (1.0 - confidence_required)


def resolve_mixture_variance(
    plan: MeasurementPlan, default: float = 1.0
) -> float:
    """Pick tau^2 for a plan.

    An explicit ``mixture_variance`` wins. Otherwise the prior is centred on
    the effect size the plan cares about: the success threshold, then the
    kill threshold, then ``default``.
    """
    if plan.mixture_variance is not None:
        return plan.mixture_variance
    if plan.success_threshold != 0:
        return plan.success_threshold**2
    if plan.kill_threshold != 0:
        return plan.kill_threshold**2
    return default


def log_mixture_sprt(delta: float, se: float, tau_squared: float) -> float:
    """Natural log of the mixture likelihood ratio.

    Returns 0.0 (a ratio of one) when the standard error is zero.
    """
    if se <= 0 or tau_squared <= 0:
        return 0.0
    v = se * se
    return 0.5 * math.log(v / (v + tau_squared)) + (tau_squared * delta * delta) / (
        2.0 * v * (v + tau_squared)
    )


def mixture_sprt(delta: float, se: float, tau_squared: float) -> float:
    """Mixture likelihood ratio, clamped to stay finite.

    A zero standard error carries no evidence either way and yields 0.0.
    """
    if se <= 0 or tau_squared <= 0:
        return 0.0
    return math.exp(min(log_mixture_sprt(delta, se, tau_squared), _MAX_LOG_STATISTIC))


def exceeds_kill_threshold(delta: float, plan: MeasurementPlan) -> bool:
    """Whether ``delta`` is at or beyond the plan's kill threshold.

    The threshold is applied to its magnitude in the harmful direction, so a
    plan may state it with either sign.
    """
    limit = abs(plan.kill_threshold)
    if plan.kill_direction == KillDirection.INCREASE:
        return delta >= limit
    return delta <= -limit


def partition_measurements(
    measurements: Iterable[Measurement],
) -> tuple[list[float], list[float]]:
    """Split measurement values into (control, treatment), preserving order."""
    control: list[float] = []
    treatment: list[float] = []
    for measurement in measurements:
        if measurement.variant == Variant.CONTROL:
            control.append(measurement.value)
        else:
            treatment.append(measurement.value)
    return control, treatment


def evaluate_significance(
    measurements: Iterable[Measurement],
    plan: MeasurementPlan,
    *,
    ci_z_score: float = DEFAULT_CI_Z_SCORE,
    default_mixture_variance: float = 1.0,
) -> SignificanceResult:
    """Run the mSPRT on the measurements collected so far.

    The success and kill flags are computed from the raw delta and do not
    depend on ``significant``: an experiment can cross its kill threshold
    long before the evidence is conclusive, and callers must treat that as
    a safety signal.

    Args:
        measurements: All measurements for one experiment's primary signal.
        plan: Sample size, confidence and threshold settings.
        ci_z_score: Multiplier for the reported interval on the delta.
        default_mixture_variance: tau^2 fallback, see
            :func:`resolve_mixture_variance`.

    Returns:
        The evaluation result. Underpowered input yields
        ``reason="insufficient_sample"`` and no statistic.
    """
    control, treatment = partition_measurements(measurements)
    n_control = len(control)
    n_treatment = len(treatment)

    if n_control < plan.min_sample_size or n_treatment < plan.min_sample_size:
        return SignificanceResult(
            significant=False,
            sample_size_control=n_control,
            sample_size_treatment=n_treatment,
            meets_success_threshold=False,
            exceeds_kill_threshold=False,
            reason=INSUFFICIENT_SAMPLE,
        )

    delta = mean(treatment) - mean(control)
    se = math.sqrt(variance(control) / n_control + variance(treatment) / n_treatment)

    tau_squared = resolve_mixture_variance(plan, default_mixture_variance)
    statistic = mixture_sprt(delta, se, tau_squared)
    threshold = significance_threshold(plan.confidence_required)

    return SignificanceResult(
        significant=statistic >= threshold,
        test_statistic=statistic,
        estimated_delta=delta,
        confidence_interval=(delta - ci_z_score * se, delta + ci_z_score * se),
        sample_size_control=n_control,
        sample_size_treatment=n_treatment,
        meets_success_threshold=delta >= plan.success_threshold,
        exceeds_kill_threshold=exceeds_kill_threshold(delta, plan),
    )
