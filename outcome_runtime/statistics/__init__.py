"""Statistics engine: always-valid sequential test and interval estimators."""

from .intervals import (
    confidence_interval,
    inverse_normal_cdf,
    mean,
    relative_lift,
    standard_error,
    variance,
    z_for_confidence,
)
from .models import (
    ConfidenceIntervalResult,
    KillDirection,
    Measurement,
    MeasurementPlan,
    SignificanceResult,
    Variant,
)
from .sequential import (
    INSUFFICIENT_SAMPLE,
    evaluate_significance,
    exceeds_kill_threshold,
    log_mixture_sprt,
    mixture_sprt,
    partition_measurements,
    resolve_mixture_variance,
    significance_threshold,
)

__all__ = [
    "INSUFFICIENT_SAMPLE",
    "ConfidenceIntervalResult",
    "KillDirection",
    "Measurement",
    "MeasurementPlan",
    "SignificanceResult",
    "Variant",
    "confidence_interval",
    "evaluate_significance",
    "exceeds_kill_threshold",
    "inverse_normal_cdf",
    "log_mixture_sprt",
    "mean",
    "mixture_sprt",
    "partition_measurements",
    "relative_lift",
    "resolve_mixture_variance",
    "significance_threshold",
    "standard_error",
    "variance",
    "z_for_confidence",
]
