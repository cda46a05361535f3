"""Outcome runtime: experiment decision and safety control plane."""

from outcome_runtime._version import __version__
from outcome_runtime.core.exceptions import (
    ConfigValidationError,
    InvalidTransitionError,
    OutcomeRuntimeError,
)
from outcome_runtime.core.settings import OutcomeRuntimeSettings, get_settings
from outcome_runtime.gates import (
    Gate,
    GateAlreadyDecidedError,
    GateCreateInput,
    GateManager,
    GateNotFoundError,
    GateResponse,
    GateStatus,
    GateType,
    InMemoryGateStore,
    SLAStatus,
)
from outcome_runtime.lifecycle import (
    ExperimentEvent,
    ExperimentLifecycle,
    ExperimentStatus,
)
from outcome_runtime.portfolio import (
    Candidate,
    ScoredCandidate,
    score_candidate,
    select_portfolio,
)
from outcome_runtime.safety import AutoKillSwitch, KillSwitchConfig, KillSwitchResult
from outcome_runtime.signals import (
    ConnectorRegistry,
    ConstraintCheck,
    ConstraintResult,
    SignalConnector,
    SignalMonitor,
)
from outcome_runtime.statistics import (
    Measurement,
    MeasurementPlan,
    SignificanceResult,
    confidence_interval,
    evaluate_significance,
    relative_lift,
)

__all__ = [
    "AutoKillSwitch",
    "Candidate",
    "ConfigValidationError",
    "ConnectorRegistry",
    "ConstraintCheck",
    "ConstraintResult",
    "ExperimentEvent",
    "ExperimentLifecycle",
    "ExperimentStatus",
    "Gate",
    "GateAlreadyDecidedError",
    "GateCreateInput",
    "GateManager",
    "GateNotFoundError",
    "GateResponse",
    "GateStatus",
    "GateType",
    "InMemoryGateStore",
    "InvalidTransitionError",
    "KillSwitchConfig",
    "KillSwitchResult",
    "Measurement",
    "MeasurementPlan",
    "OutcomeRuntimeError",
    "OutcomeRuntimeSettings",
    "SLAStatus",
    "ScoredCandidate",
    "SignalConnector",
    "SignalMonitor",
    "SignificanceResult",
    "__version__",
    "confidence_interval",
    "evaluate_significance",
    "get_settings",
    "relative_lift",
    "score_candidate",
    "select_portfolio",
]
