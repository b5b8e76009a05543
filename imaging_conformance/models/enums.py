"""Enumeration types for imaging conformance checking."""
from enum import Enum


class MeasurementKind(str, Enum):
    """Measurement collections tracked separately per oncology trial convention."""
    TARGETS = "targets"
    NON_TARGETS = "nonTargets"


class TimepointType(str, Enum):
    """Clinical classification of a timepoint."""
    BASELINE = "baseline"
    FOLLOWUP = "followup"


class EvaluationScope(str, Enum):
    """Timepoint scope a rule set is evaluated against."""
    BASELINE = "baseline"
    FOLLOWUP = "followup"
    BOTH = "both"


# Fixed evaluation order; determines the MaxTargets tie-break
EVALUATION_ORDER = (
    EvaluationScope.BOTH,
    EvaluationScope.BASELINE,
    EvaluationScope.FOLLOWUP,
)
