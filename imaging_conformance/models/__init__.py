"""Data models for imaging conformance checking."""
from .enums import (
    EvaluationScope,
    MeasurementKind,
    TimepointType,
    EVALUATION_ORDER,
)
from .measurement import (
    InstanceMetadata,
    Measurement,
    StudyMetadata,
    Timepoint,
    TimepointDataEntry,
    TimepointDataSet,
    TrialCriteriaType,
)
from .nonconformity import (
    GLOBALS_GROUP,
    GlobalNonconformityGroup,
    GroupedNonConformities,
    MeasurementNumberGroup,
    Nonconformity,
    ToolGroup,
)
from .evaluation_schema import CriterionDefinition, EvaluationDefinition, RuleSet

__all__ = [
    "EvaluationScope",
    "MeasurementKind",
    "TimepointType",
    "EVALUATION_ORDER",
    "InstanceMetadata",
    "Measurement",
    "StudyMetadata",
    "Timepoint",
    "TimepointDataEntry",
    "TimepointDataSet",
    "TrialCriteriaType",
    "GLOBALS_GROUP",
    "GlobalNonconformityGroup",
    "GroupedNonConformities",
    "MeasurementNumberGroup",
    "Nonconformity",
    "ToolGroup",
    "CriterionDefinition",
    "EvaluationDefinition",
    "RuleSet",
]
