"""Conformance checking of trial imaging measurements.

Aggregates per-timepoint measurement data, evaluates it against the rule sets
registered for the selected trial criteria type, and groups the resulting
nonconformities for presentation.
"""

from imaging_conformance.conformance.exceptions import (
    ConformanceError,
    DataFetchError,
    InvalidTrialCriteriaTypeError,
    EvaluationError,
    DefinitionNotFoundError,
)
from imaging_conformance.conformance.criteria import CRITERION_REGISTRY, register_criterion
from imaging_conformance.conformance.criteria_evaluator import CriteriaEvaluator
from imaging_conformance.conformance.registry import (
    EvaluationDefinitionRegistry,
    get_evaluation_registry,
    set_evaluation_definitions,
)
from imaging_conformance.conformance.grouping import DEFAULT_TOOL_GROUPS, group_nonconformities
from imaging_conformance.conformance.aggregator import DataAggregator
from imaging_conformance.conformance.orchestrator import ConformanceCriteria
from imaging_conformance.conformance.scheduler import RevalidationScheduler
from imaging_conformance.conformance.observable import ObservableValue

__all__ = [
    # Exceptions
    "ConformanceError",
    "DataFetchError",
    "InvalidTrialCriteriaTypeError",
    "EvaluationError",
    "DefinitionNotFoundError",
    # Criteria
    "CRITERION_REGISTRY",
    "register_criterion",
    "CriteriaEvaluator",
    # Registry
    "EvaluationDefinitionRegistry",
    "get_evaluation_registry",
    "set_evaluation_definitions",
    # Pipeline
    "DEFAULT_TOOL_GROUPS",
    "group_nonconformities",
    "DataAggregator",
    "ConformanceCriteria",
    "RevalidationScheduler",
    "ObservableValue",
]
