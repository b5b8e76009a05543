"""Validation Orchestrator: the conformance checking pipeline.

1. Build baseline and follow-up datasets concurrently
2. Merge them (baseline first) into the "both" dataset
3. Evaluate scopes both -> baseline -> followup, tracking the last MaxTargets ceiling
4. Concatenate the nonconformities in evaluation order and group them
5. Publish MaxTargets, flat and grouped outputs together

A failed dataset build or criterion aborts the run before anything is published, so the
previous outputs stay in place until the next successful run.
"""

import asyncio
from typing import List, Mapping, Optional, Tuple, Union

from imaging_conformance.models import (
    EVALUATION_ORDER,
    EvaluationScope,
    GroupedNonConformities,
    Nonconformity,
    TimepointDataSet,
    TrialCriteriaType,
)
from imaging_conformance.conformance.aggregator import DataAggregator
from imaging_conformance.conformance.collaborators import (
    MeasurementStore,
    StudyMetadataProvider,
    TimepointRegistry,
)
from imaging_conformance.conformance.criteria_evaluator import CriteriaEvaluator
from imaging_conformance.conformance.exceptions import InvalidTrialCriteriaTypeError
from imaging_conformance.conformance.grouping import DEFAULT_TOOL_GROUPS, group_nonconformities
from imaging_conformance.conformance.observable import ObservableValue
from imaging_conformance.conformance.registry import (
    DefinitionInput,
    EvaluationDefinitionRegistry,
    get_evaluation_registry,
    set_evaluation_definitions,
)
from imaging_conformance.config.logging_config import get_logger

logger = get_logger(__name__)

TrialCriteriaTypeInput = Union[TrialCriteriaType, Mapping, str, None]


def resolve_trial_criteria_type_id(trial_criteria_type: TrialCriteriaTypeInput) -> str:
    """Lower-cased identifier of a trial criteria type; raises if it has none."""
    if isinstance(trial_criteria_type, TrialCriteriaType):
        type_id = trial_criteria_type.id
    elif isinstance(trial_criteria_type, Mapping):
        type_id = trial_criteria_type.get("id")
    else:
        type_id = trial_criteria_type

    if not isinstance(type_id, str) or not type_id.strip():
        raise InvalidTrialCriteriaTypeError(
            f"Trial criteria type has no identifier: {trial_criteria_type!r}"
        )
    return type_id.strip().lower()


class ConformanceCriteria:
    """Validates the measurement store against the definitions of a trial criteria type.

    Outputs are observable: ``nonconformities`` (flat list),
    ``grouped_nonconformities`` and ``max_targets``.
    """

    def __init__(
        self,
        measurement_store: MeasurementStore,
        timepoint_registry: TimepointRegistry,
        metadata_service: StudyMetadataProvider,
        registry: Optional[EvaluationDefinitionRegistry] = None,
        tool_groups: Optional[Mapping[str, str]] = None,
    ):
        self.aggregator = DataAggregator(measurement_store, timepoint_registry, metadata_service)
        self.registry = registry if registry is not None else get_evaluation_registry()
        if tool_groups is None:
            tool_groups = getattr(measurement_store, "tool_groups_map", DEFAULT_TOOL_GROUPS)
        self.tool_groups = tool_groups

        self.nonconformities: ObservableValue[List[Nonconformity]] = ObservableValue(name="nonconformities")
        self.grouped_nonconformities: ObservableValue[GroupedNonConformities] = ObservableValue(
            name="grouped_nonconformities"
        )
        self.max_targets: ObservableValue[int] = ObservableValue(None, name="max_targets")

    async def validate(self, trial_criteria_type: TrialCriteriaTypeInput) -> List[Nonconformity]:
        type_id = resolve_trial_criteria_type_id(trial_criteria_type)
        logger.info("Starting conformance validation", trial_criteria_type=type_id)

        baseline_task = asyncio.create_task(self.get_data(EvaluationScope.BASELINE))
        followup_task = asyncio.create_task(self.get_data(EvaluationScope.FOLLOWUP))
        try:
            baseline_data, followup_data = await asyncio.gather(baseline_task, followup_task)
        finally:
            for task in (baseline_task, followup_task):
                if not task.done():
                    task.cancel()

        datasets = {
            EvaluationScope.BOTH: TimepointDataSet.merge(baseline_data, followup_data),
            EvaluationScope.BASELINE: baseline_data,
            EvaluationScope.FOLLOWUP: followup_data,
        }

        max_targets: Optional[int] = None
        nonconformities: List[Nonconformity] = []
        for scope in EVALUATION_ORDER:
            result, ceiling = self.validate_timepoint(scope, type_id, datasets[scope])
            logger.debug("Scope evaluated", scope=scope.value, nonconformities=len(result))
            nonconformities.extend(result)
            if ceiling is not None:
                max_targets = ceiling

        grouped = self.group_nonconformities(nonconformities)
        self.max_targets.set(max_targets)
        self.nonconformities.set(nonconformities)
        self.grouped_nonconformities.set(grouped)

        logger.info(
            "Conformance validation complete",
            trial_criteria_type=type_id,
            nonconformities=len(nonconformities),
            groups=len(grouped),
            max_targets=max_targets,
        )
        return nonconformities

    def validate_timepoint(
        self,
        scope: EvaluationScope,
        trial_criteria_type_id: str,
        data: TimepointDataSet,
    ) -> Tuple[List[Nonconformity], Optional[int]]:
        """Evaluate one scope; returns its nonconformities and the last ceiling it declared."""
        nonconformities: List[Nonconformity] = []
        max_targets: Optional[int] = None
        for evaluator in self.get_evaluators(scope, trial_criteria_type_id):
            ceiling = evaluator.get_max_targets()
            if ceiling is not None:
                max_targets = ceiling
            nonconformities.extend(evaluator.evaluate(data))
        return nonconformities, max_targets

    def get_evaluators(self, scope: EvaluationScope, trial_criteria_type_id: str) -> List[CriteriaEvaluator]:
        return self.registry.get_evaluators(scope, trial_criteria_type_id)

    async def get_data(self, timepoint_type: EvaluationScope) -> TimepointDataSet:
        return await self.aggregator.get_data(timepoint_type)

    def group_nonconformities(self, nonconformities: List[Nonconformity]) -> GroupedNonConformities:
        return group_nonconformities(nonconformities, self.tool_groups)

    @staticmethod
    def set_evaluation_definitions(evaluation_key: str, evaluation_definitions: DefinitionInput):
        return set_evaluation_definitions(evaluation_key, evaluation_definitions)
