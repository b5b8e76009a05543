"""Criteria Evaluator: runs one rule set against a timepoint dataset."""

from typing import List, Optional, Tuple

from pydantic import BaseModel, ValidationError

from imaging_conformance.models import CriterionDefinition, Nonconformity, RuleSet, TimepointDataSet
from imaging_conformance.conformance.criteria import (
    CRITERION_REGISTRY,
    MaxTargetsOptions,
    RegisteredCriterion,
)
from imaging_conformance.conformance.exceptions import EvaluationError

BoundCriterion = Tuple[CriterionDefinition, RegisteredCriterion, BaseModel]


class CriteriaEvaluator:
    """Wraps one rule set; criteria and their options are validated up front."""

    def __init__(self, rule_set: RuleSet):
        self.rule_set = rule_set
        self._criteria: List[BoundCriterion] = [self._bind(d) for d in rule_set.criteria]

    @staticmethod
    def _bind(definition: CriterionDefinition) -> BoundCriterion:
        registered = CRITERION_REGISTRY.get(definition.criterion)
        if registered is None:
            raise EvaluationError(f"Unknown criterion: {definition.criterion}")
        try:
            options = registered.options_model.model_validate(definition.options)
        except ValidationError as e:
            raise EvaluationError(
                f"Invalid options for criterion {definition.criterion}: {e}"
            ) from e
        return definition, registered, options

    def get_max_targets(self) -> Optional[int]:
        """Limit of the first unfiltered max_targets criterion, if any."""
        for _, _, options in self._criteria:
            if isinstance(options, MaxTargetsOptions) and not options.is_filtered:
                return options.limit
        return None

    def evaluate(self, data: TimepointDataSet) -> List[Nonconformity]:
        nonconformities: List[Nonconformity] = []
        for definition, registered, options in self._criteria:
            try:
                results = registered.fn(options, data)
            except Exception as e:
                raise EvaluationError(f"Criterion {definition.criterion} failed: {e}") from e

            update = {"criterion": definition.criterion}
            if definition.message:
                update["message"] = definition.message
            nonconformities.extend(nc.model_copy(update=update) for nc in results)
        return nonconformities
