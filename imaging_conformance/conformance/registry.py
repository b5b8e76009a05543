"""Evaluation Definitions Registry: trial criteria type -> scope-keyed rule sets."""

from typing import Dict, List, Mapping, Optional, Union

from imaging_conformance.models import EvaluationDefinition, EvaluationScope
from imaging_conformance.conformance.criteria_evaluator import CriteriaEvaluator
from imaging_conformance.conformance.definitions import builtin_definitions
from imaging_conformance.conformance.exceptions import DefinitionNotFoundError
from imaging_conformance.config.logging_config import get_logger

logger = get_logger(__name__)

DefinitionInput = Union[EvaluationDefinition, Mapping]


class EvaluationDefinitionRegistry:
    """Runtime-extensible mapping of lower-cased trial criteria type ids to definitions.

    Absent keys and absent scopes yield no evaluators; that is not an error.
    """

    def __init__(self, definitions: Optional[Mapping[str, DefinitionInput]] = None):
        self._definitions: Dict[str, EvaluationDefinition] = {}
        for key, definition in (definitions or {}).items():
            self.register(key, definition)

    @classmethod
    def with_builtin_definitions(cls) -> "EvaluationDefinitionRegistry":
        return cls(builtin_definitions())

    def register(self, key: str, definitions: DefinitionInput) -> EvaluationDefinition:
        """Register ``definitions`` under ``key``, replacing any existing entry."""
        if not isinstance(definitions, EvaluationDefinition):
            definitions = EvaluationDefinition.model_validate(definitions)
        # Unknown criteria and bad options surface here rather than mid-run
        for scope in EvaluationScope:
            for rule_set in definitions.for_scope(scope):
                CriteriaEvaluator(rule_set)

        normalized = key.lower()
        replaced = normalized in self._definitions
        self._definitions[normalized] = definitions
        logger.info("Evaluation definition registered", key=normalized, replaced=replaced)
        return definitions

    def lookup(self, trial_criteria_type_id: str) -> Optional[EvaluationDefinition]:
        return self._definitions.get(trial_criteria_type_id.lower())

    def get(self, trial_criteria_type_id: str) -> EvaluationDefinition:
        definition = self.lookup(trial_criteria_type_id)
        if definition is None:
            raise DefinitionNotFoundError(f"No evaluation definition for {trial_criteria_type_id}")
        return definition

    def get_evaluators(self, scope: EvaluationScope, trial_criteria_type_id: str) -> List[CriteriaEvaluator]:
        definition = self.lookup(trial_criteria_type_id)
        if definition is None:
            return []
        return [CriteriaEvaluator(rule_set) for rule_set in definition.for_scope(scope)]

    def keys(self) -> List[str]:
        return sorted(self._definitions)

    def __contains__(self, key: str) -> bool:
        return key.lower() in self._definitions


# Process-wide registry used when an orchestrator is not given its own
_default_registry: Optional[EvaluationDefinitionRegistry] = None


def get_evaluation_registry() -> EvaluationDefinitionRegistry:
    """Get or create the global registry, seeded with the built-in definitions."""
    global _default_registry
    if _default_registry is None:
        _default_registry = EvaluationDefinitionRegistry.with_builtin_definitions()
    return _default_registry


def set_evaluation_definitions(key: str, definitions: DefinitionInput) -> EvaluationDefinition:
    """Static registration entry point for extending the registry at process start."""
    return get_evaluation_registry().register(key, definitions)
