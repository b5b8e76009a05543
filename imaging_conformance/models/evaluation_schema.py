"""
Evaluation Definition Schema

An evaluation definition describes, per timepoint scope, the rule sets a
trial criteria type (e.g. RECIST 1.1) applies to the collected measurements.

    {
        "baseline": {"criteria": [{"criterion": "max_targets", "options": {"limit": 5}}]},
        "followup": [{"criteria": [...]}, {"criteria": [...]}],
        "both": null
    }

Each scope holds zero or more rule sets; every rule set becomes one criteria
evaluator, run in declaration order.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .enums import EvaluationScope


class CriterionDefinition(BaseModel):
    """One configured criterion within a rule set."""
    criterion: str = Field(..., description="Registered criterion name, e.g. max_targets")
    options: Dict[str, Any] = Field(default_factory=dict)
    message: Optional[str] = Field(
        default=None,
        description="Overrides the default message of every nonconformity this criterion produces"
    )


class RuleSet(BaseModel):
    """Ordered criteria consumed by a single criteria evaluator."""
    name: Optional[str] = None
    criteria: List[CriterionDefinition] = Field(default_factory=list)


class EvaluationDefinition(BaseModel):
    """Scope-keyed rule sets registered under one trial criteria type."""
    baseline: List[RuleSet] = Field(default_factory=list)
    followup: List[RuleSet] = Field(default_factory=list)
    both: List[RuleSet] = Field(default_factory=list)

    @field_validator("baseline", "followup", "both", mode="before")
    @classmethod
    def _wrap_single_rule_set(cls, value):
        if value is None:
            return []
        if isinstance(value, (dict, RuleSet)):
            return [value]
        return value

    def for_scope(self, scope: EvaluationScope) -> List[RuleSet]:
        return getattr(self, EvaluationScope(scope).value)
