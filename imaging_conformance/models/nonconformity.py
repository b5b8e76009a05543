"""Nonconformity records and their grouped presentation form."""
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .measurement import Measurement


class Nonconformity(BaseModel):
    """A detected violation of a conformance rule.

    Either global (``is_global``, no measurement linkage) or measurement-scoped
    (at least one offending measurement). Never mutated after creation.
    """
    model_config = ConfigDict(frozen=True)

    message: str
    is_global: bool = False
    measurements: List[Measurement] = Field(default_factory=list)
    criterion: Optional[str] = None  # name of the criterion that produced it

    @model_validator(mode="after")
    def _check_linkage(self) -> "Nonconformity":
        if self.is_global and self.measurements:
            raise ValueError("A global nonconformity cannot reference measurements")
        if not self.is_global and not self.measurements:
            raise ValueError("A measurement-scoped nonconformity needs at least one measurement")
        return self


class GlobalNonconformityGroup(BaseModel):
    messages: List[str] = Field(default_factory=list)


class MeasurementNumberGroup(BaseModel):
    messages: List[str] = Field(default_factory=list)
    measurements: List[Measurement] = Field(default_factory=list)


class ToolGroup(BaseModel):
    measurement_numbers: Dict[int, MeasurementNumberGroup] = Field(default_factory=dict)


GLOBALS_GROUP = "globals"

# "globals" -> GlobalNonconformityGroup, tool group name -> ToolGroup
GroupedNonConformities = Dict[str, Union[GlobalNonconformityGroup, ToolGroup]]
