"""Response models for conformance API endpoints."""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

from imaging_conformance.models import Nonconformity


class NonconformitiesResponse(BaseModel):
    """Flat nonconformity output of the last successful run."""
    validated: bool
    count: int
    nonconformities: List[Nonconformity]


class GroupedNonconformitiesResponse(BaseModel):
    """Grouped nonconformity output of the last successful run."""
    validated: bool
    groups: Dict[str, Any]


class MaxTargetsResponse(BaseModel):
    max_targets: Optional[int] = None


class ValidationResponse(BaseModel):
    """Result of an explicit validation run."""
    trial_criteria_type: str
    count: int
    nonconformities: List[Nonconformity]
    groups: Dict[str, Any]
    max_targets: Optional[int] = None


class DefinitionsResponse(BaseModel):
    definitions: List[str]
