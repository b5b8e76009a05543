"""Request models for conformance API endpoints."""
from typing import Optional
from pydantic import BaseModel, Field


class ValidateRequest(BaseModel):
    """Run validation now; defaults to the currently selected trial criteria type."""
    trial_criteria_type: Optional[str] = Field(default=None, description="Trial criteria type id, e.g. recist")


class SelectCriteriaTypeRequest(BaseModel):
    """Select the trial criteria type used by automatic re-validation."""
    id: str = Field(..., min_length=1, description="Trial criteria type id")
    name: Optional[str] = Field(default=None, description="Display name")


class ReadinessRequest(BaseModel):
    """Toggle the measurements-ready flag gating automatic re-validation."""
    ready: bool
