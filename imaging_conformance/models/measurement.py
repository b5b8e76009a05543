"""Measurement, timepoint, and study metadata records.

Records are owned by the external measurement store, timepoint registry, and
study metadata service; the conformance pipeline only reads them.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import MeasurementKind, TimepointType


class Measurement(BaseModel):
    """A single target or non-target lesion measurement."""
    model_config = ConfigDict(extra="allow")

    measurement_id: str = Field(..., description="Unique identifier of this measurement record")
    study_instance_uid: str = Field(..., description="Study the measurement was taken on")
    timepoint_id: Optional[str] = Field(default=None, description="Timepoint the study belongs to")
    tool_type: str = Field(..., description="Measurement tool, e.g. bidirectional, nonTarget")
    measurement_number: int = Field(..., description="Identity of the lesion across timepoints")
    location: Optional[str] = None  # anatomical location / organ
    is_nodal: bool = False
    long_axis: Optional[float] = None   # mm
    short_axis: Optional[float] = None  # mm
    response: Optional[str] = None  # non-target response code, e.g. CR, PD
    payload: Dict[str, Any] = Field(default_factory=dict)


class Timepoint(BaseModel):
    """A clinical visit classified as baseline or follow-up."""
    timepoint_id: str
    timepoint_type: TimepointType
    visit_date: Optional[str] = None


class InstanceMetadata(BaseModel):
    """Imaging metadata of a single instance."""
    model_config = ConfigDict(extra="allow")

    sop_instance_uid: Optional[str] = None
    series_instance_uid: Optional[str] = None
    modality: Optional[str] = None
    slice_thickness: Optional[float] = None  # mm
    pixel_spacing: Optional[List[float]] = None


class StudyMetadata(BaseModel):
    """Imaging metadata of a study, resolved by study instance UID."""
    study_instance_uid: str
    instances: List[InstanceMetadata] = Field(default_factory=list)

    def first_instance(self) -> Optional[InstanceMetadata]:
        return self.instances[0] if self.instances else None


class TrialCriteriaType(BaseModel):
    """The rule family selected for validation (e.g. RECIST)."""
    id: Optional[str] = None
    name: Optional[str] = None
    selected: bool = False

    @property
    def key(self) -> str:
        return (self.id or "").lower()


class TimepointDataEntry(BaseModel):
    """A measurement paired with the metadata and timepoint it was resolved against."""
    measurement: Measurement
    metadata: Optional[InstanceMetadata] = None
    timepoint: Timepoint


class TimepointDataSet(BaseModel):
    """Targets and non-targets of one timepoint scope, built fresh per validation run."""
    targets: List[TimepointDataEntry] = Field(default_factory=list)
    non_targets: List[TimepointDataEntry] = Field(default_factory=list)

    @classmethod
    def merge(cls, first: "TimepointDataSet", second: "TimepointDataSet") -> "TimepointDataSet":
        """Concatenate two datasets, entries of ``first`` before ``second``."""
        return cls(
            targets=[*first.targets, *second.targets],
            non_targets=[*first.non_targets, *second.non_targets],
        )

    def entries(self, kind: MeasurementKind) -> List[TimepointDataEntry]:
        return self.targets if MeasurementKind(kind) == MeasurementKind.TARGETS else self.non_targets
