"""
Pytest Configuration and Fixtures

Shared in-memory collaborators and measurement factories for conformance tests.
"""
from typing import List

import pytest

from imaging_conformance.models import (
    InstanceMetadata,
    Measurement,
    MeasurementKind,
    StudyMetadata,
    Timepoint,
    TimepointDataEntry,
    TimepointDataSet,
    TimepointType,
)
from imaging_conformance.conformance.collaborators import (
    InMemoryMeasurementStore,
    InMemoryTimepointRegistry,
    StudyMetadataService,
)
from imaging_conformance.conformance.orchestrator import ConformanceCriteria
from imaging_conformance.conformance.registry import EvaluationDefinitionRegistry

BASELINE_TP = Timepoint(timepoint_id="T1", timepoint_type=TimepointType.BASELINE)
FOLLOWUP_TP = Timepoint(timepoint_id="T2", timepoint_type=TimepointType.FOLLOWUP)


class RecordingMeasurementStore(InMemoryMeasurementStore):
    """In-memory store that records every fetch."""

    def __init__(self):
        super().__init__()
        self.fetches: List[MeasurementKind] = []

    async def fetch(self, kind):
        self.fetches.append(MeasurementKind(kind))
        return await super().fetch(kind)


@pytest.fixture
def make_measurement():
    """Factory for measurements with sensible target defaults."""
    counter = {"n": 0}

    def _make(**overrides) -> Measurement:
        counter["n"] += 1
        fields = {
            "measurement_id": f"m{counter['n']}",
            "study_instance_uid": "S1",
            "timepoint_id": "T1",
            "tool_type": "bidirectional",
            "measurement_number": counter["n"],
            "location": "Liver",
            "long_axis": 25.0,
            "short_axis": 12.0,
        }
        fields.update(overrides)
        return Measurement(**fields)

    return _make


@pytest.fixture
def make_entry():
    """Factory wrapping a measurement into a dataset entry."""

    def _make(measurement: Measurement, timepoint: Timepoint = BASELINE_TP,
              modality: str = "CT", slice_thickness: float = 2.5) -> TimepointDataEntry:
        return TimepointDataEntry(
            measurement=measurement,
            metadata=InstanceMetadata(modality=modality, slice_thickness=slice_thickness),
            timepoint=timepoint,
        )

    return _make


@pytest.fixture
def empty_dataset() -> TimepointDataSet:
    return TimepointDataSet()


@pytest.fixture
def measurement_store() -> RecordingMeasurementStore:
    return RecordingMeasurementStore()


@pytest.fixture
def timepoint_registry() -> InMemoryTimepointRegistry:
    return InMemoryTimepointRegistry([BASELINE_TP, FOLLOWUP_TP])


@pytest.fixture
def metadata_service() -> StudyMetadataService:
    service = StudyMetadataService()
    service.add(StudyMetadata(
        study_instance_uid="S1",
        instances=[InstanceMetadata(modality="CT", slice_thickness=2.5)],
    ))
    service.add(StudyMetadata(
        study_instance_uid="S2",
        instances=[InstanceMetadata(modality="MR", slice_thickness=5.0)],
    ))
    return service


@pytest.fixture
def registry() -> EvaluationDefinitionRegistry:
    """Empty registry; tests register what they need."""
    return EvaluationDefinitionRegistry()


@pytest.fixture
def criteria(measurement_store, timepoint_registry, metadata_service, registry) -> ConformanceCriteria:
    return ConformanceCriteria(
        measurement_store,
        timepoint_registry,
        metadata_service,
        registry=registry,
    )
