"""Collaborator contracts consumed by the aggregator, with in-memory implementations.

The measurement store, timepoint registry, and study metadata service are
external systems; the in-memory versions back the HTTP surface and tests.
"""

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Union

from imaging_conformance.models import Measurement, MeasurementKind, StudyMetadata, Timepoint
from imaging_conformance.conformance.exceptions import DataFetchError
from imaging_conformance.conformance.grouping import DEFAULT_TOOL_GROUPS
from imaging_conformance.conformance.observable import ObservableValue
from imaging_conformance.config.logging_config import get_logger

logger = get_logger(__name__)


class MeasurementStore(Protocol):
    changes: ObservableValue

    async def fetch(self, kind: MeasurementKind) -> List[Measurement]:
        ...


class TimepointRegistry(Protocol):
    async def find_by_identifier(self, timepoint_id: str) -> Optional[Timepoint]:
        ...


class StudyMetadataProvider(Protocol):
    async def retrieve_by_study_identifier(self, study_instance_uid: str) -> StudyMetadata:
        ...


class InMemoryMeasurementStore:
    """Measurements keyed by kind then id; ``changes`` is a version counter bumped on every edit."""

    def __init__(self, tool_groups_map: Optional[Dict[str, str]] = None):
        self._measurements: Dict[MeasurementKind, Dict[str, Measurement]] = {
            kind: {} for kind in MeasurementKind
        }
        self.tool_groups_map = dict(tool_groups_map or DEFAULT_TOOL_GROUPS)
        self.changes: ObservableValue[int] = ObservableValue(0, name="measurement_changes")

    async def fetch(self, kind: MeasurementKind) -> List[Measurement]:
        return list(self._measurements[MeasurementKind(kind)].values())

    def add(self, kind: MeasurementKind, measurement: Measurement) -> None:
        self._measurements[MeasurementKind(kind)][measurement.measurement_id] = measurement
        self._bump()

    def remove(self, kind: MeasurementKind, measurement_id: str) -> bool:
        removed = self._measurements[MeasurementKind(kind)].pop(measurement_id, None)
        if removed is not None:
            self._bump()
        return removed is not None

    def clear(self) -> None:
        for measurements in self._measurements.values():
            measurements.clear()
        self._bump()

    def count(self, kind: MeasurementKind) -> int:
        return len(self._measurements[MeasurementKind(kind)])

    def _bump(self) -> None:
        self.changes.set(self.changes.get() + 1)


class InMemoryTimepointRegistry:
    def __init__(self, timepoints: Optional[List[Timepoint]] = None):
        self._timepoints: Dict[str, Timepoint] = {}
        for timepoint in timepoints or []:
            self.add(timepoint)

    def add(self, timepoint: Timepoint) -> None:
        self._timepoints[timepoint.timepoint_id] = timepoint

    async def find_by_identifier(self, timepoint_id: str) -> Optional[Timepoint]:
        return self._timepoints.get(timepoint_id)


StudyLoader = Callable[[str], Awaitable[Union[StudyMetadata, dict]]]


class StudyMetadataService:
    """Resolves study metadata by study instance UID, memoizing each study.

    Concurrent requests for the same study share one load; failed loads are
    not cached.
    """

    def __init__(self, loader: Optional[StudyLoader] = None):
        self._loader = loader
        self._studies: Dict[str, StudyMetadata] = {}
        self._pending: Dict[str, "asyncio.Task[StudyMetadata]"] = {}

    def add(self, study: StudyMetadata) -> None:
        self._studies[study.study_instance_uid] = study

    def invalidate(self, study_instance_uid: str) -> None:
        self._studies.pop(study_instance_uid, None)

    async def retrieve_by_study_identifier(self, study_instance_uid: str) -> StudyMetadata:
        study = self._studies.get(study_instance_uid)
        if study is not None:
            return study
        if self._loader is None:
            raise DataFetchError(f"Study metadata not found: {study_instance_uid}")

        task = self._pending.get(study_instance_uid)
        if task is None:
            task = asyncio.create_task(self._load(study_instance_uid))
            self._pending[study_instance_uid] = task
        return await task

    async def _load(self, study_instance_uid: str) -> StudyMetadata:
        try:
            raw = await self._loader(study_instance_uid)
            if isinstance(raw, StudyMetadata):
                study = raw
            else:
                study = StudyMetadata.model_validate({"study_instance_uid": study_instance_uid, **raw})
            self._studies[study_instance_uid] = study
            logger.debug("Study metadata retrieved", study_instance_uid=study_instance_uid)
            return study
        finally:
            self._pending.pop(study_instance_uid, None)
