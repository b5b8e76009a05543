"""Data Aggregator: builds the measurement dataset of one timepoint scope.

Measurements whose timepoint cannot be resolved, or whose timepoint type does
not match the requested scope, are left out; that is not an error. Entries are
appended as their study metadata resolves, so only set membership (not input
order) is guaranteed. Any failing lookup fails the whole dataset.
"""

import asyncio
from typing import List, Optional

from imaging_conformance.models import (
    EvaluationScope,
    Measurement,
    MeasurementKind,
    Timepoint,
    TimepointDataEntry,
    TimepointDataSet,
)
from imaging_conformance.conformance.collaborators import (
    MeasurementStore,
    StudyMetadataProvider,
    TimepointRegistry,
)
from imaging_conformance.conformance.exceptions import DataFetchError
from imaging_conformance.config.logging_config import get_logger

logger = get_logger(__name__)


class DataAggregator:
    """Assembles TimepointDataSets from the measurement store, timepoint registry and study metadata."""

    def __init__(
        self,
        measurement_store: MeasurementStore,
        timepoint_registry: TimepointRegistry,
        metadata_service: StudyMetadataProvider,
    ):
        self.measurement_store = measurement_store
        self.timepoint_registry = timepoint_registry
        self.metadata_service = metadata_service

    async def get_data(self, timepoint_type: EvaluationScope) -> TimepointDataSet:
        scope = EvaluationScope(timepoint_type)
        data = TimepointDataSet()
        tasks: List[asyncio.Task] = []

        try:
            for kind in MeasurementKind:
                for measurement in await self.measurement_store.fetch(kind):
                    timepoint = await self._resolve_timepoint(measurement)
                    if timepoint is None or not self._in_scope(timepoint, scope):
                        continue
                    tasks.append(asyncio.create_task(
                        self._append_entry(data, kind, measurement, timepoint)
                    ))
            await asyncio.gather(*tasks)
        except DataFetchError:
            logger.error("Dataset construction failed", scope=scope.value)
            raise
        except Exception as e:
            logger.error("Dataset construction failed", scope=scope.value, error=str(e))
            raise DataFetchError(f"Could not build {scope.value} dataset: {e}") from e
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        logger.debug(
            "Dataset built",
            scope=scope.value,
            targets=len(data.targets),
            non_targets=len(data.non_targets),
        )
        return data

    async def _resolve_timepoint(self, measurement: Measurement) -> Optional[Timepoint]:
        if not measurement.timepoint_id:
            return None
        return await self.timepoint_registry.find_by_identifier(measurement.timepoint_id)

    @staticmethod
    def _in_scope(timepoint: Timepoint, scope: EvaluationScope) -> bool:
        return scope == EvaluationScope.BOTH or timepoint.timepoint_type.value == scope.value

    async def _append_entry(
        self,
        data: TimepointDataSet,
        kind: MeasurementKind,
        measurement: Measurement,
        timepoint: Timepoint,
    ) -> None:
        study = await self.metadata_service.retrieve_by_study_identifier(measurement.study_instance_uid)
        data.entries(kind).append(TimepointDataEntry(
            measurement=measurement,
            metadata=study.first_instance(),
            timepoint=timepoint,
        ))
