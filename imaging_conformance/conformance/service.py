"""Conformance service: wires collaborators, registry, orchestrator and scheduler."""

from pathlib import Path
from typing import Optional, Union

from imaging_conformance.models import TrialCriteriaType
from imaging_conformance.conformance.collaborators import (
    InMemoryMeasurementStore,
    InMemoryTimepointRegistry,
    StudyLoader,
    StudyMetadataService,
)
from imaging_conformance.conformance.definitions import load_definitions_dir
from imaging_conformance.conformance.exceptions import EvaluationError
from imaging_conformance.conformance.observable import ObservableValue
from imaging_conformance.conformance.orchestrator import ConformanceCriteria
from imaging_conformance.conformance.registry import EvaluationDefinitionRegistry, get_evaluation_registry
from imaging_conformance.conformance.scheduler import RevalidationScheduler
from imaging_conformance.config.logging_config import get_logger
from imaging_conformance.config.settings import Settings, get_settings

logger = get_logger(__name__)


class ConformanceService:
    """Owns the in-memory collaborators and the automatic re-validation loop."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[EvaluationDefinitionRegistry] = None,
        metadata_loader: Optional[StudyLoader] = None,
    ):
        settings = settings or get_settings()
        self.measurement_store = InMemoryMeasurementStore()
        self.timepoint_registry = InMemoryTimepointRegistry()
        self.metadata_service = StudyMetadataService(metadata_loader)
        self.registry = registry if registry is not None else get_evaluation_registry()
        self.criteria = ConformanceCriteria(
            self.measurement_store,
            self.timepoint_registry,
            self.metadata_service,
            registry=self.registry,
        )

        self.trial_criteria_type: ObservableValue[TrialCriteriaType] = ObservableValue(
            TrialCriteriaType(id=settings.default_trial_criteria_type, selected=True),
            name="trial_criteria_type",
        )
        self.measurements_ready: ObservableValue[bool] = ObservableValue(
            settings.measurements_ready_on_start, name="measurements_ready"
        )
        self.scheduler = RevalidationScheduler(
            self.criteria,
            self.trial_criteria_type,
            self.measurements_ready,
            self.measurement_store.changes,
            debounce_seconds=settings.revalidation_debounce_seconds,
        )

    def load_definitions(self, path: Union[str, Path]) -> int:
        """Register every valid definition file in ``path``; returns how many were registered."""
        registered = 0
        for key, definition in load_definitions_dir(path).items():
            try:
                self.registry.register(key, definition)
            except EvaluationError as e:
                logger.warning("Skipping evaluation definition", key=key, error=str(e))
                continue
            registered += 1
        return registered

    def select_trial_criteria_type(self, type_id: str, name: Optional[str] = None) -> TrialCriteriaType:
        selected = TrialCriteriaType(id=type_id, name=name, selected=True)
        self.trial_criteria_type.set(selected)
        logger.info("Trial criteria type selected", trial_criteria_type=selected.key)
        return selected

    def set_measurements_ready(self, ready: bool) -> None:
        self.measurements_ready.set(ready)

    def start(self) -> None:
        self.scheduler.start()
        if self.measurements_ready.get():
            self.scheduler.trigger("startup")

    def stop(self) -> None:
        self.scheduler.stop()


_service: Optional[ConformanceService] = None


def get_conformance_service() -> ConformanceService:
    """Get or create the global ConformanceService."""
    global _service
    if _service is None:
        _service = ConformanceService()
    return _service


def reset_conformance_service() -> None:
    """Drop the global service; the next ``get_conformance_service`` builds a fresh one."""
    global _service
    if _service is not None:
        _service.stop()
    _service = None
