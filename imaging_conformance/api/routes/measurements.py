"""Routes feeding the in-memory measurement store, timepoint registry and study metadata."""
from fastapi import APIRouter, HTTPException

from imaging_conformance.models import Measurement, MeasurementKind, StudyMetadata, Timepoint
from imaging_conformance.conformance.service import get_conformance_service
from imaging_conformance.config.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Measurements"])


@router.get("/measurements/{kind}")
async def list_measurements(kind: MeasurementKind):
    measurements = await get_conformance_service().measurement_store.fetch(kind)
    return {"kind": kind.value, "measurements": [m.model_dump(mode="json") for m in measurements]}


@router.post("/measurements/{kind}", status_code=201)
async def add_measurement(kind: MeasurementKind, measurement: Measurement):
    get_conformance_service().measurement_store.add(kind, measurement)
    logger.debug("Measurement stored", kind=kind.value, measurement_id=measurement.measurement_id)
    return {"kind": kind.value, "measurement_id": measurement.measurement_id}


@router.delete("/measurements/{kind}/{measurement_id}")
async def remove_measurement(kind: MeasurementKind, measurement_id: str):
    if not get_conformance_service().measurement_store.remove(kind, measurement_id):
        raise HTTPException(status_code=404, detail=f"Measurement not found: {measurement_id}")
    return {"kind": kind.value, "measurement_id": measurement_id, "removed": True}


@router.post("/timepoints", status_code=201)
async def add_timepoint(timepoint: Timepoint):
    get_conformance_service().timepoint_registry.add(timepoint)
    return {"timepoint_id": timepoint.timepoint_id}


@router.post("/studies", status_code=201)
async def add_study(study: StudyMetadata):
    get_conformance_service().metadata_service.add(study)
    return {"study_instance_uid": study.study_instance_uid, "instances": len(study.instances)}
