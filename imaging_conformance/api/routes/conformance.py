"""Conformance API routes: published outputs, explicit runs, selection and definitions."""
import re

from fastapi import APIRouter, HTTPException

from imaging_conformance.api.requests import ReadinessRequest, SelectCriteriaTypeRequest, ValidateRequest
from imaging_conformance.api.responses import (
    DefinitionsResponse,
    GroupedNonconformitiesResponse,
    MaxTargetsResponse,
    NonconformitiesResponse,
    ValidationResponse,
)
from imaging_conformance.models import EvaluationDefinition, TrialCriteriaType
from imaging_conformance.conformance.exceptions import (
    DataFetchError,
    DefinitionNotFoundError,
    EvaluationError,
    InvalidTrialCriteriaTypeError,
)
from imaging_conformance.conformance.grouping import grouped_to_dict
from imaging_conformance.conformance.service import get_conformance_service
from imaging_conformance.config.logging_config import get_logger

logger = get_logger(__name__)

# Definition keys: letters, numbers, dots, hyphens, underscores
VALID_KEY_PATTERN = re.compile(r'^[a-zA-Z0-9._-]+$')
MAX_KEY_LENGTH = 50


def _validate_key(key: str) -> str:
    """Validate and normalize a trial criteria type key."""
    if not key:
        raise HTTPException(status_code=400, detail="Key cannot be empty")
    if len(key) > MAX_KEY_LENGTH:
        raise HTTPException(status_code=400, detail=f"Key exceeds maximum length of {MAX_KEY_LENGTH}")
    if not VALID_KEY_PATTERN.match(key):
        raise HTTPException(
            status_code=400,
            detail="Key contains invalid characters. Only letters, numbers, dots, hyphens, and underscores are allowed."
        )
    return key.lower()


router = APIRouter(prefix="/conformance", tags=["Conformance"])


@router.get("/nonconformities", response_model=NonconformitiesResponse)
async def get_nonconformities():
    nonconformities = get_conformance_service().criteria.nonconformities.get()
    return NonconformitiesResponse(
        validated=nonconformities is not None,
        count=len(nonconformities or []),
        nonconformities=nonconformities or [],
    )


@router.get("/grouped", response_model=GroupedNonconformitiesResponse)
async def get_grouped_nonconformities():
    grouped = get_conformance_service().criteria.grouped_nonconformities.get()
    return GroupedNonconformitiesResponse(
        validated=grouped is not None,
        groups=grouped_to_dict(grouped or {}),
    )


@router.get("/max-targets", response_model=MaxTargetsResponse)
async def get_max_targets():
    return MaxTargetsResponse(max_targets=get_conformance_service().criteria.max_targets.get())


@router.post("/validate", response_model=ValidationResponse)
async def validate(request: ValidateRequest):
    """
    Run validation immediately, bypassing the debounce and readiness flag.

    Args:
        request: Optional trial criteria type override

    Returns:
        Flat and grouped nonconformities of this run
    """
    service = get_conformance_service()
    trial_criteria_type = (
        TrialCriteriaType(id=request.trial_criteria_type)
        if request.trial_criteria_type is not None
        else service.trial_criteria_type.get()
    )

    try:
        nonconformities = await service.criteria.validate(trial_criteria_type)
    except InvalidTrialCriteriaTypeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except DataFetchError as e:
        logger.error("Validation data fetch failed", error=str(e))
        raise HTTPException(status_code=502, detail=str(e))
    except EvaluationError as e:
        logger.error("Validation evaluation failed", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    return ValidationResponse(
        trial_criteria_type=trial_criteria_type.key,
        count=len(nonconformities),
        nonconformities=nonconformities,
        groups=grouped_to_dict(service.criteria.grouped_nonconformities.get() or {}),
        max_targets=service.criteria.max_targets.get(),
    )


@router.get("/criteria-type", response_model=TrialCriteriaType)
async def get_criteria_type():
    return get_conformance_service().trial_criteria_type.get()


@router.put("/criteria-type", response_model=TrialCriteriaType)
async def select_criteria_type(request: SelectCriteriaTypeRequest):
    type_id = _validate_key(request.id)
    return get_conformance_service().select_trial_criteria_type(type_id, request.name)


@router.put("/ready")
async def set_ready(request: ReadinessRequest):
    get_conformance_service().set_measurements_ready(request.ready)
    return {"ready": request.ready}


@router.get("/definitions", response_model=DefinitionsResponse)
async def list_definitions():
    return DefinitionsResponse(definitions=get_conformance_service().registry.keys())


@router.get("/definitions/{key}", response_model=EvaluationDefinition)
async def get_definition(key: str):
    key_safe = _validate_key(key)
    try:
        return get_conformance_service().registry.get(key_safe)
    except DefinitionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/definitions/{key}", response_model=EvaluationDefinition)
async def register_definition(key: str, definition: EvaluationDefinition):
    key_safe = _validate_key(key)
    service = get_conformance_service()
    try:
        registered = service.registry.register(key_safe, definition)
    except EvaluationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    # Re-run when the rules of the selected type change
    if service.trial_criteria_type.get() and service.trial_criteria_type.get().key == key_safe:
        service.scheduler.trigger("definition_registered")
    return registered
