"""Conformance criteria: pure rule functions over a timepoint dataset.

Each criterion receives its validated options and a TimepointDataSet and
returns the nonconformities it detects. No I/O, no suspension, same inputs
always produce the same outputs.
"""

from typing import Callable, Dict, Iterable, List, Literal, NamedTuple, Optional, Type

from pydantic import BaseModel, Field

from imaging_conformance.models import (
    Measurement,
    MeasurementKind,
    Nonconformity,
    TimepointDataEntry,
    TimepointDataSet,
    TimepointType,
)

CriterionFn = Callable[[BaseModel, TimepointDataSet], List[Nonconformity]]


class RegisteredCriterion(NamedTuple):
    fn: CriterionFn
    options_model: Type[BaseModel]


# --- Criterion Registry ---

CRITERION_REGISTRY: Dict[str, RegisteredCriterion] = {}


def register_criterion(name: str, options_model: Type[BaseModel]):
    """Decorator to register a criterion function under ``name``."""
    def decorator(fn: CriterionFn):
        CRITERION_REGISTRY[name] = RegisteredCriterion(fn, options_model)
        return fn
    return decorator


# --- Helpers ---

def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _is_nodal(measurement: Measurement) -> bool:
    return measurement.is_nodal or "lymph node" in _normalize(measurement.location)


def _by_measurement_number(entries: Iterable[TimepointDataEntry]) -> Dict[int, List[TimepointDataEntry]]:
    grouped: Dict[int, List[TimepointDataEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.measurement.measurement_number, []).append(entry)
    return grouped


def _numbers_at(entries: Iterable[TimepointDataEntry], timepoint_type: TimepointType) -> set:
    return {
        e.measurement.measurement_number
        for e in entries
        if e.timepoint.timepoint_type == timepoint_type
    }


_KIND_LABELS = {
    MeasurementKind.TARGETS: "target",
    MeasurementKind.NON_TARGETS: "non-target",
}


# --- Individual criteria ---

class MaxTargetsOptions(BaseModel):
    limit: int = Field(..., ge=0)
    location_in: Optional[List[str]] = None
    location_not_in: Optional[List[str]] = None
    nodal: Optional[bool] = None
    new_target: bool = False  # only count targets first seen at follow-up

    @property
    def is_filtered(self) -> bool:
        return bool(
            self.location_in
            or self.location_not_in
            or self.nodal is not None
            or self.new_target
        )


@register_criterion("max_targets", MaxTargetsOptions)
def evaluate_max_targets(options: MaxTargetsOptions, data: TimepointDataSet) -> List[Nonconformity]:
    entries = data.targets
    if options.location_in:
        allowed = {_normalize(loc) for loc in options.location_in}
        entries = [e for e in entries if _normalize(e.measurement.location) in allowed]
    if options.location_not_in:
        denied = {_normalize(loc) for loc in options.location_not_in}
        entries = [e for e in entries if _normalize(e.measurement.location) not in denied]
    if options.nodal is not None:
        entries = [e for e in entries if _is_nodal(e.measurement) == options.nodal]
    if options.new_target:
        baseline_numbers = _numbers_at(data.targets, TimepointType.BASELINE)
        entries = [
            e for e in entries
            if e.timepoint.timepoint_type == TimepointType.FOLLOWUP
            and e.measurement.measurement_number not in baseline_numbers
        ]

    count = len(_by_measurement_number(entries))
    if count <= options.limit:
        return []

    qualifier = ""
    if options.new_target:
        qualifier = "new "
    elif options.nodal is True:
        qualifier = "nodal "
    elif options.nodal is False:
        qualifier = "non-nodal "
    return [Nonconformity(
        is_global=True,
        message=f"The study should not have more than {options.limit} {qualifier}targets (found {count}).",
    )]


class TargetsPerOrganOptions(BaseModel):
    limit: int = Field(..., ge=0)


@register_criterion("targets_per_organ", TargetsPerOrganOptions)
def evaluate_targets_per_organ(options: TargetsPerOrganOptions, data: TimepointDataSet) -> List[Nonconformity]:
    by_organ: Dict[str, List[TimepointDataEntry]] = {}
    for entry in data.targets:
        organ = _normalize(entry.measurement.location)
        if organ:
            by_organ.setdefault(organ, []).append(entry)

    nonconformities = []
    for organ, entries in by_organ.items():
        if len(_by_measurement_number(entries)) > options.limit:
            nonconformities.append(Nonconformity(
                message=f"Each organ should not have more than {options.limit} targets ({organ}).",
                measurements=[e.measurement for e in entries],
            ))
    return nonconformities


class MeasurementLengthOptions(BaseModel):
    long_axis_min: Optional[float] = Field(default=None, ge=0)
    short_axis_min: Optional[float] = Field(default=None, ge=0)
    long_axis_slice_thickness_multiplier: Optional[float] = Field(default=None, ge=0)
    short_axis_slice_thickness_multiplier: Optional[float] = Field(default=None, ge=0)


def _length_threshold(
    minimum: Optional[float],
    multiplier: Optional[float],
    slice_thickness: Optional[float],
) -> Optional[float]:
    candidates = []
    if minimum is not None:
        candidates.append(minimum)
    if multiplier is not None and slice_thickness is not None:
        candidates.append(multiplier * slice_thickness)
    return max(candidates) if candidates else None


@register_criterion("measurement_length", MeasurementLengthOptions)
def evaluate_measurement_length(options: MeasurementLengthOptions, data: TimepointDataSet) -> List[Nonconformity]:
    nonconformities = []
    for entry in data.targets:
        measurement = entry.measurement
        slice_thickness = entry.metadata.slice_thickness if entry.metadata else None

        if _is_nodal(measurement):
            axis, value = "short axis", measurement.short_axis
            threshold = _length_threshold(
                options.short_axis_min, options.short_axis_slice_thickness_multiplier, slice_thickness
            )
        else:
            axis, value = "long axis", measurement.long_axis
            threshold = _length_threshold(
                options.long_axis_min, options.long_axis_slice_thickness_multiplier, slice_thickness
            )

        if value is None or threshold is None:
            continue
        if value < threshold:
            nonconformities.append(Nonconformity(
                message=f"The {axis} of target {measurement.measurement_number} should be at least {threshold:g} mm.",
                measurements=[measurement],
            ))
    return nonconformities


class ModalityOptions(BaseModel):
    method: Literal["allow", "deny"] = "allow"
    modalities: List[str] = Field(default_factory=list)


@register_criterion("modality", ModalityOptions)
def evaluate_modality(options: ModalityOptions, data: TimepointDataSet) -> List[Nonconformity]:
    modalities = {m.upper() for m in options.modalities}
    nonconformities = []
    for entry in [*data.targets, *data.non_targets]:
        modality = (entry.metadata.modality or "").upper() if entry.metadata else ""
        if not modality:
            continue
        listed = modality in modalities
        if listed != (options.method == "allow"):
            nonconformities.append(Nonconformity(
                message=f"Modality {modality} is not allowed for this trial.",
                measurements=[entry.measurement],
            ))
    return nonconformities


class LocationOptions(BaseModel):
    kinds: List[MeasurementKind] = Field(
        default_factory=lambda: [MeasurementKind.TARGETS, MeasurementKind.NON_TARGETS]
    )


@register_criterion("location", LocationOptions)
def evaluate_location(options: LocationOptions, data: TimepointDataSet) -> List[Nonconformity]:
    nonconformities = []
    for kind in options.kinds:
        for entry in data.entries(kind):
            if not _normalize(entry.measurement.location):
                nonconformities.append(Nonconformity(
                    message=f"The {_KIND_LABELS[kind]} {entry.measurement.measurement_number} has no location.",
                    measurements=[entry.measurement],
                ))
    return nonconformities


class ToolTypeOptions(BaseModel):
    targets: Optional[List[str]] = None
    non_targets: Optional[List[str]] = None


@register_criterion("tool_type", ToolTypeOptions)
def evaluate_tool_type(options: ToolTypeOptions, data: TimepointDataSet) -> List[Nonconformity]:
    nonconformities = []
    for kind, allowed in (
        (MeasurementKind.TARGETS, options.targets),
        (MeasurementKind.NON_TARGETS, options.non_targets),
    ):
        if allowed is None:
            continue
        for entry in data.entries(kind):
            tool_type = entry.measurement.tool_type
            if tool_type not in allowed:
                nonconformities.append(Nonconformity(
                    message=f"Tool {tool_type} is not allowed for {_KIND_LABELS[kind]}s.",
                    measurements=[entry.measurement],
                ))
    return nonconformities


class NewMeasurementsOptions(BaseModel):
    kinds: List[MeasurementKind] = Field(default_factory=lambda: [MeasurementKind.TARGETS])


@register_criterion("new_measurements", NewMeasurementsOptions)
def evaluate_new_measurements(options: NewMeasurementsOptions, data: TimepointDataSet) -> List[Nonconformity]:
    """Flag follow-up measurements whose lesion was never measured at baseline.

    Requires the merged dataset; skipped for a kind with no baseline entries.
    """
    nonconformities = []
    for kind in options.kinds:
        entries = data.entries(kind)
        baseline_numbers = _numbers_at(entries, TimepointType.BASELINE)
        if not baseline_numbers:
            continue
        for entry in entries:
            number = entry.measurement.measurement_number
            if entry.timepoint.timepoint_type == TimepointType.FOLLOWUP and number not in baseline_numbers:
                nonconformities.append(Nonconformity(
                    message=f"The {_KIND_LABELS[kind]} {number} was not measured at baseline.",
                    measurements=[entry.measurement],
                ))
    return nonconformities


class NonTargetResponseOptions(BaseModel):
    responses: List[str] = Field(default_factory=list)
    require_response: bool = True


@register_criterion("non_target_response", NonTargetResponseOptions)
def evaluate_non_target_response(options: NonTargetResponseOptions, data: TimepointDataSet) -> List[Nonconformity]:
    allowed = {r.upper() for r in options.responses}
    nonconformities = []
    for entry in data.non_targets:
        if entry.timepoint.timepoint_type != TimepointType.FOLLOWUP:
            continue
        measurement = entry.measurement
        if not measurement.response:
            if options.require_response:
                nonconformities.append(Nonconformity(
                    message=f"The non-target {measurement.measurement_number} has no response.",
                    measurements=[measurement],
                ))
            continue
        if allowed and measurement.response.upper() not in allowed:
            nonconformities.append(Nonconformity(
                message=f"Response {measurement.response} is not allowed for non-targets.",
                measurements=[measurement],
            ))
    return nonconformities
