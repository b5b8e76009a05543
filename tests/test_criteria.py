"""Tests for the built-in conformance criteria."""
from imaging_conformance.models import TimepointDataSet
from imaging_conformance.conformance.criteria import (
    CRITERION_REGISTRY,
    LocationOptions,
    MaxTargetsOptions,
    MeasurementLengthOptions,
    ModalityOptions,
    NewMeasurementsOptions,
    NonTargetResponseOptions,
    TargetsPerOrganOptions,
    ToolTypeOptions,
    evaluate_location,
    evaluate_max_targets,
    evaluate_measurement_length,
    evaluate_modality,
    evaluate_new_measurements,
    evaluate_non_target_response,
    evaluate_targets_per_organ,
    evaluate_tool_type,
)
from tests.conftest import BASELINE_TP, FOLLOWUP_TP


def test_all_builtin_criteria_registered():
    assert {
        "max_targets",
        "targets_per_organ",
        "measurement_length",
        "modality",
        "location",
        "tool_type",
        "new_measurements",
        "non_target_response",
    } <= set(CRITERION_REGISTRY)


class TestMaxTargets:
    def test_within_limit(self, make_measurement, make_entry):
        data = TimepointDataSet(targets=[make_entry(make_measurement()) for _ in range(2)])
        assert evaluate_max_targets(MaxTargetsOptions(limit=2), data) == []

    def test_over_limit_is_global(self, make_measurement, make_entry):
        data = TimepointDataSet(targets=[make_entry(make_measurement()) for _ in range(3)])

        result = evaluate_max_targets(MaxTargetsOptions(limit=2), data)

        assert len(result) == 1
        assert result[0].is_global
        assert "more than 2 targets" in result[0].message

    def test_counts_lesions_not_records(self, make_measurement, make_entry):
        data = TimepointDataSet(targets=[
            make_entry(make_measurement(measurement_number=1), BASELINE_TP),
            make_entry(make_measurement(measurement_number=1, timepoint_id="T2"), FOLLOWUP_TP),
        ])
        assert evaluate_max_targets(MaxTargetsOptions(limit=1), data) == []

    def test_location_filter(self, make_measurement, make_entry):
        data = TimepointDataSet(targets=[
            make_entry(make_measurement(location="Liver")),
            make_entry(make_measurement(location="Lung")),
        ])
        assert evaluate_max_targets(MaxTargetsOptions(limit=0, location_in=["lung"]), data)
        assert evaluate_max_targets(MaxTargetsOptions(limit=1, location_not_in=["Lung"]), data) == []

    def test_nodal_filter(self, make_measurement, make_entry):
        data = TimepointDataSet(targets=[
            make_entry(make_measurement(location="Axillary lymph node")),
            make_entry(make_measurement(location="Liver")),
        ])
        result = evaluate_max_targets(MaxTargetsOptions(limit=0, nodal=True), data)
        assert "(found 1)" in result[0].message

    def test_new_targets_only(self, make_measurement, make_entry):
        data = TimepointDataSet(targets=[
            make_entry(make_measurement(measurement_number=1), BASELINE_TP),
            make_entry(make_measurement(measurement_number=1, timepoint_id="T2"), FOLLOWUP_TP),
            make_entry(make_measurement(measurement_number=2, timepoint_id="T2"), FOLLOWUP_TP),
        ])
        result = evaluate_max_targets(MaxTargetsOptions(limit=0, new_target=True), data)
        assert "new targets (found 1)" in result[0].message

    def test_filtered_flag(self):
        assert not MaxTargetsOptions(limit=5).is_filtered
        assert MaxTargetsOptions(limit=5, nodal=False).is_filtered


def test_targets_per_organ_lists_organ_measurements(make_measurement, make_entry):
    liver = [make_measurement(location="Liver") for _ in range(3)]
    lung = make_measurement(location="Lung")
    data = TimepointDataSet(targets=[make_entry(m) for m in [*liver, lung]])

    result = evaluate_targets_per_organ(TargetsPerOrganOptions(limit=2), data)

    assert len(result) == 1
    assert result[0].measurements == liver
    assert "(liver)" in result[0].message


def test_targets_per_organ_ignores_missing_location(make_measurement, make_entry):
    data = TimepointDataSet(targets=[make_entry(make_measurement(location=None)) for _ in range(3)])
    assert evaluate_targets_per_organ(TargetsPerOrganOptions(limit=1), data) == []


class TestMeasurementLength:
    def test_long_axis_below_minimum(self, make_measurement, make_entry):
        small = make_measurement(long_axis=8.0)
        data = TimepointDataSet(targets=[make_entry(small), make_entry(make_measurement(long_axis=12.0))])

        result = evaluate_measurement_length(MeasurementLengthOptions(long_axis_min=10), data)

        assert len(result) == 1
        assert result[0].measurements == [small]
        assert "at least 10 mm" in result[0].message

    def test_slice_thickness_raises_threshold(self, make_measurement, make_entry):
        data = TimepointDataSet(targets=[make_entry(make_measurement(long_axis=12.0), slice_thickness=7.0)])
        options = MeasurementLengthOptions(long_axis_min=10, long_axis_slice_thickness_multiplier=2)

        result = evaluate_measurement_length(options, data)

        assert "at least 14 mm" in result[0].message

    def test_nodal_uses_short_axis(self, make_measurement, make_entry):
        node = make_measurement(location="Mediastinal lymph node", long_axis=30.0, short_axis=10.0)
        data = TimepointDataSet(targets=[make_entry(node)])

        result = evaluate_measurement_length(
            MeasurementLengthOptions(long_axis_min=10, short_axis_min=15), data
        )

        assert "short axis" in result[0].message

    def test_missing_axis_is_skipped(self, make_measurement, make_entry):
        data = TimepointDataSet(targets=[make_entry(make_measurement(tool_type="targetCR", long_axis=None))])
        assert evaluate_measurement_length(MeasurementLengthOptions(long_axis_min=10), data) == []


def test_modality_allow_and_deny(make_measurement, make_entry):
    ct = make_measurement()
    pet = make_measurement(tool_type="nonTarget")
    data = TimepointDataSet(targets=[make_entry(ct, modality="CT")], non_targets=[make_entry(pet, modality="PT")])

    allowed = evaluate_modality(ModalityOptions(method="allow", modalities=["ct", "MR"]), data)
    denied = evaluate_modality(ModalityOptions(method="deny", modalities=["CT"]), data)

    assert [nc.measurements for nc in allowed] == [[pet]]
    assert [nc.measurements for nc in denied] == [[ct]]


def test_location_required(make_measurement, make_entry):
    missing = make_measurement(location=" ")
    data = TimepointDataSet(
        targets=[make_entry(missing), make_entry(make_measurement())],
        non_targets=[make_entry(make_measurement(tool_type="nonTarget", location=None))],
    )

    assert len(evaluate_location(LocationOptions(), data)) == 2
    only_targets = evaluate_location(LocationOptions(kinds=["targets"]), data)
    assert [nc.measurements for nc in only_targets] == [[missing]]


def test_tool_type_per_kind(make_measurement, make_entry):
    wrong_target = make_measurement(tool_type="length")
    data = TimepointDataSet(
        targets=[make_entry(wrong_target), make_entry(make_measurement())],
        non_targets=[make_entry(make_measurement(tool_type="bidirectional"))],
    )

    result = evaluate_tool_type(ToolTypeOptions(targets=["bidirectional"]), data)

    assert [nc.measurements for nc in result] == [[wrong_target]]
    assert "not allowed for targets" in result[0].message


class TestNewMeasurements:
    def test_followup_lesion_missing_at_baseline(self, make_measurement, make_entry):
        new = make_measurement(measurement_number=2, timepoint_id="T2")
        data = TimepointDataSet(targets=[
            make_entry(make_measurement(measurement_number=1), BASELINE_TP),
            make_entry(make_measurement(measurement_number=1, timepoint_id="T2"), FOLLOWUP_TP),
            make_entry(new, FOLLOWUP_TP),
        ])

        result = evaluate_new_measurements(NewMeasurementsOptions(), data)

        assert [nc.measurements for nc in result] == [[new]]

    def test_skipped_without_baseline(self, make_measurement, make_entry):
        data = TimepointDataSet(targets=[make_entry(make_measurement(timepoint_id="T2"), FOLLOWUP_TP)])
        assert evaluate_new_measurements(NewMeasurementsOptions(), data) == []


def test_non_target_response(make_measurement, make_entry):
    ok = make_measurement(tool_type="nonTarget", timepoint_id="T2", response="PD")
    bad = make_measurement(tool_type="nonTarget", timepoint_id="T2", response="XX")
    missing = make_measurement(tool_type="nonTarget", timepoint_id="T2")
    at_baseline = make_measurement(tool_type="nonTarget")
    data = TimepointDataSet(non_targets=[
        make_entry(ok, FOLLOWUP_TP),
        make_entry(bad, FOLLOWUP_TP),
        make_entry(missing, FOLLOWUP_TP),
        make_entry(at_baseline, BASELINE_TP),
    ])

    result = evaluate_non_target_response(NonTargetResponseOptions(responses=["CR", "pd"]), data)

    assert [nc.measurements for nc in result] == [[bad], [missing]]
    lenient = evaluate_non_target_response(
        NonTargetResponseOptions(responses=["CR", "PD"], require_response=False), data
    )
    assert [nc.measurements for nc in lenient] == [[bad]]
