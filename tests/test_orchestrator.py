"""Tests for the validation orchestrator."""
import pytest

from imaging_conformance.models import MeasurementKind, TrialCriteriaType
from imaging_conformance.conformance.criteria import CRITERION_REGISTRY, LocationOptions, register_criterion
from imaging_conformance.conformance.exceptions import DataFetchError, EvaluationError, InvalidTrialCriteriaTypeError
from imaging_conformance.conformance.orchestrator import ConformanceCriteria, resolve_trial_criteria_type_id
from imaging_conformance.conformance.registry import get_evaluation_registry


def _max_targets(limit, message=None):
    criterion = {"criterion": "max_targets", "options": {"limit": limit}}
    if message:
        criterion["message"] = message
    return {"criteria": [criterion]}


@pytest.fixture
def populated_store(measurement_store, make_measurement):
    measurement_store.add(MeasurementKind.TARGETS, make_measurement(measurement_id="b1", measurement_number=1))
    measurement_store.add(
        MeasurementKind.TARGETS,
        make_measurement(measurement_id="f1", measurement_number=1, timepoint_id="T2"),
    )
    measurement_store.add(
        MeasurementKind.NON_TARGETS,
        make_measurement(measurement_id="n1", measurement_number=7, tool_type="nonTarget", location=None),
    )
    return measurement_store


async def test_unregistered_type_yields_nothing(criteria, populated_store):
    result = await criteria.validate(TrialCriteriaType(id="unknown"))

    assert result == []
    assert criteria.nonconformities.get() == []
    assert criteria.grouped_nonconformities.get() == {}
    assert criteria.max_targets.get() is None


@pytest.mark.parametrize("bad_type", [None, TrialCriteriaType(), {"name": "no id"}, "  "])
async def test_invalid_type_fails_before_fetch(criteria, populated_store, bad_type):
    populated_store.fetches.clear()

    with pytest.raises(InvalidTrialCriteriaTypeError):
        await criteria.validate(bad_type)
    assert populated_store.fetches == []


def test_type_id_resolution_is_case_insensitive():
    assert resolve_trial_criteria_type_id(TrialCriteriaType(id="RECIST")) == "recist"
    assert resolve_trial_criteria_type_id({"id": "iRRC"}) == "irrc"
    assert resolve_trial_criteria_type_id("Who") == "who"


async def test_results_concatenate_both_baseline_followup(criteria, registry, populated_store):
    registry.register("custom", {
        "baseline": _max_targets(0, "baseline"),
        "followup": _max_targets(0, "followup"),
        "both": _max_targets(0, "both"),
    })

    result = await criteria.validate(TrialCriteriaType(id="CUSTOM"))

    assert [nc.message for nc in result] == ["both", "baseline", "followup"]
    assert criteria.grouped_nonconformities.get()["globals"].messages == ["both", "baseline", "followup"]


async def test_both_scope_sees_merged_dataset(criteria, registry, populated_store):
    registry.register("custom", {
        "both": {"criteria": [{"criterion": "location", "options": {"kinds": ["nonTargets"]}}]},
        "baseline": {"criteria": [{"criterion": "new_measurements"}]},
    })

    result = await criteria.validate("custom")

    assert [nc.measurements[0].measurement_id for nc in result] == ["n1"]


async def test_max_targets_last_writer_wins(criteria, registry, populated_store):
    registry.register("custom", {
        "both": _max_targets(7),
        "baseline": [_max_targets(5), {"criteria": [{"criterion": "location"}]}, _max_targets(4)],
    })

    await criteria.validate("custom")
    assert criteria.max_targets.get() == 4

    registry.register("custom", {"both": _max_targets(7), "baseline": _max_targets(5), "followup": _max_targets(3)})
    await criteria.validate("custom")
    assert criteria.max_targets.get() == 3

    registry.register("custom", {"both": _max_targets(7)})
    await criteria.validate("custom")
    assert criteria.max_targets.get() == 7


async def test_max_targets_reset_each_run(criteria, registry, populated_store):
    registry.register("first", {"baseline": _max_targets(5)})
    await criteria.validate("first")
    assert criteria.max_targets.get() == 5

    await criteria.validate("unregistered")
    assert criteria.max_targets.get() is None


async def test_validate_is_idempotent(criteria, registry, populated_store):
    registry.register("custom", {
        "baseline": {"criteria": [{"criterion": "max_targets", "options": {"limit": 0}}, {"criterion": "location"}]},
    })

    first = await criteria.validate("custom")
    first_grouped = criteria.grouped_nonconformities.get()
    second = await criteria.validate("custom")

    assert first == second
    assert criteria.grouped_nonconformities.get() == first_grouped


async def test_fetch_failure_keeps_previous_outputs(criteria, registry, populated_store, make_measurement):
    registry.register("custom", {"baseline": _max_targets(0)})
    previous = await criteria.validate("custom")
    previous_grouped = criteria.grouped_nonconformities.get()

    populated_store.add(MeasurementKind.TARGETS, make_measurement(study_instance_uid="MISSING"))
    with pytest.raises(DataFetchError):
        await criteria.validate("custom")

    assert criteria.nonconformities.get() is previous
    assert criteria.grouped_nonconformities.get() is previous_grouped


async def test_failing_criterion_keeps_all_previous_outputs(criteria, registry, populated_store):
    @register_criterion("unstable", LocationOptions)
    def _unstable(options, data):
        raise RuntimeError("criterion crashed")

    try:
        registry.register("custom", {"baseline": _max_targets(5)})
        previous = await criteria.validate("custom")
        previous_grouped = criteria.grouped_nonconformities.get()
        assert criteria.max_targets.get() == 5

        registry.register("custom", {
            "both": _max_targets(9),
            "baseline": {"criteria": [{"criterion": "unstable"}]},
        })
        with pytest.raises(EvaluationError):
            await criteria.validate("custom")

        assert criteria.nonconformities.get() is previous
        assert criteria.grouped_nonconformities.get() is previous_grouped
        assert criteria.max_targets.get() == 5
    finally:
        CRITERION_REGISTRY.pop("unstable", None)


async def test_outputs_notify_subscribers(criteria, registry, populated_store):
    registry.register("custom", {"baseline": _max_targets(0)})
    seen = []
    criteria.grouped_nonconformities.subscribe(seen.append)

    await criteria.validate("custom")

    assert len(seen) == 1
    assert "globals" in seen[0]


async def test_builtin_recist_flags_small_target(measurement_store, timepoint_registry, metadata_service, make_measurement):
    criteria = ConformanceCriteria(measurement_store, timepoint_registry, metadata_service)
    small = make_measurement(long_axis=6.0, measurement_number=1)
    measurement_store.add(MeasurementKind.TARGETS, small)

    result = await criteria.validate(TrialCriteriaType(id="RECIST"))

    assert [nc.criterion for nc in result] == ["measurement_length"]
    assert criteria.max_targets.get() == 5
    assert criteria.grouped_nonconformities.get()["targets"].measurement_numbers[1].measurements == [small]


def test_set_evaluation_definitions_extends_global_registry():
    ConformanceCriteria.set_evaluation_definitions("Test-Static", {"baseline": _max_targets(2)})
    try:
        assert "test-static" in get_evaluation_registry()
    finally:
        get_evaluation_registry()._definitions.pop("test-static", None)
