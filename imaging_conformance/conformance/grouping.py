"""Nonconformity Grouping: flat violations -> tool group / measurement number tree.

    {
        "globals": {"messages": ["..."]},
        "targets": {"measurement_numbers": {3: {"messages": [...], "measurements": [...]}}},
    }

A nonconformity referencing several measurements contributes its message once
per group/measurement-number pair it touches. No message is ever dropped:
tool types missing from the mapping group under their own name. A tool group
that would be named "globals" is published as "tool:globals" instead.
"""

from typing import Dict, Iterable, Mapping

from imaging_conformance.models import (
    GLOBALS_GROUP,
    GlobalNonconformityGroup,
    GroupedNonConformities,
    MeasurementNumberGroup,
    Nonconformity,
    ToolGroup,
)

# tool type -> tool group name
DEFAULT_TOOL_GROUPS: Dict[str, str] = {
    "bidirectional": "targets",
    "targetCR": "targets",
    "targetUN": "targets",
    "targetEX": "targets",
    "nonTarget": "nonTargets",
    "length": "temp",
    "ellipticalRoi": "temp",
}

RESERVED_GROUP_PREFIX = "tool:"


def tool_group_name(tool_type: str, tool_groups: Mapping[str, str] = DEFAULT_TOOL_GROUPS) -> str:
    group_name = tool_groups.get(tool_type, tool_type)
    if group_name == GLOBALS_GROUP:
        return RESERVED_GROUP_PREFIX + group_name
    return group_name


def group_nonconformities(
    nonconformities: Iterable[Nonconformity],
    tool_groups: Mapping[str, str] = DEFAULT_TOOL_GROUPS,
) -> GroupedNonConformities:
    groups: GroupedNonConformities = {}

    for nonconformity in nonconformities:
        if nonconformity.is_global:
            globals_group = groups.setdefault(GLOBALS_GROUP, GlobalNonconformityGroup())
            globals_group.messages.append(nonconformity.message)
            continue

        for measurement in nonconformity.measurements:
            group_name = tool_group_name(measurement.tool_type, tool_groups)
            group = groups.setdefault(group_name, ToolGroup())
            entry = group.measurement_numbers.setdefault(
                measurement.measurement_number, MeasurementNumberGroup()
            )
            entry.messages.append(nonconformity.message)
            entry.measurements.append(measurement)

    return groups


def grouped_to_dict(groups: GroupedNonConformities) -> dict:
    """JSON-ready form of a grouped structure."""
    return {name: group.model_dump(mode="json") for name, group in groups.items()}
