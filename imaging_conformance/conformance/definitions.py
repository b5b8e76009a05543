"""Built-in evaluation definitions and loading of definitions from disk.

Definitions shipped here cover RECIST 1.1 and irRC. Additional or replacement
definitions are read from JSON files in the configured definitions directory;
the lower-cased file stem is the trial criteria type key
(``data/definitions/recist.json`` overrides ``recist``).
"""

import json
from pathlib import Path
from typing import Dict, Union

from pydantic import ValidationError

from imaging_conformance.models import EvaluationDefinition
from imaging_conformance.config.logging_config import get_logger

logger = get_logger(__name__)

TARGET_TOOLS = ["bidirectional", "targetCR", "targetUN", "targetEX"]
NON_TARGET_TOOLS = ["nonTarget"]
NON_TARGET_RESPONSES = ["CR", "Non-CR/Non-PD", "PD", "NE", "EX"]

RECIST = {
    "baseline": {
        "name": "recist-baseline",
        "criteria": [
            {"criterion": "max_targets", "options": {"limit": 5}},
            {"criterion": "targets_per_organ", "options": {"limit": 2}},
            {
                "criterion": "measurement_length",
                "options": {
                    "long_axis_min": 10,
                    "short_axis_min": 15,
                    "long_axis_slice_thickness_multiplier": 2,
                },
            },
            {"criterion": "modality", "options": {"method": "allow", "modalities": ["CT", "MR"]}},
            {"criterion": "location"},
            {"criterion": "tool_type", "options": {"targets": ["bidirectional"], "non_targets": NON_TARGET_TOOLS}},
        ],
    },
    "followup": {
        "name": "recist-followup",
        "criteria": [
            {"criterion": "modality", "options": {"method": "allow", "modalities": ["CT", "MR"]}},
            {"criterion": "location"},
            {"criterion": "tool_type", "options": {"targets": TARGET_TOOLS, "non_targets": NON_TARGET_TOOLS}},
            {"criterion": "non_target_response", "options": {"responses": NON_TARGET_RESPONSES}},
        ],
    },
    "both": {
        "name": "recist-both",
        "criteria": [
            {"criterion": "new_measurements", "options": {"kinds": ["targets"]}},
        ],
    },
}

IRRC = {
    "baseline": {
        "name": "irrc-baseline",
        "criteria": [
            {"criterion": "max_targets", "options": {"limit": 10}},
            {"criterion": "targets_per_organ", "options": {"limit": 5}},
            {
                "criterion": "measurement_length",
                "options": {"long_axis_min": 10, "short_axis_min": 15},
            },
            {"criterion": "location"},
        ],
    },
    "followup": {
        "name": "irrc-followup",
        "criteria": [
            {"criterion": "location"},
            {"criterion": "tool_type", "options": {"targets": TARGET_TOOLS, "non_targets": NON_TARGET_TOOLS}},
        ],
    },
    "both": {
        "name": "irrc-both",
        "criteria": [
            {"criterion": "max_targets", "options": {"limit": 10, "new_target": True}},
        ],
    },
}

BUILTIN_DEFINITIONS: Dict[str, dict] = {
    "recist": RECIST,
    "irrc": IRRC,
}


def builtin_definitions() -> Dict[str, EvaluationDefinition]:
    return {
        key: EvaluationDefinition.model_validate(raw)
        for key, raw in BUILTIN_DEFINITIONS.items()
    }


def load_definitions_dir(path: Union[str, Path]) -> Dict[str, EvaluationDefinition]:
    """Load every ``*.json`` evaluation definition in ``path``; invalid files are skipped."""
    definitions_dir = Path(path)
    if not definitions_dir.is_dir():
        logger.debug("Definitions directory not found", path=str(definitions_dir))
        return {}

    definitions: Dict[str, EvaluationDefinition] = {}
    for file_path in sorted(definitions_dir.glob("*.json")):
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            definitions[file_path.stem.lower()] = EvaluationDefinition.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Could not load evaluation definition", path=str(file_path), error=str(e))
            continue
        logger.info("Loaded evaluation definition", key=file_path.stem.lower(), path=str(file_path))
    return definitions
