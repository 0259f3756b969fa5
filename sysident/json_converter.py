"""Conversion of recorded data files to the current format and to CSV."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from typing import Any

from .analysis_type import DRIVETRAIN, DRIVETRAIN_ANGULAR, from_name
from .util import get_abbreviation, save_file

logger = logging.getLogger(__name__)

#: Names of the four tests stored in a data file, in recording order.
JSON_DATA_KEYS = ("slow-forward", "slow-backward", "fast-forward", "fast-backward")

_LEGACY_SIZE = 10
_DRIVETRAIN_SIZE = 9
_GENERAL_SIZE = 4

# Columns of the legacy data rows.
_TIMESTAMP_COL = 0
_L_VOLTS_COL = 3
_R_VOLTS_COL = 4
_L_POS_COL = 5
_R_POS_COL = 6
_L_VEL_COL = 7
_R_VEL_COL = 8

_SUFFIX_LENGTH = len(".json")


def _read_json(path: str) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as handle:
            document = json.load(handle)
    except OSError as exc:
        raise OSError(f"Unable to read: {path}") from exc
    logger.info("Read JSON from %s", path)
    return document


def _rows(document: dict[str, Any], key: str, size: int) -> list[list[float]]:
    rows = [[float(value) for value in row] for row in document[key]]
    for row in rows:
        if len(row) != size:
            raise ValueError(
                f"Expected rows of {size} values in '{key}', got a row of {len(row)}."
            )
    return rows


def _strip_suffix(path: str) -> str:
    return path[:-_SUFFIX_LENGTH]


def _format_number(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def _csv_line(fields: Sequence[object]) -> str:
    return ",".join(
        field if isinstance(field, str) else _format_number(field) for field in fields
    ) + "\n"


def convert_json(path: str | os.PathLike[str]) -> str:
    """Convert a legacy data file to the current format.

    The result is written next to the input with ``_new`` appended to its
    name, and its path is returned.
    """
    path = os.fspath(path)
    old = _read_json(path)

    analysis_type = from_name(old["test"])
    factor = float(old["unitsPerRotation"])
    unit = str(old["units"])

    document: dict[str, Any] = {}
    for key in JSON_DATA_KEYS:
        rows = _rows(old, key, _LEGACY_SIZE)
        if analysis_type == DRIVETRAIN:
            document[key] = [
                [
                    pt[_TIMESTAMP_COL], pt[_L_VOLTS_COL], pt[_R_VOLTS_COL],
                    pt[_L_POS_COL], pt[_R_POS_COL], pt[_L_VEL_COL], pt[_R_VEL_COL],
                    0.0, 0.0,
                ]
                for pt in rows
            ]
        else:
            document[key] = [
                [pt[_TIMESTAMP_COL], pt[_L_VOLTS_COL], pt[_L_POS_COL], pt[_L_VEL_COL]]
                for pt in rows
            ]

    document["units"] = unit
    document["unitsPerRotation"] = factor
    document["test"] = analysis_type.name
    document["sysid"] = True

    location = f"{_strip_suffix(path)}_new.json"
    save_file(json.dumps(document, indent=2, sort_keys=True), location)
    logger.info("Wrote new JSON to: %s", location)
    return location


def to_csv(path: str | os.PathLike[str]) -> str:
    """Write the data of a data file as CSV and return the CSV's path.

    Positions and velocities are scaled to output units.
    """
    path = os.fspath(path)
    document = _read_json(path)

    analysis_type = from_name(document["test"])
    factor = float(document["unitsPerRotation"])
    unit = str(document["units"])
    abbreviation = get_abbreviation(unit)
    is_drivetrain = analysis_type in (DRIVETRAIN, DRIVETRAIN_ANGULAR)

    lines = ["Timestamp (s),Test,"]
    if is_drivetrain:
        lines.append(
            f"Left Volts (V),Right Volts (V),Left Position ({abbreviation}),Right "
            f"Position ({abbreviation}),Left Velocity ({abbreviation}/s),Right "
            f"Velocity ({abbreviation}/s),Gyro Position (deg),Gyro Rate (deg/s)\n"
        )
    else:
        lines.append(
            f"Volts (V),Position({abbreviation}),Velocity ({abbreviation}/s)\n"
        )
    lines.append("\n")

    for key in JSON_DATA_KEYS:
        if is_drivetrain:
            for pt in _rows(document, key, _DRIVETRAIN_SIZE):
                lines.append(_csv_line((
                    pt[0], key, pt[1], pt[2],
                    pt[3] * factor, pt[4] * factor,
                    pt[5] * factor, pt[6] * factor,
                    pt[7], pt[8],
                )))
        else:
            for pt in _rows(document, key, _GENERAL_SIZE):
                lines.append(_csv_line((pt[0], key, pt[1], pt[2] * factor, pt[3] * factor)))

    location = f"{_strip_suffix(path)} ({analysis_type.name}, {unit}).csv"
    try:
        with open(location, "w", encoding="utf-8", newline="") as output:
            output.writelines(lines)
    except OSError as exc:
        raise OSError(f"Unable to write to: {location}") from exc
    logger.info("Wrote CSV to: %s", location)
    return location