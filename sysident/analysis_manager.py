"""Loading, preparing and fitting the data of a characterization run."""

from __future__ import annotations

import enum
import json
import logging
import math
import os
from collections.abc import Iterable, MutableMapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from .analysis_type import DRIVETRAIN, DRIVETRAIN_ANGULAR, AnalysisType, from_name
from .feedback import (
    FeedbackControllerLoopType,
    FeedbackGains,
    calculate_position_feedback_gains,
    calculate_velocity_feedback_gains,
)
from .feedforward import FeedforwardResult, calculate_feedforward_gains
from .filtering import (
    AnalysisSettings,
    InvalidDataError,
    PreparedData,
    Storage,
    accel_filter,
    initial_trim_and_filter,
)
from .json_converter import JSON_DATA_KEYS, convert_json
from .track_width import calculate_track_width

logger = logging.getLogger(__name__)

_Rows = list[list[float]]
_Prepared = MutableMapping[str, list[PreparedData]]

_GENERAL_SIZE = 4
_DRIVETRAIN_SIZE = 9


class DrivetrainDataset(enum.Enum):
    """Which side of a drivetrain a dataset describes."""

    COMBINED = 0
    LEFT = 1
    RIGHT = 2


class FileReadingError(OSError):
    """A data file could not be read."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Unable to read: {path}")
        self.path = path


@dataclass(frozen=True)
class FeedforwardGains:
    """Feedforward fit and, for angular drivetrain tests, the track width."""

    feedforward: FeedforwardResult
    track_width: float | None


def _load(path: str) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as handle:
            document = json.load(handle)
    except OSError as exc:
        raise FileReadingError(path) from exc
    logger.info("Read %s", path)
    return document


def _with_raw_copies(data: dict[str, _Rows]) -> dict[str, _Rows]:
    """Add untouched ``raw-`` and ``original-raw-`` copies of every test."""
    result = dict(data)
    for key, rows in data.items():
        if "raw" not in key:
            result[f"raw-{key}"] = [list(row) for row in rows]
            result[f"original-raw-{key}"] = [list(row) for row in rows]
    return result


def _to_prepared(rows: Sequence[Sequence[float]], time: int, voltage: int,
                 position: int, velocity: int) -> list[PreparedData]:
    return [
        PreparedData(
            timestamp=first[time],
            voltage=first[voltage],
            position=first[position],
            velocity=first[velocity],
            dt=second[time] - first[time],
        )
        for first, second in zip(rows, rows[1:])
    ]


def _combine(prepared: _Prepared, pattern: str,
             prefixes: Iterable[str] = ("",)) -> Storage:
    """Gather the four tests named by ``pattern``, joining the given sides."""
    prefixes = tuple(prefixes)
    return Storage(*(
        [replace(pt) for prefix in prefixes for pt in prepared[prefix + pattern.format(key)]]
        for key in JSON_DATA_KEYS
    ))


class AnalysisManager:
    """Prepares the recorded tests of a data file and fits gains to them."""

    def __init__(self, path: str | os.PathLike[str],
                 settings: AnalysisSettings | None = None) -> None:
        path = os.fspath(path)
        self.settings = settings if settings is not None else AnalysisSettings()

        self._json = _load(path)
        if "sysid" not in self._json:
            # Not in the current format: convert the legacy file first.
            self._json = _load(convert_json(path))

        logger.info("Parsing initial data of %s", path)
        self.type: AnalysisType = from_name(self._json["test"])
        self.unit: str = ""
        self.factor: float = 1.0
        self.reset_units_from_json()
        logger.debug("Parsing units per rotation as %s %s per rotation",
                     self.factor, self.unit)

        # Dynamic test limits are recomputed from the data.
        self.settings.step_test_duration = 0.0
        self.settings.motion_threshold = math.inf

        self.track_width: float | None = None
        self.position_delays: list[float] = []
        self.velocity_delays: list[float] = []
        self.min_step_time = 0.0
        self.max_step_time = 0.0
        self.start_times: tuple[float, ...] = ()
        self.original_datasets: dict[DrivetrainDataset, Storage] = {}
        self.raw_datasets: dict[DrivetrainDataset, Storage] = {}
        self.filtered_datasets: dict[DrivetrainDataset, Storage] = {}

    def _read_rows(self, size: int) -> dict[str, _Rows]:
        data: dict[str, _Rows] = {}
        for key in JSON_DATA_KEYS:
            rows = [[float(value) for value in row] for row in self._json[key]]
            if not rows:
                raise InvalidDataError(f"The {key} test holds no data.")
            if any(len(row) != size for row in rows):
                raise InvalidDataError(
                    f"Expected rows of {size} values in the {key} test."
                )
            data[key] = rows
        return data

    def _trim_and_filter(self, prepared: _Prepared, unit: str = "") -> None:
        (self.position_delays, self.velocity_delays,
         self.min_step_time, self.max_step_time) = initial_trim_and_filter(
            prepared, self.settings, unit
        )

    def _prepare_general_data(self) -> None:
        time, voltage, position, velocity = range(4)

        logger.info("Reading JSON data.")
        data = self._read_rows(_GENERAL_SIZE)

        logger.info("Preprocessing raw data.")
        for rows in data.values():
            for pt in rows:
                pt[voltage] = math.copysign(pt[voltage], pt[velocity])
                pt[position] *= self.factor
                pt[velocity] *= self.factor

        logger.info("Copying raw data.")
        data = _with_raw_copies(data)

        prepared = {
            key: _to_prepared(rows, time, voltage, position, velocity)
            for key, rows in data.items()
        }
        self.original_datasets[DrivetrainDataset.COMBINED] = _combine(
            prepared, "original-raw-{}"
        )

        logger.info("Initial trimming and filtering.")
        self._trim_and_filter(prepared, self.unit)

        logger.info("Acceleration filtering.")
        accel_filter(prepared)

        self.raw_datasets[DrivetrainDataset.COMBINED] = _combine(prepared, "raw-{}")
        self.filtered_datasets[DrivetrainDataset.COMBINED] = _combine(prepared, "{}")
        self.start_times = tuple(
            prepared[f"raw-{key}"][0].timestamp for key in JSON_DATA_KEYS
        )

    def _prepare_angular_drivetrain_data(self) -> None:
        time, l_voltage, r_voltage, l_pos, r_pos, l_vel, r_vel, angle, rate = range(9)

        logger.info("Reading JSON data.")
        data = self._read_rows(_DRIVETRAIN_SIZE)

        logger.info("Preprocessing raw data.")
        for rows in data.values():
            for pt in rows:
                for column in (l_pos, r_pos, l_vel, r_vel):
                    pt[column] *= self.factor
                # The average voltage goes in the left column, signed to match
                # the direction the robot turns.
                pt[l_voltage] = math.copysign(
                    (abs(pt[l_voltage]) + abs(pt[r_voltage])) / 2, pt[rate]
                )
                # Wheel speed about the centre: (v_r - v_l) / 2, with the
                # wheels turning in opposite directions.
                pt[rate] = math.copysign((abs(pt[r_vel]) + abs(pt[l_vel])) / 2, pt[rate])

        logger.info("Calculating trackwidth")
        left_delta = sum(abs(rows[-1][l_pos] - rows[0][l_pos]) for rows in data.values())
        right_delta = sum(abs(rows[-1][r_pos] - rows[0][r_pos]) for rows in data.values())
        angle_delta = sum(abs(rows[-1][angle] - rows[0][angle]) for rows in data.values())
        self.track_width = calculate_track_width(left_delta, right_delta, angle_delta)

        logger.info("Copying raw data.")
        data = _with_raw_copies(data)

        prepared = {
            key: _to_prepared(rows, time, l_voltage, angle, rate)
            for key, rows in data.items()
        }
        self.original_datasets[DrivetrainDataset.COMBINED] = _combine(
            prepared, "original-raw-{}"
        )

        logger.info("Applying trimming and filtering.")
        self._trim_and_filter(prepared)

        logger.info("Acceleration filtering.")
        accel_filter(prepared)

        self.raw_datasets[DrivetrainDataset.COMBINED] = _combine(prepared, "raw-{}")
        self.filtered_datasets[DrivetrainDataset.COMBINED] = _combine(prepared, "{}")
        self.start_times = tuple(prepared[key][0].timestamp for key in JSON_DATA_KEYS)

    def _prepare_linear_drivetrain_data(self) -> None:
        time, l_voltage, r_voltage, l_pos, r_pos, l_vel, r_vel = range(7)

        logger.info("Reading JSON data.")
        data = self._read_rows(_DRIVETRAIN_SIZE)

        logger.info("Preprocessing raw data.")
        for rows in data.values():
            for pt in rows:
                pt[l_voltage] = math.copysign(pt[l_voltage], pt[l_vel])
                pt[r_voltage] = math.copysign(pt[r_voltage], pt[r_vel])
                for column in (l_pos, r_pos, l_vel, r_vel):
                    pt[column] *= self.factor

        logger.info("Copying raw data.")
        data = _with_raw_copies(data)

        prepared: dict[str, list[PreparedData]] = {}
        for key, rows in data.items():
            prepared[f"left-{key}"] = _to_prepared(rows, time, l_voltage, l_pos, l_vel)
            prepared[f"right-{key}"] = _to_prepared(rows, time, r_voltage, r_pos, r_vel)

        both = ("left-", "right-")
        self.original_datasets = {
            DrivetrainDataset.COMBINED: _combine(prepared, "original-raw-{}", both),
            DrivetrainDataset.LEFT: _combine(prepared, "original-raw-{}", ("left-",)),
            DrivetrainDataset.RIGHT: _combine(prepared, "original-raw-{}", ("right-",)),
        }

        logger.info("Applying trimming and filtering.")
        self._trim_and_filter(prepared)

        # The combined filtered data is gathered before acceleration filtering.
        combined_filtered = _combine(prepared, "{}", both)

        logger.info("Acceleration filtering.")
        accel_filter(prepared)

        raw_combined = _combine(prepared, "raw-{}", both)
        self.raw_datasets = {
            DrivetrainDataset.COMBINED: raw_combined,
            DrivetrainDataset.LEFT: _combine(prepared, "raw-{}", ("left-",)),
            DrivetrainDataset.RIGHT: _combine(prepared, "raw-{}", ("right-",)),
        }
        self.filtered_datasets = {
            DrivetrainDataset.COMBINED: combined_filtered,
            DrivetrainDataset.LEFT: _combine(prepared, "{}", ("left-",)),
            DrivetrainDataset.RIGHT: _combine(prepared, "{}", ("right-",)),
        }
        self.start_times = tuple(dataset[0].timestamp for dataset in raw_combined)

    def prepare_data(self) -> None:
        """Trim, filter and differentiate the recorded tests."""
        logger.info("Preparing %s data", self.type.name)
        if self.type == DRIVETRAIN:
            self._prepare_linear_drivetrain_data()
        elif self.type == DRIVETRAIN_ANGULAR:
            self._prepare_angular_drivetrain_data()
        else:
            self._prepare_general_data()
        logger.info("Finished Preparing Data")

    def filtered_data(self, dataset: DrivetrainDataset = DrivetrainDataset.COMBINED) -> Storage:
        """Return the filtered tests of one side, or of both combined."""
        try:
            return self.filtered_datasets[dataset]
        except KeyError:
            raise InvalidDataError(
                f"No filtered data is available for the {dataset.name.lower()} dataset."
            ) from None

    def calculate_feedforward(self) -> FeedforwardGains:
        """Fit the feedforward gains to the filtered data."""
        if not self.filtered_datasets:
            raise InvalidDataError("There is no data to perform gain calculation on.")

        logger.info("Calculating Gains")
        result = calculate_feedforward_gains(self.filtered_data(), self.type)
        ks, kv, ka = result.gains[:3]
        if ka <= 0 or kv < 0:
            raise InvalidDataError(
                f"The calculated feedforward gains of kS: {ks}, Kv: {kv}, Ka: {ka} "
                "are erroneous. Your Ka should be > 0 while your Kv and Ks constants "
                "should both >= 0. Try adjusting the filtering and trimming settings "
                "or collect better data."
            )
        return FeedforwardGains(result, self.track_width)

    def calculate_feedback(self, ff: Sequence[float]) -> FeedbackGains:
        """Compute feedback gains from feedforward gains ``[Ks, Kv, Ka, ...]``."""
        kv, ka = ff[1], ff[2]
        settings = self.settings
        enc_factor = (
            settings.gearing * settings.cpr * self.factor
            if settings.convert_gains_to_enc_ticks
            else 1.0
        )
        if settings.type == FeedbackControllerLoopType.POSITION:
            return calculate_position_feedback_gains(
                settings.preset, settings.lqr, kv, ka, enc_factor
            )
        return calculate_velocity_feedback_gains(
            settings.preset, settings.lqr, kv, ka, enc_factor
        )

    def override_units(self, unit: str, units_per_rotation: float) -> None:
        """Use other output units than the ones stored in the file."""
        self.unit = unit
        self.factor = units_per_rotation

    def reset_units_from_json(self) -> None:
        """Restore the output units stored in the file."""
        self.unit = str(self._json["units"])
        self.factor = float(self._json["unitsPerRotation"])