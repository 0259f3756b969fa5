"""Trimming, filtering and derivative estimation for characterization data."""

from __future__ import annotations

import math
import statistics
from collections import deque
from collections.abc import Callable, Iterator, MutableMapping, Sequence
from dataclasses import dataclass, field
from itertools import chain

from .feedback import FeedbackControllerLoopType, FeedbackControllerPreset, LQRParameters

#: Window of the moving average used when estimating a noise floor.
NOISE_MEAN_WINDOW = 9

_ACCEL_WINDOW = 3
_MAX_VALID_DT = 0.5

_RADIANS_PER_UNIT = {
    "Radians": 1.0,
    "Degrees": math.pi / 180.0,
    "Rotations": 2.0 * math.pi,
}


class InvalidDataError(Exception):
    """The data cannot be analysed."""


class NoQuasistaticDataError(InvalidDataError):
    """Trimming removed every point of a quasistatic test."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "Quasistatic test trimming removed all data. Please adjust your "
            "motion threshold and double check you have quasistatic test data."
        )


class NoDynamicDataError(InvalidDataError):
    """Trimming removed every point of a dynamic test."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "Dynamic test trimming removed all data. Please adjust your test "
            "duration and double check you have dynamic test data."
        )


@dataclass
class PreparedData:
    """One sample of a test; ``timestamp`` and ``dt`` are in seconds."""

    timestamp: float
    voltage: float
    position: float
    velocity: float
    dt: float = 0.0
    acceleration: float = 0.0
    cos: float = 0.0
    sin: float = 0.0


@dataclass
class Storage:
    """The four tests of a characterization run."""

    slow_forward: list[PreparedData] = field(default_factory=list)
    slow_backward: list[PreparedData] = field(default_factory=list)
    fast_forward: list[PreparedData] = field(default_factory=list)
    fast_backward: list[PreparedData] = field(default_factory=list)

    def __iter__(self) -> Iterator[list[PreparedData]]:
        return iter(
            (self.slow_forward, self.slow_backward, self.fast_forward, self.fast_backward)
        )


def _default_preset() -> FeedbackControllerPreset:
    return FeedbackControllerPreset(1.0, 1.0, 0.02, True, 0.0)


def _default_lqr() -> LQRParameters:
    return LQRParameters(1.0, 1.5, 7.0)


@dataclass
class AnalysisSettings:
    """User-adjustable settings of an analysis.

    ``motion_threshold`` and ``step_test_duration`` are recomputed from the
    data while they hold their defaults.
    """

    preset: FeedbackControllerPreset = field(default_factory=_default_preset)
    lqr: LQRParameters = field(default_factory=_default_lqr)
    type: FeedbackControllerLoopType = FeedbackControllerLoopType.VELOCITY
    median_window: int = 1
    convert_gains_to_enc_ticks: bool = False
    gearing: float = 1.0
    cpr: float = 1440.0
    motion_threshold: float = math.inf
    step_test_duration: float = 0.0


@dataclass(frozen=True)
class TrimResult:
    """Outcome of trimming a dynamic test, all in seconds."""

    min_step_time: float
    position_delay: float
    velocity_delay: float


def _check_size(data: Sequence[PreparedData], window: int, operation: str) -> None:
    if len(data) < window:
        raise InvalidDataError(
            f"Not enough data to run {operation} which has a window size of {window}."
        )


def _is_raw(key: str) -> bool:
    return "raw" in key and "original" not in key


def _is_filtered(key: str) -> bool:
    return "raw" not in key and "original" not in key


def _prepare_mech_data(data: list[PreparedData], unit: str = "") -> None:
    """Fill in trigonometric terms and accelerations of a dataset."""
    _check_size(data, _ACCEL_WINDOW, "Acceleration Calculation")

    factor = _RADIANS_PER_UNIT.get(unit)
    for pt in data:
        if factor is None:
            pt.cos = pt.sin = 0.0
        else:
            angle = pt.position * factor
            pt.cos = math.cos(angle)
            pt.sin = math.sin(angle)

    h = get_mean_time_delta(data)
    velocities = [pt.velocity for pt in data]
    # Central difference; the first sample stands in for the one before it.
    previous = [velocities[0], *velocities[:-1]]
    for pt, before, after in zip(data, previous, velocities[1:]):
        pt.acceleration = (after - before) / (2.0 * h)
    data[-1].acceleration = 0.0


def get_noise_floor(
    data: Sequence[PreparedData],
    window: int,
    accessor: Callable[[PreparedData], float],
) -> float:
    """Estimate the RMS deviation of a quantity from its moving average."""
    step = window // 2
    values = [accessor(pt) for pt in data]
    if len(values) <= step:
        raise InvalidDataError(
            f"Not enough data to estimate a noise floor with a window of {window}."
        )
    history = deque([0.0] * window, maxlen=window)
    total = 0.0
    for i, value in enumerate(values):
        history.append(value)
        mean = sum(history) / window
        if i >= step:
            total += (values[i - step] - mean) ** 2
    return math.sqrt(total / (len(values) - step))


def get_mean_time_delta(data: Storage | Sequence[PreparedData]) -> float:
    """Mean sample period, ignoring non-positive and over-long gaps."""
    points = chain.from_iterable(data) if isinstance(data, Storage) else data
    dts = [pt.dt for pt in points if 0.0 < pt.dt < _MAX_VALID_DT]
    return sum(dts) / len(dts) if dts else math.nan


def apply_median_filter(data: list[PreparedData], window: int) -> None:
    """Replace velocities in place with their centred running median."""
    _check_size(data, window, "Median Filter")

    original = [pt.velocity for pt in data]
    history = deque([original[0]] * window, maxlen=window)
    half = (window - 1) // 2

    for target, value in zip(data, original[half:]):
        history.append(value)
        target.velocity = statistics.median(history)

    # Finish the last half window by repeating the final recorded velocity.
    for target in data[len(data) - half:]:
        history.append(original[-1])
        target.velocity = statistics.median(history)


def trim_step_voltage_data(
    data: list[PreparedData],
    settings: AnalysisSettings,
    min_step_time: float,
    max_step_time: float,
) -> TrimResult:
    """Trim a dynamic test in place to start at peak acceleration.

    Sets ``settings.step_test_duration`` when it has not been chosen yet.
    """
    voltage_begins = next((pt for pt in data if abs(pt.voltage) > 0), None)
    if voltage_begins is None:
        raise InvalidDataError("No voltage was applied during the dynamic test.")
    first_timestamp = voltage_begins.timestamp
    first_position = voltage_begins.position

    motion_begins = next(
        (
            pt
            for pt in data
            if abs(pt.position - first_position) > settings.motion_threshold * pt.dt
        ),
        None,
    )
    if motion_begins is None:
        raise InvalidDataError("No motion was detected during the dynamic test.")

    peak_index, peak = max(enumerate(data), key=lambda item: abs(item[1].acceleration))

    position_delay = motion_begins.timestamp - first_timestamp
    velocity_delay = peak.timestamp - first_timestamp

    del data[:peak_index]

    min_step_time = min(data[0].timestamp - first_timestamp, min_step_time)

    if settings.step_test_duration <= min_step_time:
        noise_floor = get_noise_floor(
            data, NOISE_MEAN_WINDOW, lambda pt: pt.acceleration
        )
        last_moving = next(
            (pt for pt in reversed(data) if abs(pt.acceleration) > noise_floor), None
        )
        if last_moving is not None:
            settings.step_test_duration = min(
                last_moving.timestamp - data[0].timestamp + min_step_time + 1.0,
                max_step_time,
            )
        else:
            settings.step_test_duration = max_step_time

    start = data[0].timestamp
    cut = next(
        (
            i
            for i, pt in enumerate(data)
            if pt.timestamp - start + min_step_time > settings.step_test_duration
        ),
        None,
    )
    if cut is not None:
        del data[cut:]

    return TrimResult(min_step_time, position_delay, velocity_delay)


def _get_max_step_time(data: MutableMapping[str, list[PreparedData]]) -> float:
    durations = (
        dataset[-1].timestamp - dataset[0].timestamp
        for key, dataset in data.items()
        if _is_raw(key) and "fast" in key and dataset
    )
    return max(durations, default=0.0)


def initial_trim_and_filter(
    data: MutableMapping[str, list[PreparedData]],
    settings: AnalysisSettings,
    unit: str = "",
) -> tuple[list[float], list[float], float, float]:
    """Trim, filter and differentiate every dataset in place.

    Returns the position delays, the velocity delays, the minimum step time
    and the maximum step time of the dynamic tests.
    """
    max_step_time = _get_max_step_time(data)
    min_step_time = 0.0

    if settings.motion_threshold == math.inf:
        for key, dataset in data.items():
            if "slow" in key:
                settings.motion_threshold = min(
                    settings.motion_threshold,
                    get_noise_floor(dataset, NOISE_MEAN_WINDOW, lambda pt: pt.velocity),
                )

    position_delays: list[float] = []
    velocity_delays: list[float] = []

    for key, dataset in data.items():
        if "slow" in key:
            dataset[:] = [
                pt
                for pt in dataset
                if abs(pt.voltage) > 0 and abs(pt.velocity) >= settings.motion_threshold
            ]
            if not dataset:
                raise NoQuasistaticDataError()

        if _is_filtered(key) and settings.median_window > 1:
            apply_median_filter(dataset, settings.median_window)

        _prepare_mech_data(dataset, unit)

        if _is_filtered(key) and "fast" in key:
            result = trim_step_voltage_data(dataset, settings, min_step_time, max_step_time)
            position_delays.append(result.position_delay)
            velocity_delays.append(result.velocity_delay)
            if not dataset:
                raise NoDynamicDataError()

    return position_delays, velocity_delays, min_step_time, max_step_time


def accel_filter(data: MutableMapping[str, list[PreparedData]]) -> None:
    """Drop points with zero acceleration from every dataset in place."""
    for dataset in data.values():
        dataset[:] = [pt for pt in dataset if pt.acceleration != 0.0]

    if any(not dataset for dataset in data.values()):
        raise InvalidDataError("Acceleration filtering has removed all data.")