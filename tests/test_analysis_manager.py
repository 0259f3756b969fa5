import json
import math
import os

import pytest

from sysident.analysis_manager import (
    AnalysisManager,
    DrivetrainDataset,
    FileReadingError,
)
from sysident.analysis_type import DRIVETRAIN, SIMPLE
from sysident.feedback import (
    FeedbackControllerLoopType,
    calculate_position_feedback_gains,
    calculate_velocity_feedback_gains,
)
from sysident.filtering import AnalysisSettings, InvalidDataError
from sysident.simulation import SimpleMotorSim

KV = 1.98
KA = 0.2
TRACK_WIDTH = 0.762
DT = 0.005
SLOW_SECONDS = 3.0
FAST_SECONDS = 2.0


def _run(voltage_at, duration):
    sim = SimpleMotorSim(0.0, KV, KA, 0.0, 0.0)
    rows = []
    for i in range(round(duration / DT)):
        t = i * DT
        volts = voltage_at(t)
        rows.append((t, volts, sim.position, sim.velocity))
        sim.update(volts, DT)
    return rows


@pytest.fixture(scope="module")
def runs():
    return {
        "slow-forward": _run(lambda t: 0.75 * t, SLOW_SECONDS),
        "slow-backward": _run(lambda t: -0.75 * t, SLOW_SECONDS),
        "fast-forward": _run(lambda t: 4.0, FAST_SECONDS),
        "fast-backward": _run(lambda t: -4.0, FAST_SECONDS),
    }


def _write(path, test, runs, row_fn, sysid=True, units="Meters", units_per_rotation=1.0):
    document = {key: [row_fn(*row) for row in rows] for key, rows in runs.items()}
    document["test"] = test
    document["units"] = units
    document["unitsPerRotation"] = units_per_rotation
    if sysid:
        document["sysid"] = True
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def _general_row(t, v, p, vel):
    return [t, v, p, vel]


def _linear_row(t, v, p, vel):
    return [t, v, v, p, p, vel, vel, 0.0, 0.0]


def _angular_row(t, v, p, vel):
    return [t, -v, v, -p, p, -vel, vel, 2 * p / TRACK_WIDTH, 2 * vel / TRACK_WIDTH]


def _legacy_row(t, v, p, vel):
    return [t, 0.0, 0.0, v, v, p, p, vel, vel, 0.0]


@pytest.fixture
def simple_path(tmp_path, runs):
    return _write(tmp_path / "simple.json", "Simple", runs, _general_row)


def test_simple_mechanism_gains(simple_path):
    manager = AnalysisManager(simple_path, AnalysisSettings())
    manager.prepare_data()
    result = manager.calculate_feedforward()
    gains = result.feedforward.gains
    assert len(gains) == 3
    assert gains[1] == pytest.approx(KV, rel=0.05)
    assert gains[2] == pytest.approx(KA, rel=0.05)
    assert result.track_width is None


def test_reads_type_and_units(simple_path):
    manager = AnalysisManager(simple_path, AnalysisSettings())
    assert manager.type == SIMPLE
    assert manager.unit == "Meters"
    assert manager.factor == 1.0


def test_constructor_resets_dynamic_limits(simple_path):
    settings = AnalysisSettings(motion_threshold=0.5, step_test_duration=3.0)
    AnalysisManager(simple_path, settings)
    assert settings.motion_threshold == math.inf
    assert settings.step_test_duration == 0.0


def test_override_and_reset_units(simple_path):
    manager = AnalysisManager(simple_path, AnalysisSettings())
    manager.override_units("Feet", 3.5)
    assert (manager.unit, manager.factor) == ("Feet", 3.5)
    manager.reset_units_from_json()
    assert (manager.unit, manager.factor) == ("Meters", 1.0)


def test_feedforward_without_prepared_data_raises(simple_path):
    manager = AnalysisManager(simple_path, AnalysisSettings())
    with pytest.raises(InvalidDataError):
        manager.calculate_feedforward()


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileReadingError):
        AnalysisManager(tmp_path / "absent.json", AnalysisSettings())


def test_original_data_keeps_every_sample(simple_path, runs):
    manager = AnalysisManager(simple_path, AnalysisSettings())
    manager.prepare_data()
    original = manager.original_datasets[DrivetrainDataset.COMBINED]
    assert len(original.slow_forward) == len(runs["slow-forward"]) - 1
    assert len(original.fast_backward) == len(runs["fast-backward"]) - 1
    assert original.fast_forward[5].timestamp == runs["fast-forward"][5][0]


def test_units_factor_scales_positions(tmp_path, runs):
    path = _write(tmp_path / "scaled.json", "Simple", runs, _general_row,
                  units_per_rotation=2.0)
    manager = AnalysisManager(path, AnalysisSettings())
    manager.prepare_data()
    original = manager.original_datasets[DrivetrainDataset.COMBINED]
    assert original.fast_forward[5].position == pytest.approx(2.0 * runs["fast-forward"][5][2])
    assert original.fast_forward[5].velocity == pytest.approx(2.0 * runs["fast-forward"][5][3])


def test_side_dataset_unavailable_for_simple(simple_path):
    manager = AnalysisManager(simple_path, AnalysisSettings())
    manager.prepare_data()
    with pytest.raises(InvalidDataError):
        manager.filtered_data(DrivetrainDataset.LEFT)


def test_linear_drivetrain(tmp_path, runs):
    path = _write(tmp_path / "drive.json", "Drivetrain", runs, _linear_row)
    manager = AnalysisManager(path, AnalysisSettings())
    assert manager.type == DRIVETRAIN
    manager.prepare_data()

    gains = manager.calculate_feedforward().feedforward.gains
    assert gains[1] == pytest.approx(KV, rel=0.05)
    assert gains[2] == pytest.approx(KA, rel=0.05)

    raw = manager.raw_datasets
    for combined, left, right in zip(raw[DrivetrainDataset.COMBINED],
                                     raw[DrivetrainDataset.LEFT],
                                     raw[DrivetrainDataset.RIGHT]):
        assert len(combined) == len(left) + len(right)
    assert manager.start_times == tuple(
        dataset[0].timestamp for dataset in raw[DrivetrainDataset.COMBINED]
    )
    assert len(manager.filtered_data(DrivetrainDataset.LEFT).fast_forward) > 0


def test_angular_drivetrain_track_width(tmp_path, runs):
    path = _write(tmp_path / "angular.json", "Drivetrain (Angular)", runs, _angular_row)
    manager = AnalysisManager(path, AnalysisSettings())
    manager.prepare_data()
    assert manager.track_width == pytest.approx(TRACK_WIDTH, rel=1e-9)

    result = manager.calculate_feedforward()
    assert result.track_width == manager.track_width
    assert result.feedforward.gains[1] == pytest.approx(KV, rel=0.05)
    assert result.feedforward.gains[2] == pytest.approx(KA, rel=0.05)


def test_legacy_file_is_converted(tmp_path, runs, simple_path):
    legacy = _write(tmp_path / "legacy.json", "Simple", runs, _legacy_row, sysid=False)
    manager = AnalysisManager(legacy, AnalysisSettings())
    assert os.path.exists(tmp_path / "legacy_new.json")
    assert manager.type == SIMPLE
    manager.prepare_data()

    reference = AnalysisManager(simple_path, AnalysisSettings())
    reference.prepare_data()
    assert manager.calculate_feedforward().feedforward.gains == pytest.approx(
        reference.calculate_feedforward().feedforward.gains
    )


def test_velocity_feedback_matches_direct_calculation(simple_path):
    settings = AnalysisSettings()
    manager = AnalysisManager(simple_path, settings)
    gains = manager.calculate_feedback([0.0, KV, KA])
    assert gains == calculate_velocity_feedback_gains(settings.preset, settings.lqr, KV, KA, 1.0)


def test_position_feedback_uses_encoder_factor(simple_path):
    settings = AnalysisSettings(
        type=FeedbackControllerLoopType.POSITION,
        convert_gains_to_enc_ticks=True,
        gearing=2.0,
        cpr=100.0,
    )
    manager = AnalysisManager(simple_path, settings)
    gains = manager.calculate_feedback([0.0, KV, KA])
    expected = calculate_position_feedback_gains(
        settings.preset, settings.lqr, KV, KA, 2.0 * 100.0 * manager.factor
    )
    assert gains.kp == pytest.approx(expected.kp)
    assert gains.kd == pytest.approx(expected.kd)