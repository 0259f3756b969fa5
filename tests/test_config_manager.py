import json

import pytest

from sysident import hardware_type as hw
from sysident.config_manager import ConfigManager, ConfigSettings


def _custom_settings():
    return ConfigSettings(
        primary_motor_ports=[7, 8, 9],
        secondary_motor_ports=[10, 11, 12],
        motor_controllers=[hw.TALON_SRX, hw.VICTOR_SPX, hw.TALON_FX],
        primary_motors_inverted=[True, False, True],
        secondary_motors_inverted=[False, True, False],
        primary_encoder_ports=[4, 5],
        secondary_encoder_ports=[6, 7],
        encoder_type=hw.CTRE_TACHOMETER,
        primary_encoder_inverted=True,
        secondary_encoder_inverted=False,
        cpr=4096.0,
        gearing_numerator=10.0,
        gearing_denominator=3.0,
        gyro=hw.PIGEON,
        gyro_ctor="WPI_TalonSRX-1",
        encoding=True,
        num_samples=4,
        period=20,
        is_drive=True,
    )


def test_generate_slices_motor_lists():
    settings = _custom_settings()
    document = ConfigManager(settings).generate(2)
    assert document["primary motor ports"] == [7, 8]
    assert document["secondary motor ports"] == [10, 11]
    assert document["motor controllers"] == ["TalonSRX", "VictorSPX"]
    assert document["primary motors inverted"] == [True, False]
    assert document["secondary motors inverted"] == [False, True]
    assert document["primary encoder ports"] == [4, 5]
    assert document["encoder type"] == "Tachometer"
    assert document["gyro"] == "Pigeon"
    assert document["gyro ctor"] == "WPI_TalonSRX-1"
    assert document["is drivetrain"] is True


def test_generate_rejects_too_many_motors():
    with pytest.raises(ValueError):
        ConfigManager(ConfigSettings()).generate(4)


def test_save_and_read_round_trip(tmp_path):
    original = _custom_settings()
    path = tmp_path / "deploy" / "config.json"
    ConfigManager(original).save_json(path, 3)

    loaded = ConfigSettings()
    ConfigManager(loaded).read_json(path)
    assert loaded == original


def test_saved_file_matches_generate(tmp_path):
    manager = ConfigManager(ConfigSettings())
    path = tmp_path / "config.json"
    manager.save_json(path, 1)
    assert json.loads(path.read_text(encoding="utf-8")) == manager.generate(1)


def test_read_missing_key(tmp_path):
    document = ConfigManager(ConfigSettings()).generate(2)
    del document["gyro ctor"]
    path = tmp_path / "config.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    with pytest.raises(ValueError, match="gyro ctor was not present in config file"):
        ConfigManager(ConfigSettings()).read_json(path)


def test_read_unknown_motor_controller(tmp_path):
    document = ConfigManager(ConfigSettings()).generate(2)
    document["motor controllers"] = ["PWM", "Mystery"]
    path = tmp_path / "config.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported Motor Controller Name: Mystery"):
        ConfigManager(ConfigSettings()).read_json(path)


def test_read_missing_file(tmp_path):
    with pytest.raises(OSError, match="Unable to read"):
        ConfigManager(ConfigSettings()).read_json(tmp_path / "absent.json")


def test_read_updates_shared_settings(tmp_path):
    document = ConfigManager(_custom_settings()).generate(1)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    settings = ConfigSettings()
    ConfigManager(settings).read_json(path)
    assert settings.motor_controllers == [hw.TALON_SRX]
    assert settings.primary_motor_ports == [7]
    assert settings.encoder_type == hw.CTRE_TACHOMETER
    assert settings.gyro == hw.PIGEON