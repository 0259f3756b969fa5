"""Generation and loading of the hardware configuration for test programs."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from .hardware_type import (
    ANALOG_GYRO,
    PWM,
    ROBORIO,
    HardwareType,
    from_encoder_name,
    from_gyro_name,
    from_motor_controller_name,
)
from .util import save_file

logger = logging.getLogger(__name__)

_REQUIRED_KEYS = (
    "primary motor ports",
    "secondary motor ports",
    "motor controllers",
    "primary motors inverted",
    "secondary motors inverted",
    "primary encoder ports",
    "secondary encoder ports",
    "encoder type",
    "primary encoder inverted",
    "secondary encoder inverted",
    "counts per rotation",
    "gearing numerator",
    "gearing denominator",
    "gyro",
    "gyro ctor",
    "encoding",
    "number of samples per average",
    "velocity measurement period",
)


@dataclass
class ConfigSettings:
    """Hardware layout of the mechanism being characterized."""

    primary_motor_ports: list[int] = field(default_factory=lambda: [0, 1, 2])
    secondary_motor_ports: list[int] = field(default_factory=lambda: [3, 4, 5])
    motor_controllers: list[HardwareType] = field(default_factory=lambda: [PWM, PWM, PWM])
    primary_motors_inverted: list[bool] = field(default_factory=lambda: [False] * 3)
    secondary_motors_inverted: list[bool] = field(default_factory=lambda: [False] * 3)
    primary_encoder_ports: list[int] = field(default_factory=lambda: [0, 1])
    secondary_encoder_ports: list[int] = field(default_factory=lambda: [2, 3])
    encoder_type: HardwareType = ROBORIO
    primary_encoder_inverted: bool = False
    secondary_encoder_inverted: bool = False
    cpr: float = 1440.0
    gearing_numerator: float = 1.0
    gearing_denominator: float = 1.0
    gyro: HardwareType = ANALOG_GYRO
    gyro_ctor: str = "0"
    encoding: bool = False
    num_samples: int = 1
    period: int = 10
    is_drive: bool = False


def _bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"'{key}' must be a boolean.")
    return value


def _bools(values: Any, key: str) -> list[bool]:
    return [_bool(value, key) for value in values]


def _pair(values: Any, key: str) -> list[int]:
    ports = [int(value) for value in values]
    if len(ports) != 2:
        raise ValueError(f"'{key}' must hold exactly two ports.")
    return ports


class ConfigManager:
    """Turns a :class:`ConfigSettings` into a config document and back."""

    def __init__(self, config: ConfigSettings) -> None:
        self.config = config

    def generate(self, occupied: int) -> dict[str, Any]:
        """Build the config document using the first ``occupied`` motors."""
        config = self.config
        sliced = (
            config.primary_motor_ports,
            config.secondary_motor_ports,
            config.motor_controllers,
            config.primary_motors_inverted,
            config.secondary_motors_inverted,
        )
        if occupied < 0 or any(len(values) < occupied for values in sliced):
            raise ValueError(f"The config does not describe {occupied} motors.")

        return {
            "primary motor ports": list(config.primary_motor_ports[:occupied]),
            "secondary motor ports": list(config.secondary_motor_ports[:occupied]),
            "motor controllers": [mc.name for mc in config.motor_controllers[:occupied]],
            "primary motors inverted": list(config.primary_motors_inverted[:occupied]),
            "secondary motors inverted": list(config.secondary_motors_inverted[:occupied]),
            "primary encoder ports": list(config.primary_encoder_ports),
            "secondary encoder ports": list(config.secondary_encoder_ports),
            "encoder type": config.encoder_type.name,
            "primary encoder inverted": config.primary_encoder_inverted,
            "secondary encoder inverted": config.secondary_encoder_inverted,
            "counts per rotation": config.cpr,
            "gearing numerator": config.gearing_numerator,
            "gearing denominator": config.gearing_denominator,
            "gyro": config.gyro.name,
            "gyro ctor": config.gyro_ctor,
            "encoding": config.encoding,
            "number of samples per average": config.num_samples,
            "velocity measurement period": config.period,
            "is drivetrain": config.is_drive,
        }

    def read_json(self, path: str | os.PathLike[str]) -> None:
        """Load the settings from a config file into :attr:`config`."""
        path = os.fspath(path)
        try:
            with open(path, encoding="utf-8") as handle:
                document = json.load(handle)
        except OSError as exc:
            raise OSError(f"Unable to read: {path}") from exc
        logger.info("Read %s", path)

        for key in _REQUIRED_KEYS:
            if key not in document:
                raise ValueError(
                    f"{key} was not present in config file. Please check its formatting."
                )

        config = self.config
        config.primary_motor_ports = [int(p) for p in document["primary motor ports"]]
        config.secondary_motor_ports = [int(p) for p in document["secondary motor ports"]]
        config.motor_controllers = [
            from_motor_controller_name(name) for name in document["motor controllers"]
        ]
        config.primary_motors_inverted = _bools(
            document["primary motors inverted"], "primary motors inverted"
        )
        config.secondary_motors_inverted = _bools(
            document["secondary motors inverted"], "secondary motors inverted"
        )
        config.encoder_type = from_encoder_name(document["encoder type"])
        config.primary_encoder_ports = _pair(
            document["primary encoder ports"], "primary encoder ports"
        )
        config.secondary_encoder_ports = _pair(
            document["secondary encoder ports"], "secondary encoder ports"
        )
        config.primary_encoder_inverted = _bool(
            document["primary encoder inverted"], "primary encoder inverted"
        )
        config.secondary_encoder_inverted = _bool(
            document["secondary encoder inverted"], "secondary encoder inverted"
        )
        config.cpr = float(document["counts per rotation"])
        config.gearing_numerator = float(document["gearing numerator"])
        config.gearing_denominator = float(document["gearing denominator"])
        config.gyro = from_gyro_name(document["gyro"])
        config.gyro_ctor = str(document["gyro ctor"])
        config.encoding = _bool(document["encoding"], "encoding")
        config.num_samples = int(document["number of samples per average"])
        config.period = int(document["velocity measurement period"])
        config.is_drive = _bool(document["is drivetrain"], "is drivetrain")

    def save_json(self, path: str | os.PathLike[str], occupied: int) -> None:
        """Write the config document for ``occupied`` motors to ``path``."""
        document = self.generate(occupied)
        save_file(json.dumps(document, indent=2, sort_keys=True), path)
        logger.info("Wrote Config JSON to: %s", os.fspath(path))