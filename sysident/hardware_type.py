"""Names of the motor controllers, encoders and gyros a config can use."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class HardwareType:
    """A piece of hardware identified by its display name."""

    name: str

    def __str__(self) -> str:
        return self.name


# Motor controllers.
PWM = HardwareType("PWM")
TALON_SRX = HardwareType("TalonSRX")
VICTOR_SPX = HardwareType("VictorSPX")
TALON_FX = HardwareType("TalonFX")
SPARK_MAX_BRUSHLESS = HardwareType("SPARK MAX (Brushless)")
SPARK_MAX_BRUSHED = HardwareType("SPARK MAX (Brushed)")
VENOM = HardwareType("Venom")

MOTOR_CONTROLLERS = (
    PWM,
    VICTOR_SPX,
    TALON_SRX,
    TALON_FX,
    SPARK_MAX_BRUSHLESS,
    SPARK_MAX_BRUSHED,
    VENOM,
)

# Encoders.
ROBORIO = HardwareType("roboRIO quadrature")
CANCODER = HardwareType("CANCoder")
BUILT_IN = HardwareType("Built-in")
CTRE_TACHOMETER = HardwareType("Tachometer")
SMAX_ENCODER_PORT = HardwareType("Encoder Port")
SMAX_DATA_PORT = HardwareType("Data Port")

ENCODERS = (
    ROBORIO,
    CANCODER,
    BUILT_IN,
    CTRE_TACHOMETER,
    SMAX_ENCODER_PORT,
    SMAX_DATA_PORT,
)

# Gyros.
ANALOG_GYRO = HardwareType("Analog Gyro")
ADXRS450 = HardwareType("ADXRS450")
NAVX = HardwareType("NavX")
PIGEON = HardwareType("Pigeon")
PIGEON2 = HardwareType("Pigeon2")
ADIS16470 = HardwareType("ADIS16470")
ADIS16448 = HardwareType("ADIS16448")
ROMI_GYRO = HardwareType("Romi")
NO_GYRO = HardwareType("None")

GYROS = (
    ANALOG_GYRO,
    PIGEON,
    PIGEON2,
    ADXRS450,
    NAVX,
    ADIS16448,
    ADIS16470,
    ROMI_GYRO,
    NO_GYRO,
)

_MOTOR_CONTROLLERS_BY_NAME = {hw.name: hw for hw in MOTOR_CONTROLLERS}
_ENCODERS_BY_NAME = {hw.name: hw for hw in ENCODERS}
_GYROS_BY_NAME = {hw.name: hw for hw in GYROS}


def from_motor_controller_name(name: str) -> HardwareType:
    """Return the motor controller with this name."""
    try:
        return _MOTOR_CONTROLLERS_BY_NAME[name]
    except KeyError:
        raise ValueError(f"Unsupported Motor Controller Name: {name}") from None


def from_encoder_name(name: str) -> HardwareType:
    """Return the encoder with this name."""
    try:
        return _ENCODERS_BY_NAME[name]
    except KeyError:
        raise ValueError(f"Unsupported Encoder Name: {name}") from None


def from_gyro_name(name: str) -> HardwareType:
    """Return the gyro with this name."""
    try:
        return _GYROS_BY_NAME[name]
    except KeyError:
        raise ValueError(f"Unsupported Gyro Name: {name}") from None