# sysident

`sysident` fits feedforward and feedback gains for robot mechanisms from
recorded characterization data. It handles simple motors such as flywheels,
elevators, arms, and drivetrains, both linear and angular. It also builds the
configuration file read by a data-logging robot program, and can install such
a program on a robot controller over SSH.

## Modules

- `sysident.analysis_manager`: `AnalysisManager` loads a data JSON file and
  prepares its four tests (`slow-forward`, `slow-backward`, `fast-forward`,
  `fast-backward`). Preparation trims, median-filters and differentiates them.
  It then fits the gains:

  - Ks, Kv and Ka for every mechanism.
  - Kg for elevators and arms.
  - An angle offset for arms.
  - The track width for angular drivetrain tests.

  Linear drivetrain data is kept per side as well as combined. You choose the
  side with `DrivetrainDataset` and `AnalysisManager.filtered_data`.

- `sysident.feedback`: LQR-based gains from Kv and Ka.
  - `calculate_position_feedback_gains` returns Kp and Kd.
  - `calculate_velocity_feedback_gains` returns Kp.
  - Both are configured with a `FeedbackControllerPreset` and `LQRParameters`.

- `sysident.feedforward`: `calculate_feedforward_gains` regresses acceleration
  on velocity, voltage, the sign of velocity and any gravity terms. It returns
  a `FeedforwardResult`.

- `sysident.filtering`: the data model and preprocessing steps.
  - Data model: `PreparedData`, `Storage` and `AnalysisSettings`.
  - Preprocessing: `apply_median_filter`, `get_noise_floor`,
    `get_mean_time_delta`, `trim_step_voltage_data`, `initial_trim_and_filter`
    and `accel_filter`.
  - Errors: `InvalidDataError` and its subclasses `NoQuasistaticDataError` and
    `NoDynamicDataError`.

- `sysident.ols`: `ols` performs ordinary least squares on observations
  stored back to back. It returns an `OLSResult` with the coefficients, the
  adjusted R² and the RMSE.

- `sysident.simulation`: `SimpleMotorSim`, `ElevatorSim` and `ArmSim` are
  plant models for checking fitted gains against recorded data.

- `sysident.track_width`: `calculate_track_width`.

- `sysident.json_converter`: two file converters.
  - `convert_json` turns a legacy data file into the current layout. It writes
    the result next to the input with `_new.json` in place of `.json`.
  - `to_csv` writes a data file as CSV, with positions and velocities scaled
    to output units.

- `sysident.config_manager`: `ConfigManager` builds, reads and saves the
  hardware configuration held in a `ConfigSettings`.

- `sysident.hardware_type`: the known motor controllers, encoders and gyros.
  Names are looked up with `from_motor_controller_name`, `from_encoder_name`
  and `from_gyro_name`, which raise `ValueError` for unknown names.

- `sysident.analysis_type`: the mechanism kinds. `from_name` maps unknown
  names to the simple motor type.

- `sysident.util`: `get_abbreviation` gives the short symbol of a unit.
  `save_file` writes text and creates missing directories.

- `sysident.deploy`: `SshSession`, `DeploySession`, `DeployStatus` and
  `get_addresses_to_try`.

## Analysing a data file

```python
from sysident.analysis_manager import AnalysisManager
from sysident.filtering import AnalysisSettings

settings = AnalysisSettings()
manager = AnalysisManager("sysid_data.json", settings)
manager.prepare_data()

result = manager.calculate_feedforward()
ks, kv, ka = result.feedforward.gains[:3]
feedback = manager.calculate_feedback(result.feedforward.gains)
print(ks, kv, ka, result.track_width, feedback.kp, feedback.kd)
```

A file without a `"sysid"` key is treated as a legacy file. It is converted
with `convert_json` first.

Creating the manager resets `settings.motion_threshold` and
`settings.step_test_duration`. Both are then worked out again from the data.

If the fitted gains have Ka ≤ 0 or Kv < 0, `calculate_feedforward` raises
`InvalidDataError`.

`manager.override_units("Radians", 6.283)` replaces the units stored in the
file. `manager.reset_units_from_json()` restores them.

Progress is reported through the standard `logging` module.

## Generating a robot configuration

```python
from sysident.config_manager import ConfigManager, ConfigSettings

manager = ConfigManager(ConfigSettings())
document = manager.generate(2)       # a dict, using the first two motors
manager.save_json("config.json", 2)
manager.read_json("config.json")     # loads the file back into manager.config
```

If a required key is missing, `read_json` raises `ValueError` naming that key.

## Deploying

```python
from sysident.deploy import get_addresses_to_try

print(get_addresses_to_try(1234))
```

`DeploySession(team, drive, config, program, libraries)` takes these
arguments:

- `team`: a team number or a host name.
- `drive`: whether the program is the drivetrain variant.
- `config`: the configuration dictionary.
- `program`: the program binary.
- `libraries`: a mapping of library file names to their contents.

`execute()` tries every candidate address in parallel and deploys to the first
one that accepts an SSH connection. It returns once all addresses have been
tried. `status` then reports a `DeployStatus`.

## What it does not do

- It has no graphical interface and no command-line program. Everything is
  used as a library.
- It does not record data from a running robot. Data files must already exist.
- It does not contain the robot program or its libraries. The caller supplies
  them to `DeploySession`.