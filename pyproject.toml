[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sysident"
version = "0.1.0"
description = "System identification for robot mechanisms: feedforward and feedback gains from characterization data"
requires-python = ">=3.10"
keywords = [
    "system identification",
    "feedforward",
    "feedback",
    "lqr",
    "robotics",
    "characterization",
    "drivetrain",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]
dependencies = [
    "numpy>=1.22",
    "scipy>=1.8",
    "paramiko>=2.11",
]

[project.optional-dependencies]
test = [
    "pytest>=7",
]

[tool.hatch.build.targets.wheel]
packages = ["sysident"]

[tool.hatch.build.targets.sdist]
include = ["sysident", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
