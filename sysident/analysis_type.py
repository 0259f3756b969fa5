"""Kinds of mechanism that can be characterized."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AnalysisType:
    """A mechanism kind and the shape of its data.

    ``independent_variables`` is the number of regressors used in the
    feedforward fit; ``raw_data_size`` is the number of values recorded per
    sample.
    """

    independent_variables: int
    raw_data_size: int
    name: str

    def __str__(self) -> str:
        return self.name


DRIVETRAIN = AnalysisType(3, 9, "Drivetrain")
DRIVETRAIN_ANGULAR = AnalysisType(3, 9, "Drivetrain (Angular)")
ELEVATOR = AnalysisType(4, 4, "Elevator")
ARM = AnalysisType(5, 4, "Arm")
SIMPLE = AnalysisType(3, 4, "Simple")

_BY_NAME = {
    kind.name: kind for kind in (DRIVETRAIN, DRIVETRAIN_ANGULAR, ELEVATOR, ARM)
}


def from_name(name: str) -> AnalysisType:
    """Look up an analysis type by name; unknown names mean a simple motor."""
    return _BY_NAME.get(name, SIMPLE)