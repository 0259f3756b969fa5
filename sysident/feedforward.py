"""Feedforward gain identification by regression."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from .analysis_type import ARM, ELEVATOR, AnalysisType
from .filtering import PreparedData, Storage
from .ols import ols


@dataclass(frozen=True)
class FeedforwardResult:
    """Gains Ks, Kv, Ka, then Kg (elevator and arm) and offset (arm only),
    with the adjusted R² and RMSE of the fit."""

    gains: tuple[float, ...]
    r_squared: float
    rmse: float


def _observations(points: Iterable[PreparedData], analysis_type: AnalysisType):
    for pt in points:
        # Acceleration is the dependent variable; it is the noisiest.
        yield pt.acceleration
        yield pt.velocity
        yield pt.voltage
        yield math.copysign(1.0, pt.velocity)
        if analysis_type == ELEVATOR:
            yield 1.0
        elif analysis_type == ARM:
            yield pt.cos
            yield pt.sin


def calculate_feedforward_gains(data: Storage, analysis_type: AnalysisType) -> FeedforwardResult:
    """Fit accel = α v + β V + γ sgn(v) [+ gravity terms] and derive the gains."""
    observations = [
        value for dataset in data for value in _observations(dataset, analysis_type)
    ]
    fit = ols(observations, analysis_type.independent_variables)
    alpha, beta, gamma = fit.coefficients[:3]

    gains = [-gamma / beta, -alpha / beta, 1.0 / beta]

    if analysis_type == ELEVATOR:
        delta = fit.coefficients[3]
        gains.append(-delta / beta)
    elif analysis_type == ARM:
        delta, epsilon = fit.coefficients[3:5]
        gains.append(math.hypot(delta, epsilon) / beta)
        gains.append(math.atan2(epsilon, -delta))

    return FeedforwardResult(tuple(gains), fit.r_squared, fit.rmse)