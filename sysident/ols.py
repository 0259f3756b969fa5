"""Ordinary least squares regression."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class OLSResult:
    """Fitted coefficients with the adjusted R² and RMSE of the fit."""

    coefficients: tuple[float, ...]
    r_squared: float
    rmse: float


def ols(data: Sequence[float], independent_variables: int) -> OLSResult:
    """Fit ``y = X b`` from observations stored back to back.

    Each observation is the dependent value followed by
    ``independent_variables`` regressors.
    """
    if independent_variables < 1:
        raise ValueError("At least one independent variable is required.")
    stride = independent_variables + 1
    values = np.asarray(data, dtype=float)
    if values.size == 0 or values.size % stride:
        raise ValueError(
            f"Data of length {values.size} does not hold whole observations "
            f"of {stride} values."
        )

    table = values.reshape(-1, stride)
    y = table[:, 0]
    x = table[:, 1:]
    n = len(y)

    coefficients = np.linalg.solve(x.T @ x, x.T @ y)

    sse = float(np.sum((y - x @ coefficients) ** 2))
    # Total variation is taken about zero, as the model has no intercept column.
    ssto = float(y @ y)

    r_squared = (ssto - sse) / ssto if ssto else math.nan
    ratio = (n - 1.0) / (n - 3) if n != 3 else math.inf
    adjusted = 1 - (1 - r_squared) * ratio
    rmse = math.sqrt(sse / n)

    return OLSResult(tuple(float(c) for c in coefficients), adjusted, rmse)