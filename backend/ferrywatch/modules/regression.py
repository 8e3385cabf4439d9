"""Ordinary least squares and error metrics (numpy)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class LinearFit:
    coefficients: tuple[float, ...]
    intercept: float

    def predict(self, X) -> np.ndarray:
        X = np.asarray(X, dtype=float)
        return X @ np.asarray(self.coefficients, dtype=float) + self.intercept


@dataclass(frozen=True)
class RegressionMetrics:
    mae: float
    rmse: float
    r2: float
    std_dev: float

    def to_dict(self) -> dict:
        return {"mae": self.mae, "rmse": self.rmse, "r2": self.r2, "std_dev": self.std_dev}


def fit_linear_regression(
    X: Sequence[Sequence[float]], y: Sequence[float], zero_threshold: float = 1e-6
) -> LinearFit:
    """Fit y ~ X with an intercept via the normal equations.

    Uses the pseudo-inverse of XᵀX so constant or collinear columns (e.g.
    is_weekend on a weekday-only bucket) yield the minimum-norm solution
    instead of failing. Coefficients smaller than ``zero_threshold`` in
    magnitude are set to exactly 0.
    """
    X = np.asarray(X, dtype=float)
    y = np.asarray(y, dtype=float)
    if X.ndim != 2 or X.shape[0] != y.shape[0]:
        raise ValueError(f"shape mismatch: X {X.shape}, y {y.shape}")
    if X.shape[0] == 0:
        raise ValueError("cannot fit on zero examples")

    A = np.hstack([np.ones((X.shape[0], 1)), X])
    beta = np.linalg.pinv(A.T @ A) @ (A.T @ y)
    beta[np.abs(beta) < zero_threshold] = 0.0
    return LinearFit(
        coefficients=tuple(float(c) for c in beta[1:]),
        intercept=float(beta[0]),
    )


def compute_metrics(actual: Sequence[float], predicted: Sequence[float]) -> RegressionMetrics:
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    if actual.shape != predicted.shape or actual.size == 0:
        raise ValueError("actual and predicted must be non-empty and the same length")
    residuals = actual - predicted
    ss_res = float(np.sum(residuals ** 2))
    ss_tot = float(np.sum((actual - actual.mean()) ** 2))
    return RegressionMetrics(
        mae=float(np.mean(np.abs(residuals))),
        rmse=float(np.sqrt(np.mean(residuals ** 2))),
        r2=0.0 if ss_tot == 0 else 1.0 - ss_res / ss_tot,
        std_dev=float(np.std(residuals)),
    )
