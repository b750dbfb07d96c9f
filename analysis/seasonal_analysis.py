"""
Seasonality of incident fractions.

A cyclical aggregate (share of a year's incidents per month, or per weekday)
is fitted with

    fraction ~ amplitude * sin(2*pi*position / L + phase) + offset

by nonlinear least squares. The objective is not convex in phase, so the
caller supplies a starting guess; a fit that does not converge is reported as
such and not retried from somewhere else.
"""

import warnings
from dataclasses import dataclass

import numpy as np
from scipy.optimize import OptimizeWarning, curve_fit

from data_preparation.errors import FitNonConvergenceError, NumericDegeneracyError

N_PARAMETERS = 3


def sinusoid(position, amplitude, phase, offset, cycle_length):
    position = np.asarray(position, dtype=float)
    return amplitude * np.sin(2 * np.pi * position / cycle_length + phase) + offset


def _wrap_phase(phase: float) -> float:
    """Into (-pi, pi]."""
    return float(np.pi - ((np.pi - phase) % (2 * np.pi)))


@dataclass(frozen=True)
class PeriodicFit:
    amplitude: float
    phase: float
    offset: float
    cycle_length: int
    rmse: float
    r_squared: float
    n: int

    def predict(self, positions):
        return sinusoid(positions, self.amplitude, self.phase, self.offset, self.cycle_length)

    def as_record(self) -> dict:
        return {
            "cycle_length": self.cycle_length,
            "amplitude": self.amplitude,
            "phase": self.phase,
            "offset": self.offset,
            "rmse": self.rmse,
            "r_squared": self.r_squared,
            "n": self.n,
        }


def fit_periodic(positions, observed, cycle_length: int, initial_guess, max_evaluations: int = 10000) -> PeriodicFit:
    x = np.asarray(positions, dtype=float)
    y = np.asarray(observed, dtype=float)
    if x.shape != y.shape or x.ndim != 1:
        raise ValueError("positions and observed must be 1-d and the same length")
    if len(x) < N_PARAMETERS:
        raise ValueError(f"Need at least {N_PARAMETERS} samples, got {len(x)}")
    if not (np.isfinite(x).all() and np.isfinite(y).all()):
        raise NumericDegeneracyError("observed", "non-finite samples")
    if cycle_length <= 0:
        raise ValueError("cycle_length must be positive")

    def model(pos, amplitude, phase, offset):
        return sinusoid(pos, amplitude, phase, offset, cycle_length)

    try:
        with warnings.catch_warnings():
            # three samples leave no degrees of freedom for the covariance
            warnings.simplefilter("ignore", OptimizeWarning)
            params, _ = curve_fit(
                model,
                x,
                y,
                p0=list(initial_guess),
                method="lm",
                maxfev=max_evaluations,
                xtol=1e-12,
                ftol=1e-12,
            )
    except RuntimeError as e:
        raise FitNonConvergenceError(
            f"Sinusoid fit (L={cycle_length}) from guess {tuple(initial_guess)} failed: {e}"
        ) from e

    if not np.isfinite(params).all():
        raise FitNonConvergenceError(f"Sinusoid fit (L={cycle_length}) produced {params}")

    amplitude, phase, offset = (float(p) for p in params)
    if amplitude < 0:
        amplitude, phase = -amplitude, phase + np.pi
    phase = _wrap_phase(phase)

    residuals = y - model(x, amplitude, phase, offset)
    sse = float(np.sum(residuals**2))
    sst = float(np.sum((y - y.mean()) ** 2))
    return PeriodicFit(
        amplitude=amplitude,
        phase=phase,
        offset=offset,
        cycle_length=int(cycle_length),
        rmse=float(np.sqrt(sse / len(y))),
        r_squared=1 - sse / sst if sst > 0 else float("nan"),
        n=len(y),
    )


@dataclass(frozen=True)
class CovariateAlignment:
    scale: float
    offset: float
    correlation: float
    rmse: float

    def apply(self, covariate):
        return self.scale * np.asarray(covariate, dtype=float) + self.offset

    def as_record(self) -> dict:
        return {
            "scale": self.scale,
            "offset": self.offset,
            "correlation": self.correlation,
            "rmse": self.rmse,
        }


def align_covariate(covariate, target) -> CovariateAlignment:
    """
    Plain least-squares affine map scale * covariate + offset onto target,
    e.g. monthly mean temperature onto the fitted monthly incident curve.
    """
    x = np.asarray(covariate, dtype=float)
    y = np.asarray(target, dtype=float)
    if x.shape != y.shape or len(x) < 2:
        raise ValueError("covariate and target must have the same length (>= 2)")
    if np.std(x) == 0:
        raise NumericDegeneracyError("covariate", "zero variance")

    scale, offset = np.polyfit(x, y, 1)
    fitted = scale * x + offset
    correlation = float(np.corrcoef(x, y)[0, 1]) if np.std(y) > 0 else float("nan")
    return CovariateAlignment(
        scale=float(scale),
        offset=float(offset),
        correlation=correlation,
        rmse=float(np.sqrt(np.mean((y - fitted) ** 2))),
    )


def fit_monthly(monthly, initial_guess, cycle_length: int = 12) -> PeriodicFit:
    """monthly: DataFrame with position (1-12) and fraction columns."""
    return fit_periodic(monthly["position"], monthly["fraction"], cycle_length, initial_guess)


def fit_weekly(weekly, initial_guess, cycle_length: int = 7) -> PeriodicFit:
    """weekly: DataFrame with position (0=Monday..6) and fraction columns."""
    return fit_periodic(weekly["position"], weekly["fraction"], cycle_length, initial_guess)
