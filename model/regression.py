from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.linear_model import LinearRegression

from analysis.metrics import trim_percentiles
from data_preparation.errors import DataQualityError, NumericDegeneracyError


@dataclass(frozen=True)
class LinearFit:
    predictor: str
    response: str
    slope: float
    intercept: float
    slope_stderr: float
    intercept_stderr: float
    r_squared: float
    n: int

    def as_record(self) -> dict:
        return {
            "kind": "simple",
            "predictor": self.predictor,
            "response": self.response,
            "slope": self.slope,
            "intercept": self.intercept,
            "slope_stderr": self.slope_stderr,
            "intercept_stderr": self.intercept_stderr,
            "r_squared": self.r_squared,
            "n": self.n,
        }


@dataclass(frozen=True)
class MultipleFit:
    response: str
    coefficients: dict
    intercept: float
    r_squared: float
    n: int
    # z-scored fits only: coefficient * sd(response), and back in raw units
    rescaled: dict = field(default_factory=dict)
    raw_units: dict = field(default_factory=dict)

    def as_records(self, kind: str = "multiple") -> list:
        return [
            {
                "kind": kind,
                "predictor": name,
                "response": self.response,
                "coefficient": value,
                "rescaled": self.rescaled.get(name, np.nan),
                "raw_units": self.raw_units.get(name, np.nan),
                "intercept": self.intercept,
                "r_squared": self.r_squared,
                "n": self.n,
            }
            for name, value in self.coefficients.items()
        ]


def _numeric(df: pd.DataFrame, columns: list) -> pd.DataFrame:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise DataQualityError(f"Columns not found: {missing}")
    values = df[columns].apply(pd.to_numeric, errors="coerce").astype(float)
    if values.isna().any().any() or not np.isfinite(values.to_numpy()).all():
        bad = values.columns[values.isna().any() | ~np.isfinite(values).all()].tolist()
        raise NumericDegeneracyError(", ".join(bad), "missing or non-finite values")
    return values


def fit_simple(df: pd.DataFrame, predictor: str, response: str) -> LinearFit:
    values = _numeric(df, [predictor, response])
    if len(values) < 3:
        raise ValueError(f"Need at least 3 rows to fit {response} ~ {predictor}")
    if values[predictor].std(ddof=0) == 0:
        raise NumericDegeneracyError(predictor, "zero variance")

    res = stats.linregress(values[predictor], values[response])
    return LinearFit(
        predictor=predictor,
        response=response,
        slope=float(res.slope),
        intercept=float(res.intercept),
        slope_stderr=float(res.stderr),
        intercept_stderr=float(res.intercept_stderr),
        r_squared=float(res.rvalue**2),
        n=len(values),
    )


def fit_multiple(df: pd.DataFrame, predictors: list, response: str) -> MultipleFit:
    values = _numeric(df, list(predictors) + [response])
    if len(values) <= len(predictors):
        raise ValueError(f"Need more than {len(predictors)} rows to fit {len(predictors)} predictors")

    X = values[list(predictors)].to_numpy()
    y = values[response].to_numpy()
    model = LinearRegression().fit(X, y)
    return MultipleFit(
        response=response,
        coefficients=dict(zip(predictors, (float(c) for c in model.coef_))),
        intercept=float(model.intercept_),
        r_squared=float(model.score(X, y)),
        n=len(values),
    )


def zscore(series: pd.Series) -> pd.Series:
    """(x - mean) / std with the population standard deviation (ddof=0)."""
    values = pd.to_numeric(series, errors="coerce").astype(float)
    if values.isna().any():
        raise NumericDegeneracyError(series.name, "missing values")
    std = values.std(ddof=0)
    if not std > 0:
        raise NumericDegeneracyError(series.name, "zero variance, cannot z-score")
    return (values - values.mean()) / std


def zscore_frame(df: pd.DataFrame, columns: list) -> pd.DataFrame:
    out = df.copy()
    for c in columns:
        out[c] = zscore(df[c])
    return out


def fit_zscored(df: pd.DataFrame, predictors: list, response: str) -> MultipleFit:
    """
    Standardize predictors and response, fit, and report coefficients as
    relative importances. `rescaled` multiplies each coefficient by the
    response's standard deviation (response units per one predictor standard
    deviation); `raw_units` also divides by the predictor's standard deviation,
    which matches a fit on the untransformed columns.
    """
    columns = list(predictors) + [response]
    values = _numeric(df, columns)
    standardized = zscore_frame(values, columns)
    fit = fit_multiple(standardized, predictors, response)

    sd = values.std(ddof=0)
    rescaled = {p: c * sd[response] for p, c in fit.coefficients.items()}
    raw_units = {p: rescaled[p] / sd[p] for p in fit.coefficients}
    return MultipleFit(
        response=response,
        coefficients=fit.coefficients,
        intercept=fit.intercept,
        r_squared=fit.r_squared,
        n=fit.n,
        rescaled=rescaled,
        raw_units=raw_units,
    )


def correlation_matrix(df: pd.DataFrame, columns: list) -> pd.DataFrame:
    values = _numeric(df, list(columns))
    flat = [c for c in columns if values[c].std(ddof=0) == 0]
    if flat:
        raise NumericDegeneracyError(", ".join(flat), "zero variance, correlation undefined")
    return values.corr(method="pearson")


def slope_robustness(
    df: pd.DataFrame,
    predictor: str,
    response: str,
    quantiles=(0.01, 0.99),
    tolerance: float = 0.10,
    trim_on: str | None = None,
) -> dict:
    """
    Refit after percentile-trimming `trim_on` (the response by default) and
    compare slopes. A relative change above `tolerance` means a handful of
    extreme counties drive the full-data slope.
    """
    full = fit_simple(df, predictor, response)
    trimmed_df = trim_percentiles(df, trim_on or response, *quantiles)
    trimmed = fit_simple(trimmed_df, predictor, response)

    change = abs(trimmed.slope - full.slope) / abs(full.slope) if full.slope else np.inf
    return {
        "predictor": predictor,
        "response": response,
        "full_slope": full.slope,
        "trimmed_slope": trimmed.slope,
        "full_n": full.n,
        "trimmed_n": trimmed.n,
        "relative_change": float(change),
        "robust": bool(change <= tolerance),
    }
